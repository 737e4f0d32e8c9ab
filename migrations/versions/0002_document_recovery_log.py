"""document recovery log

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-20 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "document_recovery_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("event", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=True),
        sa.Column("previous_status", sa.String(length=16), nullable=True),
        sa.Column("new_status", sa.String(length=16), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_recovery_log_document_id", "document_recovery_log", ["document_id"]
    )
    op.create_index(
        "ix_document_recovery_log_created_at", "document_recovery_log", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_document_recovery_log_created_at", table_name="document_recovery_log")
    op.drop_index("ix_document_recovery_log_document_id", table_name="document_recovery_log")
    op.drop_table("document_recovery_log")
