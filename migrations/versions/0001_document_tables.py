"""document tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owning_entity_id", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=True),
        sa.Column("checksum", sa.String(length=128), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False),
        sa.Column("storage_status", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_documents_owning_entity_id", "documents", ["owning_entity_id"])
    op.create_index("ix_documents_storage_status", "documents", ["storage_status"])
    op.create_index("ix_documents_created_at", "documents", ["created_at"])

    op.create_table(
        "document_upload_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_upload_log_document_id", "document_upload_log", ["document_id"])
    op.create_index("ix_document_upload_log_created_at", "document_upload_log", ["created_at"])
    op.create_index(
        "ix_document_upload_log_status_created", "document_upload_log", ["status", "created_at"]
    )

    op.create_table(
        "document_access_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_access_log_document_id", "document_access_log", ["document_id"])
    op.create_index("ix_document_access_log_created_at", "document_access_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_document_access_log_created_at", table_name="document_access_log")
    op.drop_index("ix_document_access_log_document_id", table_name="document_access_log")
    op.drop_table("document_access_log")
    op.drop_index("ix_document_upload_log_status_created", table_name="document_upload_log")
    op.drop_index("ix_document_upload_log_created_at", table_name="document_upload_log")
    op.drop_index("ix_document_upload_log_document_id", table_name="document_upload_log")
    op.drop_table("document_upload_log")
    op.drop_index("ix_documents_created_at", table_name="documents")
    op.drop_index("ix_documents_storage_status", table_name="documents")
    op.drop_index("ix_documents_owning_entity_id", table_name="documents")
    op.drop_table("documents")
