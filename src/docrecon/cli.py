from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from docrecon.app.core.logging import setup_logging
from docrecon.app.settings import get_app_settings
from docrecon.container import Components, build_components
from docrecon.db.settings import get_db_settings
from docrecon.db.schema import create_all
from docrecon.exceptions import DocReconError
from docrecon.health.policy import HealthStatus
from docrecon.recovery.coordinator import MigrationOutcome

T = TypeVar("T")

app = typer.Typer(help="Document storage consistency and recovery commands")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides LOG_LEVEL."),
    database_url: Optional[str] = typer.Option(
        None, "--database-url", help="Overrides env DB_DATABASE_URL for this command."
    ),
):
    settings = get_app_settings()
    setup_logging(log_level or settings.log_level, settings.log_format)
    ctx.obj = {"database_url": database_url}


def _run(ctx: typer.Context, fn: Callable[[Components], Awaitable[T]]) -> T:
    database_url = (ctx.obj or {}).get("database_url")

    async def _main() -> T:
        components = build_components(db_settings=get_db_settings(database_url=database_url))
        try:
            return await fn(components)
        finally:
            await components.aclose()

    return asyncio.run(_main())


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command("init-db")
def init_db(ctx: typer.Context):
    """Create the document tables (development; use alembic in production)."""

    async def _init(c: Components) -> None:
        await create_all(c.engine.engine)

    _run(ctx, _init)
    typer.echo("Tables created.")


@app.command("scan")
def scan(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the full report as JSON."),
    limit: int = typer.Option(10, help="Findings shown per kind."),
    fail_on_issues: bool = typer.Option(
        False, "--fail-on-issues", help="Exit 1 when missing or mismatched documents are found."
    ),
):
    """Scan records against both stores and log newly detected drift."""

    async def _scan(c: Components):
        report = await c.scanner.scan()
        return report, await c.coordinator.record_detections(report)

    report, detected = _run(ctx, _scan)
    if as_json:
        _echo_json({**report.to_dict(limit), "new_detections": detected})
    else:
        typer.echo(f"records scanned: {report.total_records}")
        for kind, count in report.counts().items():
            typer.echo(f"  {kind:<18} {count}")
        typer.echo(f"new detections logged: {detected}")
        if not report.primary_reachable:
            typer.echo("primary unreachable", err=True)
        if report.unchecked:
            typer.echo(f"{len(report.unchecked)} documents unchecked", err=True)
        for kind, items in report.preview(limit).items():
            for item in items:
                target = item["document_id"] or item["storage_key"]
                typer.echo(f"{kind}: {target} {item['details']}")
    if fail_on_issues and report.document_issue_count:
        raise typer.Exit(code=1)


@app.command("migrate")
def migrate(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Id of a document in fallback status."),
):
    """Migrate one fallback document into the primary store."""
    try:
        doc_uuid = uuid.UUID(document_id)
    except ValueError:
        typer.echo(f"invalid document id: {document_id}", err=True)
        raise typer.Exit(code=2)

    async def _migrate(c: Components):
        return await c.coordinator.migrate(doc_uuid)

    try:
        result = _run(ctx, _migrate)
    except DocReconError as e:
        typer.echo(f"{e.code}: {e}", err=True)
        raise typer.Exit(code=1)
    if result.outcome == MigrationOutcome.FAILED:
        typer.echo(f"{result.error_code}: {result.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{result.outcome.value}: {result.storage_key}")


@app.command("migrate-all")
def migrate_all(ctx: typer.Context):
    """Migrate every fallback document; waits for the batch to finish."""

    async def _all(c: Components):
        return await c.coordinator.migrate_all()

    result = _run(ctx, _all)
    _echo_json(result.to_dict())
    if result.failed:
        raise typer.Exit(code=1)


@app.command("health")
def health(ctx: typer.Context):
    """Print the health score and per-check status."""

    async def _health(c: Components):
        return await c.reporter.health()

    report = _run(ctx, _health)
    _echo_json(report.to_dict())
    if report.status == HealthStatus.UNHEALTHY:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()
