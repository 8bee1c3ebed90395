"""Audit command group for entitykit.

Read the audit trail written by the SQL audit logger.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer

from entitykit.audit import SqlAuditLogger
from entitykit.cli.formatters.panels import print_error, print_info
from entitykit.cli.formatters.tables import create_records_table, print_table
from entitykit.config import load_config
from entitykit.config.models import PersistenceConfig
from entitykit.core.errors import EntitykitError
from entitykit.persistence import Database

app = typer.Typer(
    name="audit",
    help="Inspect the audit trail.",
    no_args_is_help=True,
)

RECENT_COLUMNS = ["timestamp", "entity_name", "crud_type", "identifiers", "actor", "correlation_id"]


async def _fetch_recent(database_url: str, limit: int, entity_name: str | None) -> list[dict[str, Any]]:
    database = Database(database_url)
    await database.initialize()
    try:
        return await SqlAuditLogger(database.engine).recent(limit, entity_name=entity_name)
    finally:
        await database.close()


@app.command()
def recent(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of records to show."),
    ] = 20,
    entity_name: Annotated[
        str | None,
        typer.Option("--entity", "-e", help="Only show records for this entity."),
    ] = None,
    database_path: Annotated[
        Path | None,
        typer.Option("--database", "-d", help="SQLite database (default: from configuration)."),
    ] = None,
) -> None:
    """List the newest audit records."""
    try:
        if database_path is not None:
            persistence = PersistenceConfig(database_path=str(database_path))
        else:
            persistence = load_config(missing_ok=True).persistence
        records = asyncio.run(_fetch_recent(persistence.database_url, limit, entity_name))
    except EntitykitError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not records:
        print_info("No audit records found.")
        return

    print_table(create_records_table(records, RECENT_COLUMNS, "Recent audit records"))


__all__ = ["app"]
