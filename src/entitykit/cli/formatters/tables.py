"""Rich tables for structured data display."""

import json
from typing import Any

from rich.table import Table

from entitykit.cli.formatters import console


def create_table(
    title: str | None = None,
    *,
    show_header: bool = True,
    show_lines: bool = False,
    border_style: str = "blue",
    header_style: str = "bold cyan",
) -> Table:
    """Create a Rich Table with consistent entitykit styling.

    Example:
        table = create_table("Audit records")
        table.add_column("Entity", style="cyan")
        table.add_row("user")
        print_table(table)
    """
    return Table(
        title=title,
        show_header=show_header,
        show_lines=show_lines,
        border_style=border_style,
        header_style=header_style,
        row_styles=["", "dim"],
    )


def format_cell(value: Any) -> str:
    """Render a cell value; mappings and lists are shown as compact JSON."""
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value, default=str, separators=(",", ":"))
    return str(value)


def create_key_value_table(
    data: dict[str, Any],
    title: str | None = None,
    *,
    key_style: str = "cyan",
) -> Table:
    """Create a two-column table for key-value data.

    Example:
        table = create_key_value_table({"database": "~/.entitykit/entitykit.db"}, "Configuration")
        print_table(table)
    """
    table = create_table(title, show_header=False)
    table.add_column("Key", style=key_style, no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(str(key), format_cell(value))

    return table


def create_records_table(
    records: list[dict[str, Any]],
    columns: list[str],
    title: str | None = None,
) -> Table:
    """Create a table with one row per record and one column per key."""
    table = create_table(title)
    for column in columns:
        table.add_column(column, overflow="fold")

    for record in records:
        table.add_row(*(format_cell(record.get(column)) for column in columns))

    return table


def print_table(table: Table) -> None:
    console.print(table)


__all__ = [
    "create_table",
    "create_key_value_table",
    "create_records_table",
    "format_cell",
    "print_table",
]
