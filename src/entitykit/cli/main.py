"""entitykit CLI main entry point.

This module defines the main Typer application and registers
all command groups for the entitykit CLI.
"""

from typing import Annotated

import typer

from entitykit import __version__
from entitykit.cli.commands import audit, config, filters
from entitykit.cli.formatters import console

app = typer.Typer(
    name="entitykit",
    help="entitykit - entity data access toolkit",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(filters.app, name="filters")
app.add_typer(config.app, name="config")
app.add_typer(audit.app, name="audit")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]entitykit[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """entitykit - entity data access toolkit.

    Use [bold cyan]entitykit COMMAND --help[/] for command-specific help.
    """
    pass


__all__ = ["app", "main"]
