"""Config command group for entitykit.

Create and inspect ~/.entitykit/config.yaml.
"""

from pathlib import Path
from typing import Annotated

import typer

from entitykit.cli.formatters.panels import print_error, print_success
from entitykit.cli.formatters.tables import create_key_value_table, print_table
from entitykit.config import create_default_config, load_config
from entitykit.core.errors import ConfigError

app = typer.Typer(
    name="config",
    help="Manage entitykit configuration.",
    no_args_is_help=True,
)


def _flatten(data: dict, prefix: str = "") -> dict[str, object]:
    flat: dict[str, object] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


@app.command()
def init(
    config_dir: Annotated[
        Path | None,
        typer.Option("--dir", help="Directory to write config.yaml to (default: ~/.entitykit/)."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing configuration file."),
    ] = False,
) -> None:
    """Write the default configuration file."""
    try:
        path = create_default_config(config_dir, overwrite=force)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success(f"Configuration written to {path}")


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(help="Configuration section to display (e.g., 'audit')."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file to read."),
    ] = None,
) -> None:
    """Display the effective configuration.

    Defaults are shown when no configuration file exists.
    """
    try:
        config = load_config(config_path, missing_ok=True)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    data = config.model_dump(mode="json")
    if section:
        if section not in data:
            print_error(f"Unknown configuration section: {section}")
            raise typer.Exit(1)
        data = {section: data[section]}

    print_table(create_key_value_table(_flatten(data), "Configuration"))


__all__ = ["app"]
