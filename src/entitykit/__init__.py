"""entitykit - entity data access toolkit.

Filters, query-string parsing, index planning, uniqueness enforcement and
an event-driven CRUD pipeline over pluggable repositories.

Example:
    # Using CLI
    entitykit filters compile 'status=active&age[gte]=18'

    # Using Python
    from entitykit.entity import EntityService, load_entity_schema_file
    from entitykit.persistence import Database, SqlEntityRepository
"""

__version__ = "0.1.0"

__all__ = ["__version__", "main"]


def main() -> None:
    """Main entry point for the entitykit CLI.

    This function invokes the Typer app from entitykit.cli.main.
    """
    from entitykit.cli.main import app

    app()
