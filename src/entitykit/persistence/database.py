"""Async SQLite engine lifecycle."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from entitykit.core.errors import PersistenceError
from entitykit.observability.logging import get_logger
from entitykit.persistence.schema import metadata

log = get_logger(__name__)


class Database:
    """Owns the async engine shared by repositories and the SQL audit logger.

    Usage:
        database = Database("sqlite+aiosqlite:///entitykit.db")
        await database.initialize()

        repository = SqlEntityRepository(schema, database.engine)

        await database.close()
    """

    def __init__(self, database_url: str) -> None:
        """Initialize with a SQLAlchemy async URL.

        Args:
            database_url: e.g. "sqlite+aiosqlite:///path/to/db.sqlite" or
                "sqlite+aiosqlite:///:memory:".
        """
        self._database_url = database_url
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        """The initialized engine.

        Raises:
            PersistenceError: If :meth:`initialize` has not run.
        """
        if self._engine is None:
            raise PersistenceError(
                "Database not initialized. Call initialize() first.",
                operation="engine",
            )
        return self._engine

    async def initialize(self) -> None:
        """Create the engine and the tables. Safe to call more than once.

        Raises:
            PersistenceError: If the tables cannot be created.
        """
        if self._engine is None:
            self._engine = create_async_engine(self._database_url, echo=False)

        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except Exception as e:
            raise PersistenceError(
                f"Failed to initialize database: {e}",
                operation="create_all",
            ) from e

        log.debug("persistence.database.initialized", database_url=self._database_url)

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
