"""
PostgreSQL persistence layer for the Catalog Service.
"""

import asyncio
from typing import Any, Dict, Optional, Sequence

import asyncpg
from shared.logging import get_logger
from shared.errors import (
    CatalogException, ConstraintViolationError, RecordNotFoundError,
    StoreUnavailableError, ValidationError
)


# Everything the driver or the socket can raise out of a statement
_DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)

# SQLSTATE classes that may succeed on retry: connection exception,
# transaction rollback, insufficient resources, operator intervention,
# system error
_TRANSIENT_SQLSTATE_CLASSES = frozenset({"08", "40", "53", "57", "58"})

# SQLSTATE class 22: data exception (bad encoding, out of range, ...)
_DATA_EXCEPTION_CLASS = "22"


def rows_affected(status: str) -> int:
    """Parse the affected row count out of an asyncpg command status.

    ``"INSERT 0 1"`` -> 1, ``"UPDATE 3"`` -> 3, ``"CREATE TABLE"`` -> 0.
    """
    last = status.rsplit(" ", 1)[-1] if status else ""
    return int(last) if last.isdigit() else 0


def translate_error(error: BaseException, message: str) -> Optional[CatalogException]:
    """Map a driver failure onto the catalog error taxonomy.

    Returns None for server errors that are neither transient nor caused by
    the submitted values (syntax, privileges); those propagate unchanged.
    """
    if isinstance(error, asyncpg.IntegrityConstraintViolationError):
        return ConstraintViolationError(
            error.args[0] if error.args else "Constraint violation",
            {"constraint": getattr(error, "constraint_name", None)}
        )

    if isinstance(error, asyncpg.PostgresError):
        sqlstate = getattr(error, "sqlstate", None) or ""
        sqlstate_class = sqlstate[:2]
        if sqlstate_class == _DATA_EXCEPTION_CLASS:
            return ValidationError(
                "Record store rejected the value",
                {"sqlstate": sqlstate, "error": str(error)}
            )
        if sqlstate_class not in _TRANSIENT_SQLSTATE_CLASSES:
            return None
    elif isinstance(error, ValueError):
        # Client-side argument encoding failure
        return ValidationError("Record store rejected the value", {"error": str(error)})

    return StoreUnavailableError(message, {"error": str(error)})


class PostgreSQLStore:
    """Record store over an asyncpg connection pool."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("catalog.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )
        except _DRIVER_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreUnavailableError("PostgreSQL pool could not be created", {"error": str(e)}) from e

        self.logger.info("PostgreSQL persistence started")

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def exec(self, statement: str, params: Sequence[Any] = ()) -> int:
        """Execute a statement and return the number of affected rows."""
        pool = self._pool()
        try:
            async with pool.acquire() as conn:
                status = await conn.execute(statement, *params)
        except _DRIVER_ERRORS as e:
            self._raise_translated(e, "PostgreSQL statement failed")

        return rows_affected(status)

    async def query_one(self, statement: str, params: Sequence[Any] = ()) -> Dict[str, Any]:
        """Fetch exactly one row. Raises RecordNotFoundError when there is none."""
        pool = self._pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(statement, *params)
        except _DRIVER_ERRORS as e:
            self._raise_translated(e, "PostgreSQL query failed")

        if row is None:
            raise RecordNotFoundError()
        return dict(row)

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except _DRIVER_ERRORS:
            return False

    def _raise_translated(self, error: BaseException, message: str):
        translated = translate_error(error, message)
        if translated is None:
            self.logger.error(message, error=str(error), sqlstate=getattr(error, "sqlstate", None))
            raise error
        if isinstance(translated, StoreUnavailableError):
            self.logger.error(message, error=str(error))
        raise translated from error

    def _pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreUnavailableError("PostgreSQL persistence not started")
        return self.pool
