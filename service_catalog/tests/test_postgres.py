"""
Unit tests for the PostgreSQL record store.
"""

import asyncio

import asyncpg
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from service_catalog.app.persistence import PostgreSQLStore
from service_catalog.app.persistence.postgres import rows_affected
from shared.errors import ConstraintViolationError, RecordNotFoundError, StoreUnavailableError, ValidationError


@pytest.mark.parametrize("status,expected", [
    ("INSERT 0 1", 1),
    ("UPDATE 3", 3),
    ("DELETE 0", 0),
    ("CREATE TABLE", 0),
    ("", 0),
])
def test_rows_affected(status, expected):
    assert rows_affected(status) == expected


@pytest.fixture
def conn():
    return AsyncMock()


@pytest.fixture
def postgres_store(conn):
    store = PostgreSQLStore("postgres://localhost:5432/catalog")
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    store.pool = pool
    return store


class TestExec:

    @pytest.mark.asyncio
    async def test_returns_rows_affected(self, postgres_store, conn):
        conn.execute.return_value = "DELETE 1"

        count = await postgres_store.exec("DELETE FROM courses WHERE id = $1", ("abc",))

        assert count == 1
        conn.execute.assert_awaited_once_with("DELETE FROM courses WHERE id = $1", "abc")

    @pytest.mark.asyncio
    async def test_zero_rows(self, postgres_store, conn):
        conn.execute.return_value = "DELETE 0"

        assert await postgres_store.exec("DELETE FROM courses WHERE id = $1", ("abc",)) == 0

    @pytest.mark.asyncio
    async def test_unique_violation(self, postgres_store, conn):
        error = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        conn.execute.side_effect = error

        with pytest.raises(ConstraintViolationError) as exc_info:
            await postgres_store.exec("INSERT INTO courses VALUES ($1)", ("abc",))

        assert exc_info.value.status_code == 400
        assert "constraint" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_check_violation(self, postgres_store, conn):
        conn.execute.side_effect = asyncpg.CheckViolationError("new row violates check constraint")

        with pytest.raises(ConstraintViolationError):
            await postgres_store.exec("INSERT INTO courses VALUES ($1)", ("abc",))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncpg.exceptions.CharacterNotInRepertoireError('invalid byte sequence for encoding "UTF8": 0x00'),
        asyncpg.exceptions.NumericValueOutOfRangeError("value out of range"),
    ])
    async def test_data_errors_are_not_retryable(self, postgres_store, conn, error):
        conn.execute.side_effect = error

        with pytest.raises(ValidationError) as exc_info:
            await postgres_store.exec("INSERT INTO courses VALUES ($1)", ("a\x00b",))

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["sqlstate"] == error.sqlstate

    @pytest.mark.asyncio
    async def test_syntax_error_propagates(self, postgres_store, conn):
        conn.execute.side_effect = asyncpg.exceptions.PostgresSyntaxError("syntax error at or near \"FORM\"")

        with pytest.raises(asyncpg.exceptions.PostgresSyntaxError):
            await postgres_store.exec("SELECT * FORM courses")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        asyncpg.exceptions.ConnectionDoesNotExistError("connection was closed"),
        asyncpg.exceptions.DeadlockDetectedError("deadlock detected"),
        asyncpg.exceptions.TooManyConnectionsError("too many connections"),
        asyncpg.exceptions.QueryCanceledError("canceling statement due to statement timeout"),
        OSError("connection refused"),
        asyncio.TimeoutError(),
    ])
    async def test_unavailable(self, postgres_store, conn, error):
        conn.execute.side_effect = error

        with pytest.raises(StoreUnavailableError):
            await postgres_store.exec("DELETE FROM courses WHERE id = $1", ("abc",))


class TestQueryOne:

    @pytest.mark.asyncio
    async def test_returns_row_as_dict(self, postgres_store, conn):
        conn.fetchrow.return_value = {"id": "abc", "name": "Algebra", "price": 9.99}

        row = await postgres_store.query_one("SELECT * FROM courses WHERE id = $1", ("abc",))

        assert row == {"id": "abc", "name": "Algebra", "price": 9.99}
        conn.fetchrow.assert_awaited_once_with("SELECT * FROM courses WHERE id = $1", "abc")

    @pytest.mark.asyncio
    async def test_no_row_is_not_found(self, postgres_store, conn):
        conn.fetchrow.return_value = None

        with pytest.raises(RecordNotFoundError):
            await postgres_store.query_one("SELECT * FROM courses WHERE id = $1", ("missing",))

    @pytest.mark.asyncio
    async def test_unavailable(self, postgres_store, conn):
        conn.fetchrow.side_effect = OSError("connection reset")

        with pytest.raises(StoreUnavailableError):
            await postgres_store.query_one("SELECT * FROM courses WHERE id = $1", ("abc",))


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_not_started(self):
        store = PostgreSQLStore("postgres://localhost:5432/catalog")

        with pytest.raises(StoreUnavailableError):
            await store.exec("SELECT 1")
        with pytest.raises(StoreUnavailableError):
            await store.query_one("SELECT 1")
        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_start_creates_pool(self):
        pool = MagicMock()
        with patch("service_catalog.app.persistence.postgres.asyncpg.create_pool",
                   new=AsyncMock(return_value=pool)) as create_pool:
            store = PostgreSQLStore("postgres://db:5432/catalog", min_size=1, max_size=4)
            await store.start()

        assert store.pool is pool
        create_pool.assert_awaited_once_with(
            "postgres://db:5432/catalog", min_size=1, max_size=4, command_timeout=30.0
        )

    @pytest.mark.asyncio
    async def test_start_failure(self):
        with patch("service_catalog.app.persistence.postgres.asyncpg.create_pool",
                   new=AsyncMock(side_effect=OSError("connection refused"))):
            store = PostgreSQLStore("postgres://db:5432/catalog")
            with pytest.raises(StoreUnavailableError):
                await store.start()

        assert store.pool is None

    @pytest.mark.asyncio
    async def test_stop_closes_pool(self, postgres_store):
        pool = postgres_store.pool
        pool.close = AsyncMock()

        await postgres_store.stop()

        pool.close.assert_awaited_once()
        assert postgres_store.pool is None

    @pytest.mark.asyncio
    async def test_health_check(self, postgres_store, conn):
        conn.fetchval.return_value = 1
        assert await postgres_store.health_check() is True

        conn.fetchval.side_effect = OSError("connection reset")
        assert await postgres_store.health_check() is False
