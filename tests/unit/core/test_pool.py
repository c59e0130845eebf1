"""
Unit tests for core.pool module.

Tests:
- Configuration models and the DB_PASSWORD environment lookup
- Retry delay schedule
- connect() retry and StorageError on exhaustion
- Query retry on connection loss
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest
from pydantic import ValidationError

from chronicle.core.exceptions import StorageError
from chronicle.core.pool import DatabaseConfig, Pool, PoolConfig, PoolLimitsConfig, PoolRetryConfig


@pytest.fixture(autouse=True)
def db_password(monkeypatch):
    monkeypatch.setenv("DB_PASSWORD", "secret")


class TestConfig:
    def test_password_from_env(self):
        config = DatabaseConfig()  # type: ignore[call-arg]
        assert config.password.get_secret_value() == "secret"
        assert config.database == "chronicle"

    def test_missing_password(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD")
        with pytest.raises(ValidationError, match="DB_PASSWORD"):
            DatabaseConfig()  # type: ignore[call-arg]

    def test_custom_env_var(self, monkeypatch):
        monkeypatch.setenv("ARCHIVE_PW", "other")
        config = DatabaseConfig(password_env="ARCHIVE_PW")  # type: ignore[call-arg]
        assert config.password.get_secret_value() == "other"

    def test_max_size_below_min(self):
        with pytest.raises(ValidationError):
            PoolLimitsConfig(min_size=5, max_size=2)

    def test_from_dict(self):
        pool = Pool.from_dict({"database": {"host": "db"}, "limits": {"max_size": 4}})
        assert pool.config.database.host == "db"
        assert pool.config.limits.max_size == 4
        assert not pool.is_connected


class TestRetryDelays:
    def test_exponential(self):
        retry = PoolRetryConfig(max_attempts=5, initial_delay=1.0, max_delay=5.0)
        assert list(retry.delays()) == [1.0, 2.0, 4.0, 5.0]

    def test_linear(self):
        retry = PoolRetryConfig(
            max_attempts=4, initial_delay=1.0, max_delay=10.0, exponential_backoff=False
        )
        assert list(retry.delays()) == [1.0, 2.0, 3.0]

    def test_single_attempt_never_waits(self):
        assert list(PoolRetryConfig(max_attempts=1).delays()) == []


class TestConnect:
    async def test_success(self):
        pool = Pool()
        with patch("chronicle.core.pool.asyncpg.create_pool", new=AsyncMock()) as create:
            await pool.connect()
            await pool.connect()
        create.assert_awaited_once()
        assert pool.is_connected

    async def test_exhausted(self):
        pool = Pool(PoolConfig(retry=PoolRetryConfig(max_attempts=2, initial_delay=0.1)))
        with (
            patch(
                "chronicle.core.pool.asyncpg.create_pool",
                new=AsyncMock(side_effect=OSError("refused")),
            ),
            patch("chronicle.core.pool.asyncio.sleep", new=AsyncMock()),
            pytest.raises(StorageError, match="2 attempts"),
        ):
            await pool.connect()
        assert not pool.is_connected

    async def test_transaction_requires_connection(self):
        with pytest.raises(RuntimeError, match="not connected"):
            async with Pool().transaction():
                pass

    async def test_close_is_idempotent(self):
        pool = Pool()
        inner = MagicMock()
        inner.close = AsyncMock()
        pool._pool = inner
        await pool.close()
        await pool.close()
        inner.close.assert_awaited_once()
        assert not pool.is_connected


class TestQueryRetry:
    def _pool_with(self, conn: MagicMock) -> Pool:
        pool = Pool(PoolConfig(retry=PoolRetryConfig(max_attempts=2, initial_delay=0.1)))
        acquire_ctx = MagicMock()
        acquire_ctx.__aenter__ = AsyncMock(return_value=conn)
        acquire_ctx.__aexit__ = AsyncMock(return_value=None)
        inner = MagicMock()
        inner.acquire.return_value = acquire_ctx
        pool._pool = inner
        return pool

    async def test_retries_on_interface_error(self):
        conn = MagicMock()
        conn.fetchval = AsyncMock(side_effect=[asyncpg.InterfaceError("lost"), 42])
        pool = self._pool_with(conn)
        with patch("chronicle.core.pool.asyncio.sleep", new=AsyncMock()):
            assert await pool.fetchval("SELECT 42") == 42

    async def test_gives_up(self):
        conn = MagicMock()
        conn.execute = AsyncMock(side_effect=asyncpg.InterfaceError("lost"))
        pool = self._pool_with(conn)
        with (
            patch("chronicle.core.pool.asyncio.sleep", new=AsyncMock()),
            pytest.raises(StorageError),
        ):
            await pool.execute("SELECT 1")
