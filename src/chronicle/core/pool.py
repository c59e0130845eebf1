"""
asyncpg connection pool behind the event store.

The pool is created lazily by [connect()][chronicle.core.pool.Pool.connect],
which retries with backoff while PostgreSQL is still starting. Statements
issued through [fetch()][chronicle.core.pool.Pool.fetch],
[fetchval()][chronicle.core.pool.Pool.fetchval] and
[execute()][chronicle.core.pool.Pool.execute] are retried when the
connection drops underneath them; SQL errors surface immediately as
``asyncpg.PostgresError``.

See Also:
    [EventStore][chronicle.core.store.EventStore]: The only consumer.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Iterator  # noqa: TC003
from contextlib import asynccontextmanager
from typing import Any, Literal

import asyncpg
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from .exceptions import StorageError
from .logger import Logger


_DEFAULT_PASSWORD_ENV = "DB_PASSWORD"  # pragma: allowlist secret

# Errors meaning "the connection went away", as opposed to a failing statement
_TRANSIENT_ERRORS = (asyncpg.InterfaceError, asyncpg.ConnectionDoesNotExistError)


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """Where the event table lives.

    The password never appears in YAML: it is read from the environment
    variable named by ``password_env``.
    """

    host: str = Field(default="localhost", min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="chronicle", min_length=1)
    user: str = Field(default="chronicle", min_length=1)
    password_env: str = Field(default=_DEFAULT_PASSWORD_ENV, min_length=1)
    password: SecretStr

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "password" in data:
            return data
        env_var = data.get("password_env", _DEFAULT_PASSWORD_ENV)
        secret = os.getenv(env_var)
        if not secret:
            raise ValueError(f"{env_var} environment variable not set")
        return {**data, "password": SecretStr(secret)}


class PoolLimitsConfig(BaseModel):
    """How many connections the store may hold."""

    min_size: int = Field(default=1, ge=1, le=100)
    max_size: int = Field(default=10, ge=1, le=200)
    max_inactive_connection_lifetime: float = Field(default=300.0, ge=0.0)

    @field_validator("max_size")
    @classmethod
    def at_least_min_size(cls, v: int, info: ValidationInfo) -> int:
        min_size = info.data.get("min_size", 1)
        if v < min_size:
            raise ValueError(f"max_size ({v}) must be >= min_size ({min_size})")
        return v


class PoolRetryConfig(BaseModel):
    """Backoff used for connecting and for statements hit by a dropped connection.

    With ``exponential_backoff`` the n-th delay is ``initial_delay * 2**n``,
    otherwise ``initial_delay * (n + 1)``; both are capped at ``max_delay``.
    """

    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_delay: float = Field(default=1.0, ge=0.1)
    max_delay: float = Field(default=10.0, ge=0.1)
    exponential_backoff: bool = True

    @field_validator("max_delay")
    @classmethod
    def at_least_initial_delay(cls, v: float, info: ValidationInfo) -> float:
        initial_delay = info.data.get("initial_delay", 1.0)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (``max_attempts - 1`` values)."""
        for attempt in range(self.max_attempts - 1):
            if self.exponential_backoff:
                delay = self.initial_delay * (2**attempt)
            else:
                delay = self.initial_delay * (attempt + 1)
            yield float(min(delay, self.max_delay))


class PoolConfig(BaseModel):
    """The ``pool`` section of ``config/store.yaml``."""

    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig.model_validate({}))
    limits: PoolLimitsConfig = Field(default_factory=PoolLimitsConfig)
    acquisition_timeout: float = Field(default=10.0, ge=0.1)
    retry: PoolRetryConfig = Field(default_factory=PoolRetryConfig)
    application_name: str = "chronicle"


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class Pool:
    """Lazily connected asyncpg pool with retrying statements."""

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self._lock = asyncio.Lock()
        self._logger = Logger("pool")

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Pool:
        return cls(config=PoolConfig(**config_dict))

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool, waiting out a database that is not up yet. Idempotent.

        Raises:
            StorageError: If every attempt failed.
        """
        async with self._lock:
            if self._pool is not None:
                return

            db = self._config.database
            self._logger.info("pool_connecting", host=db.host, port=db.port, database=db.database)
            delays = self._config.retry.delays()
            attempt = 0

            while True:
                attempt += 1
                try:
                    self._pool = await asyncpg.create_pool(
                        host=db.host,
                        port=db.port,
                        database=db.database,
                        user=db.user,
                        password=db.password.get_secret_value(),
                        min_size=self._config.limits.min_size,
                        max_size=self._config.limits.max_size,
                        max_inactive_connection_lifetime=(
                            self._config.limits.max_inactive_connection_lifetime
                        ),
                        timeout=self._config.acquisition_timeout,
                        server_settings={"application_name": self._config.application_name},
                    )
                except (asyncpg.PostgresError, OSError) as e:
                    delay = next(delays, None)
                    if delay is None:
                        self._logger.error("pool_connect_failed", attempts=attempt, error=str(e))
                        raise StorageError(
                            f"database unreachable after {attempt} attempts: {e}"
                        ) from e
                    self._logger.warning(
                        "pool_connect_retry", attempt=attempt, delay_s=delay, error=str(e)
                    )
                    await asyncio.sleep(delay)
                else:
                    self._logger.info("pool_connected")
                    return

    async def close(self) -> None:
        """Release every connection. Idempotent."""
        async with self._lock:
            pool, self._pool = self._pool, None
            if pool is not None:
                await pool.close()
                self._logger.info("pool_closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Pool not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection inside a transaction committed on normal exit."""
        async with self._require_pool().acquire() as conn, conn.transaction():
            yield conn

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    async def _run(
        self,
        method: Literal["fetch", "fetchval", "execute"],
        query: str,
        args: tuple[Any, ...],
        timeout: float | None,  # noqa: ASYNC109
    ) -> Any:
        delays = self._config.retry.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._require_pool().acquire() as conn:
                    return await getattr(conn, method)(query, *args, timeout=timeout)
            except _TRANSIENT_ERRORS as e:
                delay = next(delays, None)
                if delay is None:
                    self._logger.error("statement_failed", method=method, attempts=attempt, error=str(e))
                    raise StorageError(f"{method} failed after {attempt} attempts: {e}") from e
                self._logger.warning(
                    "statement_retry", method=method, attempt=attempt, delay_s=delay, error=str(e)
                )
                await asyncio.sleep(delay)

    async def fetch(self, query: str, *args: Any, timeout: float | None = None) -> list[asyncpg.Record]:  # noqa: ASYNC109
        """Return every row produced by *query*."""
        return await self._run("fetch", query, args, timeout)  # type: ignore[no-any-return]

    async def fetchval(self, query: str, *args: Any, timeout: float | None = None) -> Any:  # noqa: ASYNC109
        """Return the first column of the first row."""
        return await self._run("fetchval", query, args, timeout)

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:  # noqa: ASYNC109
        """Run a statement and return its status tag, e.g. ``"INSERT 0 1"``."""
        return await self._run("execute", query, args, timeout)  # type: ignore[no-any-return]

    async def __aenter__(self) -> Pool:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._config.database
        return f"Pool(host={db.host}, database={db.database}, connected={self.is_connected})"
