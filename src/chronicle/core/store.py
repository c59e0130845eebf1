"""
PostgreSQL event table behind the relay's storage hooks.

[EventStore][chronicle.core.store.EventStore] wraps a private
[Pool][chronicle.core.pool.Pool] and exposes the handful of operations the
relay runtime needs: insert with duplicate detection, NIP-01 filter queries,
and deletion. Ids, pubkeys and signatures are stored as
``BYTEA``; tags as ``JSONB`` so ``#e``/``#p`` conditions can be evaluated in
SQL.

See Also:
    [Relay][chronicle.core.relay.Relay]: Registers the store methods as hooks.
    [EventDbParams][chronicle.models.event.EventDbParams]: Row layout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import asyncpg
from pydantic import BaseModel, Field

from chronicle.models import Event, EventDbParams

from .exceptions import StorageError
from .logger import Logger
from .pool import Pool


if TYPE_CHECKING:
    from chronicle.models import EventFilter


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS event (
        id BYTEA PRIMARY KEY,
        pubkey BYTEA NOT NULL,
        created_at BIGINT NOT NULL,
        kind INTEGER NOT NULL,
        tags JSONB NOT NULL,
        content TEXT NOT NULL,
        sig BYTEA NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS event_pubkey_created_at_idx ON event (pubkey, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS event_kind_created_at_idx ON event (kind, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS event_tags_idx ON event USING GIN (tags jsonb_path_ops)",
)

_COLUMNS = "id, pubkey, created_at, kind, tags::text, content, sig"


class StoreConfig(BaseModel):
    """Event store settings."""

    query_timeout: float = Field(default=30.0, ge=0.1, description="Per-statement timeout")
    default_limit: int = Field(
        default=500, ge=1, le=10_000, description="Row cap for filters without a limit"
    )


class EventStore:
    """Event persistence over an asyncpg [Pool][chronicle.core.pool.Pool].

    Database errors are re-raised as
    [StorageError][chronicle.core.exceptions.StorageError].
    """

    def __init__(self, pool: Pool | None = None, config: StoreConfig | None = None) -> None:
        self._pool = pool or Pool()
        self._config = config or StoreConfig()
        self._logger = Logger("store")

    @property
    def pool(self) -> Pool:
        """The underlying connection pool."""
        return self._pool

    @property
    def config(self) -> StoreConfig:
        """The store configuration (read-only)."""
        return self._config

    async def initialize(self) -> None:
        """Create the event table and its indexes if they do not exist."""
        try:
            async with self._pool.transaction() as conn:
                for statement in _SCHEMA:
                    await conn.execute(statement)
        except asyncpg.PostgresError as e:
            raise StorageError(f"schema initialization failed: {e}") from e
        self._logger.info("schema_ready")

    async def save_event(self, event: Event) -> bool:
        """Insert *event*.

        Returns:
            ``True`` if the row is new, ``False`` if the id was already stored.
        """
        try:
            status = await self._pool.execute(
                "INSERT INTO event (id, pubkey, created_at, kind, tags, content, sig) "
                "VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7) ON CONFLICT (id) DO NOTHING",
                *event.to_db_params(),
                timeout=self._config.query_timeout,
            )
        except asyncpg.PostgresError as e:
            raise StorageError(f"insert of event {event.id} failed: {e}") from e

        inserted = status.endswith(" 1")
        self._logger.debug("event_saved", id=event.id, kind=event.kind, new=inserted)
        return inserted

    async def delete_event(self, event_id: str) -> bool:
        """Delete the event with *event_id*; return True if a row was removed."""
        try:
            status = await self._pool.execute(
                "DELETE FROM event WHERE id = $1",
                bytes.fromhex(event_id),
                timeout=self._config.query_timeout,
            )
        except asyncpg.PostgresError as e:
            raise StorageError(f"delete of event {event_id} failed: {e}") from e
        return status.endswith(" 1")

    async def query_events(self, event_filter: EventFilter) -> list[Event]:
        """Return stored events matching *event_filter*, newest first."""
        query, args = self._build_query(event_filter)
        try:
            rows = await self._pool.fetch(query, *args, timeout=self._config.query_timeout)
        except asyncpg.PostgresError as e:
            raise StorageError(f"event query failed: {e}") from e
        return [Event.from_db_params(EventDbParams(*row)) for row in rows]

    def _build_query(self, event_filter: EventFilter) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        args: list[Any] = []

        def param(value: Any) -> str:
            args.append(value)
            return f"${len(args)}"

        if event_filter.ids:
            clauses.append(f"id = ANY({param([bytes.fromhex(i) for i in event_filter.ids])})")
        if event_filter.authors:
            clauses.append(
                f"pubkey = ANY({param([bytes.fromhex(p) for p in event_filter.authors])})"
            )
        if event_filter.kinds:
            clauses.append(f"kind = ANY({param(sorted(event_filter.kinds))})")
        if event_filter.since is not None:
            clauses.append(f"created_at >= {param(event_filter.since)}")
        if event_filter.until is not None:
            clauses.append(f"created_at <= {param(event_filter.until)}")
        for letter, values in event_filter.tags.items():
            clauses.append(
                "EXISTS (SELECT 1 FROM jsonb_array_elements(tags) AS t "
                f"WHERE t->>0 = {param(letter)} AND t->>1 = ANY({param(sorted(values))}))"
            )

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        limit = param(event_filter.limit or self._config.default_limit)
        return f"SELECT {_COLUMNS} FROM event{where} ORDER BY created_at DESC LIMIT {limit}", args

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect the underlying pool. Idempotent."""
        await self._pool.connect()

    async def close(self) -> None:
        """Close the underlying pool. Idempotent."""
        await self._pool.close()

    async def __aenter__(self) -> EventStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._pool.config.database
        return f"EventStore(host={db.host}, database={db.database}, connected={self._pool.is_connected})"
