"""Remote relay access for backfill, archival, trust rebuilds and backups.

Everything that talks to other relays goes through the
[SourcePool][chronicle.utils.protocol.SourcePool] protocol so the curation
engine can be tested against in-memory fakes.
[NostrSourcePool][chronicle.utils.protocol.NostrSourcePool] implements it
with ``nostr_sdk``: one short-lived client per relay, signature-verified
events only, and every request bounded by an explicit deadline.

Attributes:
    create_client: Read-only client factory.
    SourcePool: Protocol consumed by the curation layer.
    NostrSourcePool: ``nostr_sdk`` implementation.

Note:
    The utils layer has **zero** imports from ``chronicle.core``; failures
    surface as ``OSError`` / ``TimeoutError`` and are translated by callers.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from nostr_sdk import Client, ClientBuilder, NostrSdkError, RelayUrl

from chronicle.models.event import Event


if TYPE_CHECKING:
    from chronicle.models.filter import EventFilter


logger = logging.getLogger(__name__)

_DONE = object()


def create_client() -> Client:
    """Create an unsigned client; pre-signed events can still be published."""
    return ClientBuilder().build()


class SourcePool(Protocol):
    """Access to a set of remote relays."""

    def subscribe_many(
        self,
        urls: Sequence[str],
        filters: Sequence[EventFilter],
        *,
        timeout: float,  # noqa: ASYNC109
    ) -> AsyncIterator[Event]:
        """Yield events matching any of *filters* from all *urls*.

        Results are merged and deduplicated by id; iteration ends once every
        relay finished or *timeout* seconds elapsed.
        """
        ...

    async def publish(self, url: str, event: Event, *, timeout: float) -> None:  # noqa: ASYNC109
        """Send *event* to *url*, raising if the relay did not accept it."""
        ...


class NostrSourcePool:
    """[SourcePool][chronicle.utils.protocol.SourcePool] backed by ``nostr_sdk``."""

    def __init__(self, connect_timeout: float = 10.0) -> None:
        self._connect_timeout = connect_timeout

    async def _connect(self, url: str, timeout: float) -> tuple[Client, RelayUrl]:  # noqa: ASYNC109
        relay_url = RelayUrl.parse(url)
        client = create_client()
        await client.add_relay(relay_url)
        output = await client.try_connect(timedelta(seconds=max(timeout, 0.1)))
        if relay_url not in output.success:
            error = output.failed.get(relay_url, "Unknown error")
            with contextlib.suppress(Exception):
                await client.shutdown()
            raise OSError(f"Connection failed: {url} ({error})")
        return client, relay_url

    async def _fetch_from(
        self,
        url: str,
        filters: Sequence[EventFilter],
        deadline: float,
        queue: asyncio.Queue[object],
    ) -> None:
        client: Client | None = None
        try:
            remaining = deadline - time.monotonic()
            client, _ = await self._connect(url, min(self._connect_timeout, remaining))
            for event_filter in filters:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                events = await client.fetch_events(
                    event_filter.to_nostr_filter(), timedelta(seconds=remaining)
                )
                for evt in events.to_vec():
                    try:
                        if evt.verify():
                            queue.put_nowait(Event.from_nostr(evt))
                    except (ValueError, TypeError, OverflowError):
                        continue
        except (OSError, TimeoutError, NostrSdkError, ValueError) as e:
            logger.warning("source_fetch_failed relay=%s error=%s", url, e)
        finally:
            queue.put_nowait(_DONE)
            if client is not None:
                # nostr-sdk shutdown can raise arbitrary errors from the Rust FFI layer
                with contextlib.suppress(Exception):
                    await client.shutdown()

    async def subscribe_many(
        self,
        urls: Sequence[str],
        filters: Sequence[EventFilter],
        *,
        timeout: float,  # noqa: ASYNC109
    ) -> AsyncIterator[Event]:
        """Fetch from every relay concurrently, yielding events as they arrive."""
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls or not filters:
            return

        deadline = time.monotonic() + timeout
        queue: asyncio.Queue[object] = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._fetch_from(url, filters, deadline, queue))
            for url in unique_urls
        ]
        seen: set[str] = set()
        finished = 0

        try:
            while finished < len(tasks):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=remaining)
                except TimeoutError:
                    break
                if not isinstance(item, Event):
                    finished += 1
                    continue
                if item.id in seen:
                    continue
                seen.add(item.id)
                yield item
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(
                "subscribe_many_done relays=%s events=%s finished=%s",
                len(tasks),
                len(seen),
                finished,
            )

    async def publish(self, url: str, event: Event, *, timeout: float) -> None:  # noqa: ASYNC109
        """Publish a pre-signed event to a single relay.

        Raises:
            OSError: If the relay is unreachable or rejected the event.
            TimeoutError: If *timeout* elapsed first.
        """
        client: Client | None = None
        try:
            async with asyncio.timeout(timeout):
                client, relay_url = await self._connect(url, timeout)
                output = await client.send_event(event.to_nostr())
            if relay_url not in output.success:
                error = output.failed.get(relay_url, "Unknown error")
                raise OSError(f"Publish rejected by {url}: {error}")
        except NostrSdkError as e:
            raise OSError(f"Publish to {url} failed: {e}") from e
        finally:
            if client is not None:
                with contextlib.suppress(Exception):
                    await client.shutdown()
