"""
Unit tests for services.refresher.archiver and profiles modules.

Tests:
- Archiver filters over owner-authored and owner-tagged events
- Duplicate deliveries counted once and ingested once
- Trusted, untrusted and failed tallies
- ProfileRefresher keeping the newest event per owner and kind
"""

from unittest.mock import AsyncMock, MagicMock

from conftest import OWNER, STRANGER, FakeSourcePool, make_event, reply_to

from chronicle.core.exceptions import StorageError
from chronicle.models import EventKind
from chronicle.services.refresher import Archiver, ArchiveStats, ProfileRefresher


SEED = "wss://seed.example"
MIRROR = "wss://mirror.example"


class DuplicatingSource(FakeSourcePool):
    """Yields every matching event once per relay, like overlapping subscriptions."""

    async def subscribe_many(self, urls, filters, *, timeout):
        self.requests.append((list(urls), list(filters)))
        for url in urls:
            for event in self.relays.get(url, []):
                if any(f.matches(event) for f in filters):
                    yield event


class TestArchiver:
    def test_filters(self, policy):
        archiver = Archiver(FakeSourcePool(), [SEED], [OWNER], policy)
        authored, tagged = archiver.filters()
        assert authored.authors == frozenset({OWNER})
        assert tagged.tags["p"] == frozenset({OWNER})
        assert EventKind.ENCRYPTED_DIRECT_MESSAGE in authored.kinds

    async def test_duplicates_ingested_once(self, policy, store):
        note = make_event(pubkey=OWNER)
        source = DuplicatingSource({SEED: [note], MIRROR: [note]})
        stats = await Archiver(source, [SEED, MIRROR], [OWNER], policy).run(5)
        assert (stats.trusted, stats.duplicates) == (1, 1)
        assert list(store.events) == [note.id]
        assert policy.counters.accepted == 1

    async def test_untrusted_mentions(self, policy, store):
        mention = make_event(pubkey=STRANGER, tags=[("p", OWNER)])
        unrelated = make_event(pubkey=STRANGER)
        source = FakeSourcePool({SEED: [mention, unrelated]})
        stats = await Archiver(source, [SEED], [OWNER], policy).run(5)
        assert stats == ArchiveStats(trusted=0, untrusted=1, duration=stats.duration)
        assert store.events == {}

    async def test_failed_ingest_counted(self):
        policy = MagicMock()
        policy.ingest = AsyncMock(side_effect=[StorageError("down"), True])
        source = FakeSourcePool({SEED: [make_event(pubkey=OWNER), make_event(pubkey=OWNER)]})
        stats = await Archiver(source, [SEED], [OWNER], policy).run(5)
        assert (stats.failed, stats.trusted, stats.received) == (1, 1, 2)

    async def test_default_budget(self, policy):
        source = FakeSourcePool()
        archiver = Archiver(source, [SEED], [OWNER], policy, default_budget=42.0)
        await archiver.run()
        assert source.requests[0][1] == archiver.filters()

    async def test_owner_reply_registers_root(self, policy, registry):
        root_id = "f" * 64
        source = FakeSourcePool({SEED: [reply_to(root_id, pubkey=OWNER)]})
        await Archiver(source, [SEED], [OWNER], policy).run(5)
        assert registry.includes(root_id)


class TestProfileRefresher:
    async def test_newest_per_kind(self, store):
        old_meta = make_event(pubkey=OWNER, kind=EventKind.SET_METADATA, created_at=1)
        new_meta = make_event(pubkey=OWNER, kind=EventKind.SET_METADATA, created_at=2)
        contacts = make_event(pubkey=OWNER, kind=EventKind.CONTACTS)
        note = make_event(pubkey=OWNER)
        other = make_event(pubkey=STRANGER, kind=EventKind.SET_METADATA)
        source = FakeSourcePool({SEED: [old_meta, new_meta, contacts, note, other]})

        stored = await ProfileRefresher(source, [SEED], [OWNER], store.save_event).refresh()

        assert stored == 2
        assert set(store.events) == {new_meta.id, contacts.id}

    async def test_store_failure_skipped(self):
        async def broken(_event):
            raise StorageError("down")

        source = FakeSourcePool({SEED: [make_event(pubkey=OWNER, kind=EventKind.RELAY_LIST)]})
        assert await ProfileRefresher(source, [SEED], [OWNER], broken).refresh() == 0
