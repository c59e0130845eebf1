"""
Unit tests for curation.backup module.

Tests:
- publish_all() isolation between failing and succeeding destinations
- propagate() detached publishing through the supervisor
- Timeouts mapped to PublishingError
"""

import asyncio

import pytest
from conftest import FakeSourcePool, make_event

from chronicle.core.exceptions import PublishingError
from chronicle.curation.backup import BackupPropagator


GOOD = "wss://good.example"
BAD = "wss://bad.example"


class TestBackupPropagator:
    def test_destinations_deduplicated(self, source, supervisor):
        backup = BackupPropagator(source, [GOOD, GOOD, BAD], supervisor)
        assert backup.destinations == [GOOD, BAD]

    async def test_one_failure_does_not_affect_others(self, source, supervisor):
        source.failing.add(BAD)
        event = make_event()
        backup = BackupPropagator(source, [BAD, GOOD], supervisor)
        assert await backup.publish_all(event) == {BAD: False, GOOD: True}
        assert source.published == [(GOOD, event)]

    async def test_propagate_is_detached(self, source, supervisor):
        event = make_event()
        backup = BackupPropagator(source, [GOOD, BAD], supervisor)
        backup.propagate(event)
        assert supervisor.pending == 2
        assert source.published == []
        await supervisor.join()
        assert {url for url, _ in source.published} == {GOOD, BAD}

    async def test_no_destinations(self, source, supervisor):
        backup = BackupPropagator(source, [], supervisor)
        backup.propagate(make_event())
        assert supervisor.pending == 0
        assert await backup.publish_all(make_event()) == {}

    async def test_timeout(self, supervisor):
        class Hanging(FakeSourcePool):
            async def publish(self, url, event, *, timeout):
                await asyncio.sleep(3600)

        backup = BackupPropagator(Hanging(), [GOOD], supervisor, timeout=0.01)
        with pytest.raises(PublishingError, match="timed out"):
            await backup.publish(GOOD, make_event())
        assert await backup.publish_one(GOOD, make_event()) is False

    async def test_rejection_wrapped(self, source, supervisor):
        source.failing.add(BAD)
        backup = BackupPropagator(source, [BAD], supervisor)
        with pytest.raises(PublishingError, match="rejected"):
            await backup.publish(BAD, make_event())
