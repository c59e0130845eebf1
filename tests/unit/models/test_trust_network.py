"""Unit tests for models.trust_network and the kind groups in models.constants."""

import pytest

from chronicle.models import (
    ARCHIVE_KINDS,
    PROFILE_KINDS,
    REFERENCE_KINDS,
    ROOT_KINDS,
    THREAD_KINDS,
    EventKind,
    TrustNetwork,
)


class TestTrustNetwork:
    def test_membership(self):
        network = TrustNetwork(members=frozenset({"a" * 64}))
        assert "a" * 64 in network
        assert "b" * 64 not in network
        assert len(network) == 1

    def test_follower_count_defaults_to_zero(self):
        network = TrustNetwork(follower_counts={"a" * 64: 4})
        assert network.follower_count("a" * 64) == 4
        assert network.follower_count("b" * 64) == 0

    def test_counts_are_read_only(self):
        counts = {"a" * 64: 1}
        network = TrustNetwork(follower_counts=counts)
        counts["a" * 64] = 9
        assert network.follower_count("a" * 64) == 1
        with pytest.raises(TypeError):
            network.follower_counts["b" * 64] = 2  # type: ignore[index]

    def test_of_owners(self):
        network = TrustNetwork.of_owners(["a" * 64, "b" * 64])
        assert network.members == frozenset({"a" * 64, "b" * 64})
        assert network.built_at > 0


class TestKindGroups:
    def test_thread_kinds(self):
        assert THREAD_KINDS == ROOT_KINDS | REFERENCE_KINDS
        assert {1, 5, 7, 9734, 9735, 30023} == set(THREAD_KINDS)

    def test_archive_kinds_cover_thread_kinds(self):
        assert THREAD_KINDS <= ARCHIVE_KINDS
        assert EventKind.ENCRYPTED_DIRECT_MESSAGE in ARCHIVE_KINDS
        assert EventKind.REPOST in ARCHIVE_KINDS

    def test_profile_kinds(self):
        assert set(PROFILE_KINDS) == {0, 3, 10002}
