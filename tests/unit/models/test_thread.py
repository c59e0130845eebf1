"""
Unit tests for models.thread module.

Tests:
- ThreadReference.from_tag() parsing and malformed tags
- get_thread_root() marker, positional and ambiguous resolution
"""

from chronicle.models import ThreadReference, get_thread_root


ROOT = "a" * 64
OTHER = "b" * 64


class TestFromTag:
    """ThreadReference.from_tag()."""

    def test_full_tag(self):
        ref = ThreadReference.from_tag(["e", ROOT, "wss://relay.example.com", "root"])
        assert ref == ThreadReference(ROOT, "wss://relay.example.com", "root")

    def test_bare_tag(self):
        ref = ThreadReference.from_tag(["e", ROOT])
        assert ref is not None
        assert ref.relay_hint is None
        assert ref.marker is None

    def test_empty_hint_is_none(self):
        ref = ThreadReference.from_tag(["e", ROOT, "", "reply"])
        assert ref is not None
        assert ref.relay_hint is None
        assert ref.marker == "reply"

    def test_other_tag_name(self):
        assert ThreadReference.from_tag(["p", ROOT]) is None

    def test_invalid_id(self):
        assert ThreadReference.from_tag(["e", "not-an-id"]) is None
        assert ThreadReference.from_tag(["e"]) is None


class TestGetThreadRoot:
    """get_thread_root() resolution order."""

    def test_no_tags_means_root_event(self):
        assert get_thread_root([]) is None

    def test_marked_root(self):
        tags = [["e", OTHER, "", "reply"], ["e", ROOT, "", "root"]]
        ref = get_thread_root(tags)
        assert ref is not None
        assert ref.event_id == ROOT

    def test_positional_first_tag(self):
        ref = get_thread_root([["p", "c" * 64], ["e", ROOT], ["e", OTHER]])
        assert ref is not None
        assert ref.event_id == ROOT

    def test_conflicting_root_markers(self):
        tags = [["e", ROOT, "", "root"], ["e", OTHER, "", "root"]]
        assert get_thread_root(tags) is None

    def test_repeated_identical_root_marker(self):
        tags = [["e", ROOT, "", "root"], ["e", ROOT, "wss://x.example", "root"]]
        ref = get_thread_root(tags)
        assert ref is not None
        assert ref.event_id == ROOT

    def test_malformed_e_tags_ignored(self):
        assert get_thread_root([["e", "xyz", "", "root"]]) is None
