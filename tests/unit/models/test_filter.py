"""
Unit tests for models.filter module.

Tests:
- EventFilter normalization and validation
- is_empty()
- matches() for ids, authors, kinds, time bounds and tag conditions
- to_nostr_filter() conversion
"""

import pytest
from conftest import make_event
from nostr_sdk import Filter

from chronicle.models import EventFilter, EventKind


class TestConstruction:
    """EventFilter normalization."""

    def test_sets_become_frozensets(self):
        f = EventFilter(ids={"a" * 64}, kinds={1})  # type: ignore[arg-type]
        assert isinstance(f.ids, frozenset)
        assert isinstance(f.kinds, frozenset)

    def test_empty_tag_values_dropped(self):
        f = EventFilter(tags={"e": frozenset()})
        assert dict(f.tags) == {}

    def test_invalid_tag_name(self):
        with pytest.raises(ValueError, match="single letter"):
            EventFilter(tags={"ee": frozenset({"x"})})

    def test_hashable(self):
        f = EventFilter(kinds=frozenset({1}), tags={"p": frozenset({"a" * 64})})
        assert f in {f}


class TestIsEmpty:
    def test_default(self):
        assert EventFilter().is_empty()

    def test_limit_alone_is_empty(self):
        assert EventFilter(limit=10).is_empty()

    def test_with_kind(self):
        assert not EventFilter(kinds=frozenset({1})).is_empty()

    def test_with_since(self):
        assert not EventFilter(since=0).is_empty()


class TestMatches:
    """EventFilter.matches()."""

    def test_empty_matches_everything(self):
        assert EventFilter().matches(make_event())

    def test_ids(self):
        event = make_event()
        assert EventFilter(ids=frozenset({event.id})).matches(event)
        assert not EventFilter(ids=frozenset({"f" * 64})).matches(event)

    def test_authors_and_kinds(self):
        event = make_event(pubkey="a" * 64, kind=EventKind.REACTION)
        assert EventFilter(authors=frozenset({"a" * 64}), kinds=frozenset({7})).matches(event)
        assert not EventFilter(authors=frozenset({"a" * 64}), kinds=frozenset({1})).matches(event)

    def test_time_bounds_inclusive(self):
        event = make_event(created_at=100)
        assert EventFilter(since=100, until=100).matches(event)
        assert not EventFilter(since=101).matches(event)
        assert not EventFilter(until=99).matches(event)

    def test_tag_condition(self):
        event = make_event(tags=[("e", "b" * 64), ("p", "c" * 64)])
        assert EventFilter(tags={"e": frozenset({"b" * 64})}).matches(event)
        assert not EventFilter(tags={"e": frozenset({"c" * 64})}).matches(event)

    def test_all_tag_conditions_required(self):
        event = make_event(tags=[("e", "b" * 64)])
        f = EventFilter(tags={"e": frozenset({"b" * 64}), "p": frozenset({"c" * 64})})
        assert not f.matches(event)


class TestToNostrFilter:
    def test_returns_sdk_filter(self):
        f = EventFilter(
            authors=frozenset({"3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"}),
            kinds=frozenset({1, 7}),
            tags={"e": frozenset({"b" * 64})},
            since=1,
            limit=10,
        )
        assert isinstance(f.to_nostr_filter(), Filter)
