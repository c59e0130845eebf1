"""Thread-root extraction from event tags (NIP-10).

Root resolution is one level deep: only the event's own ``e``
tags are inspected, the reply chain is never walked.

Resolution order:

1. A single ``["e", <id>, <relay>, "root"]`` tag names the root.
2. Several root-marked tags naming different ids make the tag set
   ambiguous; the event is treated as root-less.
3. Without a root marker, the first well-formed ``e`` tag is the root
   (the deprecated positional scheme of NIP-10).
4. No usable ``e`` tag means the event is itself a root.

Tags whose id is not 64 lowercase hex characters are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ._validation import is_hex


_ROOT_MARKER = "root"


@dataclass(frozen=True, slots=True)
class ThreadReference:
    """Reference from an event to the root of its thread.

    Attributes:
        event_id: Hex id of the root event.
        relay_hint: Relay URL where the root was last seen, if the tag has one.
        marker: NIP-10 marker (``"root"``) or ``None`` for positional tags.
    """

    event_id: str
    relay_hint: str | None = None
    marker: str | None = None

    @classmethod
    def from_tag(cls, tag: Sequence[str]) -> ThreadReference | None:
        """Parse an ``e`` tag, returning ``None`` if it is malformed."""
        if len(tag) < 2 or tag[0] != "e" or not is_hex(tag[1], 64):
            return None
        relay_hint = tag[2] if len(tag) > 2 and tag[2] else None
        marker = tag[3] if len(tag) > 3 and tag[3] else None
        return cls(event_id=tag[1], relay_hint=relay_hint, marker=marker)


def get_thread_root(tags: Iterable[Sequence[str]]) -> ThreadReference | None:
    """Return the thread root referenced by *tags*, or ``None`` for a root event."""
    references = [ref for ref in (ThreadReference.from_tag(tag) for tag in tags) if ref]
    if not references:
        return None

    rooted = [ref for ref in references if ref.marker == _ROOT_MARKER]
    if rooted:
        if len({ref.event_id for ref in rooted}) > 1:
            return None
        return rooted[0]

    return references[0]
