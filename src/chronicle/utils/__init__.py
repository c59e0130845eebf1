"""Key normalization and remote relay access.

The utils layer sits in the middle of the diamond DAG, depending only on
[chronicle.models][chronicle.models].

Attributes:
    keys: ``npub``/hex public key parsing and ``rfc3986`` relay URL
        normalization used by configuration validators.
    protocol: The [SourcePool][chronicle.utils.protocol.SourcePool] protocol
        and its ``nostr_sdk`` implementation.

Note:
    The utils layer has **zero** imports from ``chronicle.core`` or
    ``chronicle.services``.
"""

from .keys import normalize_relay_url, parse_pubkey
from .protocol import NostrSourcePool, SourcePool, create_client


__all__ = [
    "NostrSourcePool",
    "SourcePool",
    "create_client",
    "normalize_relay_url",
    "parse_pubkey",
]
