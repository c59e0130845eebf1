"""Nostr public key and relay URL normalization.

Configuration accepts owner keys as ``npub1...`` bech32 or 64-char hex and
relay URLs in any casing; everything downstream works with lowercase hex
keys and normalized ``ws(s)://`` URLs so set membership is exact.

Examples:
    ```python
    parse_pubkey("npub1...")                       # '3bf0c63f...'
    normalize_relay_url("WSS://Relay.Damus.io/")   # 'wss://relay.damus.io'
    ```
"""

from __future__ import annotations

from nostr_sdk import NostrSdkError, PublicKey
from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


_DEFAULT_PORTS = {"ws": 80, "wss": 443}


def parse_pubkey(value: str) -> str:
    """Return the lowercase hex form of a public key given as npub or hex.

    Raises:
        ValueError: If *value* is not a valid public key.
    """
    try:
        return PublicKey.parse(value.strip()).to_hex()
    except NostrSdkError as e:
        raise ValueError(f"invalid public key: {value!r}") from e


def normalize_relay_url(raw: str) -> str:
    """Validate and normalize a ``ws://`` or ``wss://`` relay URL.

    Lowercases scheme and host, drops default ports, collapses duplicate
    slashes and strips the trailing slash.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, or carries
            a query string or fragment.
    """
    uri = uri_reference(raw.strip()).normalize()

    validator = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )
    try:
        validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"Invalid scheme in {raw!r}: must be ws or wss") from None
    except ValidationError as e:
        raise ValueError(f"Invalid URL {raw!r}: {e}") from None

    if uri.query or uri.fragment:
        raise ValueError(f"Relay URL must not contain a query or fragment: {raw!r}")

    path = uri.path or ""
    while "//" in path:
        path = path.replace("//", "/")
    path = path.rstrip("/")

    host = uri.host
    if uri.port and int(uri.port) != _DEFAULT_PORTS[uri.scheme]:
        host = f"{host}:{int(uri.port)}"
    return f"{uri.scheme}://{host}{path}"
