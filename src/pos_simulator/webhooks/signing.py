"""HMAC-SHA256 webhook signatures.

The signature is the lowercase hex HMAC-SHA256 of the exact body bytes,
keyed with the shared webhook secret.  Receivers must verify against the
raw body they received, not a re-serialization of it.
"""

from __future__ import annotations

import hashlib
import hmac


def _as_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def sign(payload: bytes | str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of *payload* keyed with *secret*."""
    return hmac.new(_as_bytes(secret), _as_bytes(payload), hashlib.sha256).hexdigest()


def verify(payload: bytes | str, signature: str | bytes | None, secret: str) -> bool:
    """Check *signature* against *payload* in constant time.

    Returns ``False`` rather than raising for a missing signature, one of
    the wrong length, or one that is not ASCII.
    """
    if not signature:
        return False
    try:
        provided = _as_bytes(signature)
        provided.decode("ascii")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return False

    expected = sign(payload, secret).encode("ascii")
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(provided, expected)
