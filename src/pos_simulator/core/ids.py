"""Canonical ID and timestamp factories for the simulator.

All modules import from here instead of defining local _id()/_now() copies.

ID Rule
-------
Entity IDs (catalog items, orders, promotions) are 8 random bytes from
``secrets``, hex-encoded (16 characters).  Uniqueness is probabilistic;
at the scale of a test venue the collision chance is negligible.

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``, never naive.
On the wire they are ISO-8601 with millisecond precision and a ``Z``
suffix, the format JavaScript clients produce with ``toISOString()``.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def new_id(nbytes: int = 8) -> str:
    """Generate a random hex entity ID."""
    return secrets.token_hex(nbytes)


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime) -> str:
    """Format *dt* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
