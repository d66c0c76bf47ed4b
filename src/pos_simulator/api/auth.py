"""Shared-secret API key check for mutating routes.

Clients send the key in the ``x-api-key`` header.  The comparison is
constant-time so response timing does not leak how much of a guessed key
was right.
"""

from __future__ import annotations

import hmac

from fastapi import Header, Request

from pos_simulator.core.errors import AuthenticationError


def api_key_matches(provided: str | None, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
) -> None:
    """FastAPI dependency.  Raises ``AuthenticationError`` (401) on mismatch."""
    expected = request.app.state.settings.api_key
    if not api_key_matches(x_api_key, expected):
        raise AuthenticationError("Unauthorized: Invalid API key")
