"""Custom exception hierarchy for the POS simulator."""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class PosError(Exception):
    """Base exception for all simulator errors."""


# --- Configuration ---
class ConfigError(PosError):
    """Invalid or missing configuration."""


# --- Requests ---
class AuthenticationError(PosError):
    """Missing or wrong shared API key."""


class ValidationError(PosError):
    """Missing or malformed request fields.  Raised before any mutation."""


class NotFoundError(PosError):
    """A referenced catalog item, order or promotion does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


# --- Pricing ---
class GuardrailViolation(PosError):
    """Proposed price is outside the item's [minPrice, maxPrice] band."""

    def __init__(self, reason: str, bound: str, limit: Decimal, margin: Decimal):
        self.reason = reason
        self.bound = bound
        self.limit = limit
        self.margin = margin
        super().__init__(reason)


# --- Webhooks ---
class DeliveryError(PosError):
    """Outbound webhook delivery error."""


class DeliveryExhausted(DeliveryError):
    """Every allowed attempt failed.  Logged only, never surfaced to HTTP callers."""

    def __init__(
        self,
        endpoint: str,
        attempts: int,
        last_error: str,
        result: Any = None,
    ):
        self.endpoint = endpoint
        self.attempts = attempts
        self.last_error = last_error
        self.result = result  # DeliveryResult with the full attempt history
        super().__init__(
            f"Webhook to {endpoint} failed after {attempts} attempts: {last_error}"
        )
