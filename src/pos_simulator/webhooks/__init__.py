"""Outbound webhooks: HMAC signing and retried delivery."""

from pos_simulator.webhooks.delivery import (
    DeliveryResult,
    WebhookDeliveryAgent,
    WebhookDispatcher,
    serialize_payload,
)
from pos_simulator.webhooks.signing import sign, verify

__all__ = [
    "DeliveryResult",
    "WebhookDeliveryAgent",
    "WebhookDispatcher",
    "serialize_payload",
    "sign",
    "verify",
]
