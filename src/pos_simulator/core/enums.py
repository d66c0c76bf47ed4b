"""Enumerations used across the simulator."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PromotionKind(str, Enum):
    PERCENT_OFF = "percent_off"
    AMOUNT_OFF = "amount_off"


class EventType(str, Enum):
    """Tags carried in the ``event`` field of the stream envelope."""

    CONNECTED = "connected"
    ORDER_CREATED = "order.created"
    PRICE_UPDATED = "price.updated"
    MENU_PUBLISHED = "menu.published"
    PROMOTION_CREATED = "promotion.created"


class DeliveryState(str, Enum):
    """Webhook delivery lifecycle.

    PENDING -> SENDING -> {SUCCESS | RETRYING}
    RETRYING -> SENDING
    SENDING -> EXHAUSTED  (final attempt failed)
    """

    PENDING = "pending"
    SENDING = "sending"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


TERMINAL_DELIVERY_STATES: frozenset[DeliveryState] = frozenset({
    DeliveryState.SUCCESS,
    DeliveryState.EXHAUSTED,
})
