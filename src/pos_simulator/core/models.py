"""Core domain models used across the simulator.

These are the canonical "truth models" for the system.  Python code uses
snake_case attributes; the wire format (HTTP bodies, event stream, webhook
body) is camelCase, matching what the pricing platform's clients expect.
Money is ``Decimal`` in memory, rounded to cents on the way in, and a JSON
number on the wire.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

from .enums import OrderStatus, PromotionKind
from .ids import iso_timestamp, new_id, utc_now
from .money import round_money, to_decimal


def _coerce_decimal(value: Any) -> Any:
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            return to_decimal(value)
        except InvalidOperation:
            return value  # Left for pydantic to reject as decimal_parsing
    return value


Money = Annotated[
    Decimal,
    BeforeValidator(_coerce_decimal),
    AfterValidator(round_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]

# Tax rates and promotion values keep their full precision.
Rate = Annotated[
    Decimal,
    BeforeValidator(_coerce_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]

Timestamp = Annotated[
    datetime,
    PlainSerializer(iso_timestamp, return_type=str, when_used="json"),
]


class WireModel(BaseModel):
    """Base for models that travel over HTTP, WebSocket or webhook."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        """Dump to a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class CatalogItem(WireModel):
    """A sellable item.  Mutated in place by catalog and pricing commands.

    ``min_price <= price <= max_price`` is a soft invariant: only the
    guardrail validator checks it, catalog edits do not.
    """

    id: str = Field(default_factory=new_id)
    name: str
    category: str
    price: Money
    min_price: Money
    max_price: Money
    tax_rate: Rate = Decimal("0.0825")
    is_active: bool = True
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Timestamp = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class OrderLine(WireModel):
    """One line of an order, captured at order time."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    name: str
    price: Money
    quantity: int
    subtotal: Money


class Order(WireModel):
    """Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    items: tuple[OrderLine, ...]
    subtotal: Money
    tax: Money
    total: Money
    status: OrderStatus = OrderStatus.COMPLETED
    created_at: Timestamp = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

class Promotion(WireModel):
    """Recorded and broadcast, never applied to order totals."""

    id: str = Field(default_factory=new_id)
    item_id: str
    kind: PromotionKind
    value: Rate
    starts_at: Timestamp | None = None
    ends_at: Timestamp | None = None
    is_active: bool = True
    created_at: Timestamp = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Webhook body
# ---------------------------------------------------------------------------

class WebhookLine(WireModel):
    item_id: str
    name: str
    quantity: int
    price: Money


class WebhookPayload(WireModel):
    """Body POSTed to the pricing platform for every created order."""

    order_id: str
    venue_id: str
    timestamp: str
    items: list[WebhookLine]
    subtotal: Money
    tax: Money
    total: Money

    @classmethod
    def from_order(cls, order: Order, venue_id: str) -> WebhookPayload:
        return cls(
            order_id=order.id,
            venue_id=venue_id,
            timestamp=iso_timestamp(order.created_at),
            items=[
                WebhookLine(
                    item_id=line.item_id,
                    name=line.name,
                    quantity=line.quantity,
                    price=line.price,
                )
                for line in order.items
            ],
            subtotal=order.subtotal,
            tax=order.tax,
            total=order.total,
        )


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------

class DeleteItemResult(WireModel):
    id: str
    deleted: bool = True
    menu_version: int


class PriceUpdateResult(WireModel):
    item: CatalogItem
    menu_version: int
    published: bool


class PublishResult(WireModel):
    menu_version: int
    published_at: Timestamp


class CatalogView(WireModel):
    items: list[CatalogItem]
    menu_version: int


class OrdersView(WireModel):
    orders: list[Order]


class PromotionsView(WireModel):
    promotions: list[Promotion]


class HealthStatus(WireModel):
    ok: bool = True
    menu_version: int
    items: int
    orders: int
    uptime: int  # Seconds since the store was created


# ---------------------------------------------------------------------------
# Inbound command bodies
# ---------------------------------------------------------------------------

class CreateItemRequest(WireModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    price: Money = Field(ge=0)
    min_price: Money = Field(ge=0)
    max_price: Money = Field(ge=0)
    tax_rate: Rate | None = Field(default=None, ge=0, lt=1)


class UpdateItemRequest(WireModel):
    """Partial update.  Only fields present in the body are applied."""

    name: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    price: Money | None = Field(default=None, ge=0)
    min_price: Money | None = Field(default=None, ge=0)
    max_price: Money | None = Field(default=None, ge=0)
    tax_rate: Rate | None = Field(default=None, ge=0, lt=1)
    is_active: bool | None = None


class PriceUpdateRequest(WireModel):
    price: Money = Field(ge=0)
    publish: bool = False
    override_guardrails: bool = False


class CreatePromotionRequest(WireModel):
    item_id: str = Field(min_length=1)
    kind: PromotionKind
    value: Rate
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class OrderLineRequest(WireModel):
    item_id: str = Field(min_length=1)
    qty: int = Field(ge=1)


class CreateOrderRequest(WireModel):
    items: list[OrderLineRequest] = Field(min_length=1)
