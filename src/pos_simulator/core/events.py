"""Event schemas for the subscriber stream.

Every event is a Pydantic envelope ``{event, data, ts}``.  ``event`` is the
discriminator tag, ``data`` has a concrete shape per tag, ``ts`` is the
ISO-8601 time the event was raised.  Events are transient: constructed,
serialized once, broadcast, then dropped.

Tags:
  connected           sent to a single subscriber on registration
  order.created       data = Order
  price.updated       data = PriceUpdatedData
  menu.published      data = MenuPublishedData
  promotion.created   data = Promotion
"""

from __future__ import annotations

import json
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import Field, TypeAdapter

from .ids import utc_now
from .models import CatalogItem, Money, Order, Promotion, Timestamp, WireModel


# ===========================================================================
# Payload shapes
# ===========================================================================

class ConnectedData(WireModel):
    menu_version: int


class PriceUpdatedData(WireModel):
    item_id: str
    name: str
    old_price: Money
    new_price: Money
    menu_version: int | None = None  # None unless the update was published


class MenuPublishedData(WireModel):
    menu_version: int
    item: CatalogItem | None = None
    deleted_item_id: str | None = None


# ===========================================================================
# Envelopes
# ===========================================================================

class BaseEvent(WireModel):
    """Base for all stream events."""

    # Drop absent optional keys from ``data`` instead of sending nulls.
    omit_none: ClassVar[bool] = False

    event: str
    data: Any
    ts: Timestamp = Field(default_factory=utc_now)

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        wire = super().to_wire(**kwargs)
        if self.omit_none:
            wire["data"] = self.data.to_wire(exclude_none=True)
        return wire

    def to_json(self) -> str:
        """Serialize the envelope once for fan-out."""
        return json.dumps(self.to_wire(), separators=(",", ":"))


class Connected(BaseEvent):
    event: Literal["connected"] = "connected"
    data: ConnectedData


class OrderCreated(BaseEvent):
    event: Literal["order.created"] = "order.created"
    data: Order


class PriceUpdated(BaseEvent):
    event: Literal["price.updated"] = "price.updated"
    data: PriceUpdatedData


class MenuPublished(BaseEvent):
    omit_none: ClassVar[bool] = True

    event: Literal["menu.published"] = "menu.published"
    data: MenuPublishedData


class PromotionCreated(BaseEvent):
    event: Literal["promotion.created"] = "promotion.created"
    data: Promotion


DomainEvent = Annotated[
    Union[Connected, OrderCreated, PriceUpdated, MenuPublished, PromotionCreated],
    Field(discriminator="event"),
]

_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(DomainEvent)


def parse_event(raw: str | bytes | dict[str, Any]) -> BaseEvent:
    """Parse a wire envelope back into its typed event.  Used by clients and tests."""
    if isinstance(raw, (str, bytes)):
        return _EVENT_ADAPTER.validate_json(raw)
    return _EVENT_ADAPTER.validate_python(raw)
