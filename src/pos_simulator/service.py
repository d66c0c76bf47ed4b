"""Inbound command handling.

``PosService`` is the seam between the HTTP layer and the core.  Every
command follows the same shape:

1. validate and look up (raise before touching state),
2. mutate the store synchronously, no ``await`` in between,
3. broadcast the resulting event to subscribers,
4. for orders, hand the signed webhook to the dispatcher and return
   without waiting for it.

Because step 2 never yields to the event loop, one command's mutation is
never interleaved with another's.  Step 3 completes before the command
returns, so a caller that sees a 2xx response knows the broadcast was
attempted.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from pos_simulator.broadcast.broadcaster import EventBroadcaster
from pos_simulator.core.events import (
    MenuPublished,
    MenuPublishedData,
    OrderCreated,
    PriceUpdated,
    PriceUpdatedData,
    PromotionCreated,
)
from pos_simulator.core.errors import ValidationError
from pos_simulator.core.models import (
    CatalogItem,
    CatalogView,
    CreateItemRequest,
    CreateOrderRequest,
    CreatePromotionRequest,
    DeleteItemResult,
    HealthStatus,
    Order,
    OrdersView,
    PriceUpdateRequest,
    PriceUpdateResult,
    Promotion,
    PromotionsView,
    PublishResult,
    UpdateItemRequest,
    WebhookPayload,
)
from pos_simulator.observability.metrics import (
    record_order,
    record_price_update,
    update_menu_version,
)
from pos_simulator.pricing.guardrails import validate_price
from pos_simulator.pricing.totals import compute_totals
from pos_simulator.store.memory_store import PosStore
from pos_simulator.webhooks.delivery import WebhookDispatcher

logger = logging.getLogger(__name__)


class PosService:
    """One method per inbound command.

    Parameters
    ----------
    store
        The authoritative state container.
    broadcaster
        Fan-out to stream subscribers.
    dispatcher
        Webhook dispatcher, or ``None`` when no webhook URL is configured.
    venue_id
        Venue identifier stamped on webhook payloads.
    """

    def __init__(
        self,
        store: PosStore,
        broadcaster: EventBroadcaster,
        dispatcher: WebhookDispatcher | None = None,
        venue_id: str = "pos-sim-venue-001",
        default_tax_rate: Decimal = Decimal("0.0825"),
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.dispatcher = dispatcher
        self.venue_id = venue_id
        self.default_tax_rate = default_tax_rate

    def _bump_menu_version(self) -> int:
        version = self.store.bump_menu_version()
        update_menu_version(version)
        return version

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def create_item(self, req: CreateItemRequest) -> CatalogItem:
        now = self.store.now()
        item = CatalogItem(
            id=self.store.new_id(),
            name=req.name,
            category=req.category,
            price=req.price,
            min_price=req.min_price,
            max_price=req.max_price,
            tax_rate=req.tax_rate if req.tax_rate is not None else self.default_tax_rate,
            created_at=now,
            updated_at=now,
        )
        self.store.add_item(item)
        version = self._bump_menu_version()
        logger.info("Catalog item %s created (%s), menu v%d", item.id, item.name, version)

        await self.broadcaster.broadcast(
            MenuPublished(
                data=MenuPublishedData(menu_version=version, item=item.model_copy()),
                ts=now,
            )
        )
        return item

    async def update_item(self, item_id: str, req: UpdateItemRequest) -> CatalogItem:
        item = self.store.get_item(item_id)
        now = self.store.now()

        for field_name, value in req.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(item, field_name, value)
        item.updated_at = now
        version = self._bump_menu_version()
        logger.info("Catalog item %s updated, menu v%d", item_id, version)

        await self.broadcaster.broadcast(
            MenuPublished(
                data=MenuPublishedData(menu_version=version, item=item.model_copy()),
                ts=now,
            )
        )
        return item

    async def delete_item(self, item_id: str) -> DeleteItemResult:
        self.store.remove_item(item_id)
        now = self.store.now()
        version = self._bump_menu_version()
        logger.info("Catalog item %s deleted, menu v%d", item_id, version)

        await self.broadcaster.broadcast(
            MenuPublished(
                data=MenuPublishedData(menu_version=version, deleted_item_id=item_id),
                ts=now,
            )
        )
        return DeleteItemResult(id=item_id, menu_version=version)

    def catalog(self) -> CatalogView:
        return CatalogView(
            items=self.store.active_items(),
            menu_version=self.store.menu_version,
        )

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    async def update_price(self, item_id: str, req: PriceUpdateRequest) -> PriceUpdateResult:
        """Apply a guardrail-checked price change.

        The menu version only moves when ``publish`` is set.
        """
        item = self.store.get_item(item_id)

        check = validate_price(item, req.price, req.override_guardrails)
        if not check.valid:
            record_price_update("rejected")
            logger.info("Price update for %s rejected: %s", item_id, check.reason)
            check.raise_for_violation()

        old_price = item.price
        item.price = req.price
        item.updated_at = self.store.now()
        published_version = self._bump_menu_version() if req.publish else None
        record_price_update("overridden" if req.override_guardrails else "accepted")
        logger.info(
            "Price for %s changed %s -> %s (published=%s)",
            item_id, old_price, req.price, req.publish,
        )

        await self.broadcaster.broadcast(
            PriceUpdated(
                data=PriceUpdatedData(
                    item_id=item_id,
                    name=item.name,
                    old_price=old_price,
                    new_price=req.price,
                    menu_version=published_version,
                ),
                ts=item.updated_at,
            )
        )
        return PriceUpdateResult(
            item=item,
            menu_version=self.store.menu_version,
            published=req.publish,
        )

    async def publish_menu(self) -> PublishResult:
        now = self.store.now()
        version = self._bump_menu_version()
        logger.info("Menu published, v%d", version)

        await self.broadcaster.broadcast(
            MenuPublished(data=MenuPublishedData(menu_version=version), ts=now)
        )
        return PublishResult(menu_version=version, published_at=now)

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    async def create_promotion(self, req: CreatePromotionRequest) -> Promotion:
        """Record a promotion.  Promotions never change order totals."""
        if req.starts_at and req.ends_at and req.ends_at < req.starts_at:
            raise ValidationError("endsAt must not be before startsAt")
        self.store.get_item(req.item_id)

        now = self.store.now()
        promotion = Promotion(
            id=self.store.new_id(),
            item_id=req.item_id,
            kind=req.kind,
            value=req.value,
            starts_at=req.starts_at,
            ends_at=req.ends_at,
            created_at=now,
        )
        self.store.add_promotion(promotion)
        logger.info("Promotion %s created for item %s", promotion.id, req.item_id)

        await self.broadcaster.broadcast(PromotionCreated(data=promotion, ts=now))
        return promotion

    def promotions(self) -> PromotionsView:
        return PromotionsView(promotions=self.store.list_promotions())

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(self, req: CreateOrderRequest) -> Order:
        """Price, record and announce an order.

        Raises ``NotFoundError`` (nothing stored) when a line references
        an unknown item.  Webhook delivery never affects the result.
        """
        if not req.items:
            raise ValidationError("Items array is required and must not be empty")

        totals = compute_totals(req.items, self.store.catalog_snapshot())
        now = self.store.now()
        order = Order(
            id=self.store.new_id(),
            items=totals.lines,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            created_at=now,
        )
        self.store.add_order(order)
        record_order(float(order.total))
        logger.info(
            "Order %s created: %d lines, total=%s", order.id, len(order.items), order.total,
        )

        await self.broadcaster.broadcast(OrderCreated(data=order, ts=now))

        if self.dispatcher is not None:
            self.dispatcher.submit(WebhookPayload.from_order(order, self.venue_id))
        return order

    def orders(self) -> OrdersView:
        return OrdersView(orders=self.store.orders_newest_first())

    def get_order(self, order_id: str) -> Order:
        return self.store.get_order(order_id)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health(self) -> HealthStatus:
        return HealthStatus(
            menu_version=self.store.menu_version,
            items=self.store.item_count,
            orders=self.store.order_count,
            uptime=self.store.uptime_seconds(),
        )
