"""Authoritative in-memory state: catalog, orders, promotions, menu version.

One ``PosStore`` instance is created per app and passed to whoever needs
it; there is no module-level state.  Every method is synchronous, so a
command that mutates the store without awaiting in between cannot be
interleaved with another command's mutation.  Nothing survives a restart.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from pos_simulator.core.errors import NotFoundError
from pos_simulator.core.ids import new_id, utc_now
from pos_simulator.core.models import CatalogItem, Order, Promotion


class PosStore:
    """Id-keyed maps plus the menu generation counter."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
        initial_menu_version: int = 1,
    ) -> None:
        self.now = clock
        self.new_id = id_factory
        self._catalog: dict[str, CatalogItem] = {}
        self._orders: dict[str, Order] = {}
        self._promotions: dict[str, Promotion] = {}
        self._menu_version = initial_menu_version
        self.started_at = self.now()

    # ------------------------------------------------------------------
    # Menu version
    # ------------------------------------------------------------------

    @property
    def menu_version(self) -> int:
        return self._menu_version

    def bump_menu_version(self) -> int:
        """Increment and return the menu version."""
        self._menu_version += 1
        return self._menu_version

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def add_item(self, item: CatalogItem) -> CatalogItem:
        self._catalog[item.id] = item
        return item

    def get_item(self, item_id: str) -> CatalogItem:
        item = self._catalog.get(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)
        return item

    def remove_item(self, item_id: str) -> CatalogItem:
        item = self.get_item(item_id)
        del self._catalog[item_id]
        return item

    def active_items(self) -> list[CatalogItem]:
        return [item for item in self._catalog.values() if item.is_active]

    def catalog_snapshot(self) -> dict[str, CatalogItem]:
        """Shallow copy of the catalog map, for pricing an order."""
        return dict(self._catalog)

    @property
    def item_count(self) -> int:
        return len(self._catalog)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def add_order(self, order: Order) -> Order:
        self._orders[order.id] = order
        return order

    def get_order(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def orders_newest_first(self) -> list[Order]:
        return sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)

    @property
    def order_count(self) -> int:
        return len(self._orders)

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    def add_promotion(self, promotion: Promotion) -> Promotion:
        self._promotions[promotion.id] = promotion
        return promotion

    def list_promotions(self) -> list[Promotion]:
        return list(self._promotions.values())

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def uptime_seconds(self) -> int:
        return int((self.now() - self.started_at).total_seconds())
