"""Test the in-memory store."""

from decimal import Decimal

import pytest

from pos_simulator.core.errors import NotFoundError
from pos_simulator.core.models import Order, OrderLine, Promotion
from pos_simulator.core.enums import PromotionKind
from pos_simulator.store.seed import SEED_ITEMS, seed_catalog


def _order(store, total="10") -> Order:
    return Order(
        id=store.new_id(),
        items=(OrderLine(item_id="ipa", name="IPA Pint", price=7, quantity=1, subtotal=7),),
        subtotal=Decimal(total),
        tax=Decimal("0"),
        total=Decimal(total),
        created_at=store.now(),
    )


class TestCatalog:
    def test_get_missing_raises(self, store):
        with pytest.raises(NotFoundError, match="Item nope not found"):
            store.get_item("nope")

    def test_active_items_filters_inactive(self, seeded_store, ipa):
        ipa.is_active = False
        assert [item.id for item in seeded_store.active_items()] == ["marg"]
        assert seeded_store.item_count == 2

    def test_remove(self, seeded_store):
        seeded_store.remove_item("ipa")
        assert seeded_store.item_count == 1
        with pytest.raises(NotFoundError):
            seeded_store.remove_item("ipa")

    def test_snapshot_is_a_copy(self, seeded_store):
        snapshot = seeded_store.catalog_snapshot()
        snapshot.pop("ipa")
        assert seeded_store.get_item("ipa")


class TestMenuVersion:
    def test_starts_at_one(self, store):
        assert store.menu_version == 1

    def test_bump(self, store):
        assert store.bump_menu_version() == 2
        assert store.menu_version == 2


class TestOrders:
    def test_newest_first(self, store, fixed_clock):
        first = store.add_order(_order(store))
        fixed_clock.advance(5)
        second = store.add_order(_order(store))
        assert [o.id for o in store.orders_newest_first()] == [second.id, first.id]

    def test_get_missing_order(self, store):
        with pytest.raises(NotFoundError, match="Order"):
            store.get_order("x")


class TestPromotions:
    def test_add_and_list(self, store):
        promo = Promotion(item_id="ipa", kind=PromotionKind.PERCENT_OFF, value=10)
        store.add_promotion(promo)
        assert store.list_promotions() == [promo]


class TestSeed:
    def test_seed_items(self, store):
        items = seed_catalog(store)
        assert [i.name for i in items] == [row[0] for row in SEED_ITEMS]
        assert all(i.tax_rate == Decimal("0.0825") for i in items)
        assert store.menu_version == 1

    def test_seed_bands(self, default_menu_store):
        ipa = next(i for i in default_menu_store.active_items() if i.name == "IPA Pint")
        assert (ipa.price, ipa.min_price, ipa.max_price) == (Decimal(7), Decimal(5), Decimal(12))


class TestUptime:
    def test_uptime_follows_clock(self, store, fixed_clock):
        fixed_clock.advance(42.7)
        assert store.uptime_seconds() == 42
