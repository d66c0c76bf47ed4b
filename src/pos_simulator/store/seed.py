"""Default bar menu loaded at startup."""

from __future__ import annotations

import logging
from decimal import Decimal

from pos_simulator.core.models import CatalogItem
from pos_simulator.store.memory_store import PosStore

logger = logging.getLogger(__name__)

# (name, category, price, min, max)
SEED_ITEMS: list[tuple[str, str, str, str, str]] = [
    ("IPA Pint", "Beer", "7", "5", "12"),
    ("Lager Pint", "Beer", "6", "4", "10"),
    ("House Margarita", "Cocktails", "12", "9", "18"),
    ("Old Fashioned", "Cocktails", "14", "11", "20"),
    ("Frozen Daiquiri", "Cocktails", "10", "8", "16"),
]


def seed_catalog(store: PosStore, tax_rate: Decimal = Decimal("0.0825")) -> list[CatalogItem]:
    """Insert the seed items.  Does not touch the menu version."""
    now = store.now()
    items = [
        store.add_item(
            CatalogItem(
                id=store.new_id(),
                name=name,
                category=category,
                price=Decimal(price),
                min_price=Decimal(low),
                max_price=Decimal(high),
                tax_rate=tax_rate,
                created_at=now,
                updated_at=now,
            )
        )
        for name, category, price, low, high in SEED_ITEMS
    ]
    logger.info("Seeded %d catalog items", len(items))
    return items
