"""Order total computation.

Lines are resolved against a catalog snapshot.  Subtotal and tax are
accumulated unrounded across all lines; the final subtotal, tax and total
are each rounded independently, so per-line rounding never compounds at
the aggregate level.  Per-line subtotals are rounded for display only.

Worked example (ROUND_HALF_UP)::

    IPA Pint 7.00 x 2, House Margarita 12.00 x 1, tax 0.0825
    subtotal = 26.00
    tax      = 2.145 -> 2.15
    total    = 28.145 -> 28.15
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pos_simulator.core.errors import NotFoundError
from pos_simulator.core.models import CatalogItem, OrderLine
from pos_simulator.core.money import round_money


@dataclass(frozen=True)
class OrderTotals:
    lines: tuple[OrderLine, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def _line_key(line: Any) -> tuple[str, int]:
    if isinstance(line, Mapping):
        item_id = line.get("item_id", line.get("itemId"))
        return str(item_id), int(line["qty"])
    return line.item_id, int(line.qty)


def compute_totals(
    lines: Iterable[Any],
    catalog: Mapping[str, CatalogItem],
) -> OrderTotals:
    """Price *lines* against *catalog*.

    Each line is an object with ``item_id`` and ``qty`` attributes (e.g.
    ``OrderLineRequest``) or a mapping with the same keys.  Quantity and
    non-emptiness are validated by the caller.

    Raises:
        NotFoundError: a line references an item absent from *catalog*.
            Nothing is returned for the lines already priced.
    """
    subtotal = Decimal("0")
    tax = Decimal("0")
    priced: list[OrderLine] = []

    for line in lines:
        item_id, qty = _line_key(line)
        item = catalog.get(item_id)
        if item is None:
            raise NotFoundError("Item", item_id)

        line_subtotal = item.price * qty
        subtotal += line_subtotal
        tax += line_subtotal * item.tax_rate

        priced.append(
            OrderLine(
                item_id=item_id,
                name=item.name,
                price=item.price,
                quantity=qty,
                subtotal=round_money(line_subtotal),
            )
        )

    return OrderTotals(
        lines=tuple(priced),
        subtotal=round_money(subtotal),
        tax=round_money(tax),
        total=round_money(subtotal + tax),
    )
