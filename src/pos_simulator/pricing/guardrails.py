"""Price guardrails.

A price update is accepted when the new price falls inside the item's
inclusive ``[min_price, max_price]`` band, or when the caller explicitly
overrides the guardrails.  Validation is pure: it never touches the item.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pos_simulator.core.errors import GuardrailViolation
from pos_simulator.core.models import CatalogItem
from pos_simulator.core.money import round_money, to_decimal


@dataclass(frozen=True)
class GuardrailResult:
    """Outcome of a guardrail check."""

    valid: bool
    reason: str | None = None
    bound: str | None = None  # "minPrice" | "maxPrice"
    limit: Decimal | None = None
    margin: Decimal | None = None

    def raise_for_violation(self) -> None:
        """Raise ``GuardrailViolation`` if the check failed."""
        if self.valid:
            return
        raise GuardrailViolation(
            reason=self.reason or "Price outside guardrails",
            bound=self.bound or "",
            limit=self.limit if self.limit is not None else Decimal("0"),
            margin=self.margin if self.margin is not None else Decimal("0"),
        )


def validate_price(
    item: CatalogItem,
    new_price: Decimal | int | float | str,
    override: bool = False,
) -> GuardrailResult:
    """Check *new_price* against *item*'s guardrail band.

    Bounds are inclusive.  The reason names the violated bound with its
    configured value and the margin by which it was missed, e.g.
    ``"Price 3 is below minPrice=5 by 2.00"``.
    """
    if override:
        return GuardrailResult(valid=True)

    price = to_decimal(new_price)

    if price < item.min_price:
        margin = round_money(item.min_price - price)
        return GuardrailResult(
            valid=False,
            reason=f"Price {price} is below minPrice={item.min_price} by {margin}",
            bound="minPrice",
            limit=item.min_price,
            margin=margin,
        )

    if price > item.max_price:
        margin = round_money(price - item.max_price)
        return GuardrailResult(
            valid=False,
            reason=f"Price {price} is above maxPrice={item.max_price} by {margin}",
            bound="maxPrice",
            limit=item.max_price,
            margin=margin,
        )

    return GuardrailResult(valid=True)
