"""Monetary rounding.

Every amount the simulator returns or broadcasts goes through
``round_money``: two decimal places, half away from zero
(``ROUND_HALF_UP``), computed on ``Decimal`` so ``2.145`` becomes
``2.15`` instead of whatever the binary float happens to hold.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to ``Decimal``.  Floats go through ``str()`` first."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
