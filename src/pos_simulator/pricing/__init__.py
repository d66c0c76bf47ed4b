"""Pricing rules: guardrail validation and order totals."""

from pos_simulator.pricing.guardrails import GuardrailResult, validate_price
from pos_simulator.pricing.totals import OrderTotals, compute_totals

__all__ = ["GuardrailResult", "OrderTotals", "compute_totals", "validate_price"]
