"""Prometheus metrics.

Exposed on ``GET /metrics`` of the API app.
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SYSTEM_INFO = Info("pos_sim", "POS simulator information")

MENU_VERSION = Gauge(
    "pos_sim_menu_version",
    "Current published menu version",
)

# ---------------------------------------------------------------------------
# Catalog & order metrics
# ---------------------------------------------------------------------------

ORDERS_TOTAL = Counter(
    "pos_sim_orders_total",
    "Total orders created",
)

ORDER_TOTAL_AMOUNT = Histogram(
    "pos_sim_order_total_amount",
    "Order total (tax included)",
    buckets=[5, 10, 25, 50, 100, 250, 500],
)

PRICE_UPDATES_TOTAL = Counter(
    "pos_sim_price_updates_total",
    "Price update requests by result",
    ["result"],  # accepted / rejected / overridden
)

# ---------------------------------------------------------------------------
# Notification metrics
# ---------------------------------------------------------------------------

WEBHOOK_ATTEMPTS_TOTAL = Counter(
    "pos_sim_webhook_attempts_total",
    "Webhook HTTP attempts by outcome",
    ["outcome"],  # ok / http_error / transport_error
)

WEBHOOK_DELIVERIES_TOTAL = Counter(
    "pos_sim_webhook_deliveries_total",
    "Webhook delivery sequences by final state",
    ["state"],
)

BROADCAST_EVENTS_TOTAL = Counter(
    "pos_sim_broadcast_events_total",
    "Events fanned out to subscribers",
    ["event"],
)

SUBSCRIBERS = Gauge(
    "pos_sim_subscribers",
    "Currently registered stream subscribers",
)


def set_system_info(version: str, venue_id: str) -> None:
    SYSTEM_INFO.info({"version": version, "venue_id": venue_id})


def render_latest() -> tuple[bytes, str]:
    """Return the exposition body and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_order(total: float) -> None:
    """Record a created order."""
    ORDERS_TOTAL.inc()
    ORDER_TOTAL_AMOUNT.observe(total)


def record_price_update(result: str) -> None:
    PRICE_UPDATES_TOTAL.labels(result=result).inc()


def update_menu_version(version: int) -> None:
    MENU_VERSION.set(version)


def record_webhook_attempt(outcome: str) -> None:
    WEBHOOK_ATTEMPTS_TOTAL.labels(outcome=outcome).inc()


def record_webhook_delivery(state: str) -> None:
    WEBHOOK_DELIVERIES_TOTAL.labels(state=state).inc()


def record_broadcast(event: str) -> None:
    BROADCAST_EVENTS_TOTAL.labels(event=event).inc()


def update_subscribers(count: int) -> None:
    SUBSCRIBERS.set(count)
