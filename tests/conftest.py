"""Shared fixtures for the pos-simulator test suite."""

from __future__ import annotations

import itertools
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pos_simulator.broadcast.broadcaster import EventBroadcaster
from pos_simulator.core.config import WebhookConfig
from pos_simulator.core.models import CatalogItem
from pos_simulator.service import PosService
from pos_simulator.store.memory_store import PosStore
from pos_simulator.store.seed import seed_catalog
from pos_simulator.webhooks.delivery import WebhookDispatcher


# ---------------------------------------------------------------------------
# Time & ids
# ---------------------------------------------------------------------------

class StoppedClock:
    """Returns the same instant until advanced."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def fixed_clock() -> StoppedClock:
    return StoppedClock()


@pytest.fixture
def id_factory():
    """Predictable ids: id-0001, id-0002, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter):04d}"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@pytest.fixture
def ipa() -> CatalogItem:
    return CatalogItem(
        id="ipa",
        name="IPA Pint",
        category="Beer",
        price=Decimal("7"),
        min_price=Decimal("5"),
        max_price=Decimal("12"),
    )


@pytest.fixture
def margarita() -> CatalogItem:
    return CatalogItem(
        id="marg",
        name="House Margarita",
        category="Cocktails",
        price=Decimal("12"),
        min_price=Decimal("9"),
        max_price=Decimal("18"),
    )


@pytest.fixture
def store(fixed_clock, id_factory) -> PosStore:
    """Empty store on a fixed clock."""
    return PosStore(clock=fixed_clock, id_factory=id_factory)


@pytest.fixture
def seeded_store(store, ipa, margarita) -> PosStore:
    """Store holding the IPA and Margarita fixtures under stable ids."""
    store.add_item(ipa)
    store.add_item(margarita)
    return store


@pytest.fixture
def default_menu_store(store) -> PosStore:
    seed_catalog(store)
    return store


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------

class FakeSubscriber:
    """Records every message; can be closed or made to fail."""

    def __init__(self, name: str = "sub", open_: bool = True, fail: bool = False):
        self.name = name
        self.open = open_
        self.fail = fail
        self.messages: list[str] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def send(self, message: str) -> None:
        if self.fail:
            raise ConnectionResetError(f"{self.name} went away")
        self.messages.append(message)

    @property
    def events(self) -> list[dict]:
        return [json.loads(m) for m in self.messages]

    @property
    def tags(self) -> list[str]:
        return [e["event"] for e in self.events]


@pytest.fixture
def make_subscriber():
    return FakeSubscriber


@pytest.fixture
def broadcaster(seeded_store) -> EventBroadcaster:
    return EventBroadcaster(menu_version=lambda: seeded_store.menu_version)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

class FakeTransport:
    """Scripted transport: returns (or raises) the next scripted outcome.

    The last outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [200]
        self.calls: list[dict] = []

    async def __call__(self, url, body, headers, timeout_seconds):
        self.calls.append(
            {"url": url, "body": body, "headers": dict(headers), "timeout": timeout_seconds}
        )
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def webhook_config() -> WebhookConfig:
    return WebhookConfig(url="http://pricing.test/hooks/pos", secret="supersecret")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(200)


@pytest.fixture
def dispatcher(webhook_config, transport, recording_sleep) -> WebhookDispatcher:
    return WebhookDispatcher.from_config(
        webhook_config, transport=transport, sleep=recording_sleep,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@pytest.fixture
def service(seeded_store, broadcaster, dispatcher) -> PosService:
    return PosService(
        store=seeded_store,
        broadcaster=broadcaster,
        dispatcher=dispatcher,
    )
