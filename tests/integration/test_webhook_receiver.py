"""End to end: a real aiohttp receiver verifies signed order webhooks.

The receiver fails the first N requests with 503, then verifies the
signature against the raw body it received and answers 200.
"""

from __future__ import annotations

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pos_simulator.core.config import WebhookConfig
from pos_simulator.core.models import CreateOrderRequest
from pos_simulator.service import PosService
from pos_simulator.webhooks.delivery import WebhookDispatcher
from pos_simulator.webhooks.signing import verify

SECRET = "supersecret"


class Receiver:
    def __init__(self, fail_first: int = 0):
        self.fail_first = fail_first
        self.requests: list[dict] = []

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append(
            {
                "body": body,
                "event": request.headers.get("x-pos-event"),
                "signature": request.headers.get("x-pos-signature"),
            }
        )
        if len(self.requests) <= self.fail_first:
            return web.Response(status=503)
        if not verify(body, request.headers.get("x-pos-signature"), SECRET):
            return web.json_response({"error": "bad signature"}, status=401)
        return web.json_response({"ok": True})


@pytest.fixture
async def receiver_server():
    servers = []

    async def start(receiver: Receiver) -> TestServer:
        app = web.Application()
        app.router.add_post("/hooks/pos", receiver.handle)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield start
    for server in servers:
        await server.close()


async def _place_order(seeded_store, broadcaster, dispatcher) -> str:
    service = PosService(seeded_store, broadcaster, dispatcher=dispatcher)
    order = await service.create_order(
        CreateOrderRequest.model_validate({"items": [{"itemId": "ipa", "qty": 2}]})
    )
    await dispatcher.wait_idle()
    return order.id


class TestSignedDelivery:
    async def test_receiver_verifies_signature(
        self, receiver_server, seeded_store, broadcaster, recording_sleep,
    ):
        receiver = Receiver()
        server = await receiver_server(receiver)
        config = WebhookConfig(url=str(server.make_url("/hooks/pos")), secret=SECRET)
        dispatcher = WebhookDispatcher.from_config(config, sleep=recording_sleep)

        order_id = await _place_order(seeded_store, broadcaster, dispatcher)

        assert dispatcher.delivered_count == 1
        assert len(receiver.requests) == 1
        received = receiver.requests[0]
        assert received["event"] == "order.created"
        payload = json.loads(received["body"])
        assert payload["orderId"] == order_id
        assert payload["venueId"] == "pos-sim-venue-001"
        assert payload["items"] == [{"itemId": "ipa", "name": "IPA Pint", "quantity": 2, "price": 7.0}]
        assert (payload["subtotal"], payload["tax"], payload["total"]) == (14.0, 1.16, 15.16)

    async def test_retries_until_receiver_recovers(
        self, receiver_server, seeded_store, broadcaster, recording_sleep,
    ):
        receiver = Receiver(fail_first=2)
        server = await receiver_server(receiver)
        config = WebhookConfig(url=str(server.make_url("/hooks/pos")), secret=SECRET)
        dispatcher = WebhookDispatcher.from_config(config, sleep=recording_sleep)

        await _place_order(seeded_store, broadcaster, dispatcher)

        assert len(receiver.requests) == 3
        assert recording_sleep.delays == [1.0, 2.0]
        assert len({r["body"] for r in receiver.requests}) == 1
        assert len({r["signature"] for r in receiver.requests}) == 1
        assert dispatcher.delivered_count == 1

    async def test_wrong_secret_is_exhausted(
        self, receiver_server, seeded_store, broadcaster, recording_sleep,
    ):
        receiver = Receiver()
        server = await receiver_server(receiver)
        config = WebhookConfig(url=str(server.make_url("/hooks/pos")), secret="not-the-secret")
        dispatcher = WebhookDispatcher.from_config(config, sleep=recording_sleep)

        await _place_order(seeded_store, broadcaster, dispatcher)

        assert len(receiver.requests) == 4
        assert recording_sleep.delays == [1.0, 2.0, 4.0]
        assert dispatcher.failed_count == 1
        assert seeded_store.order_count == 1

    async def test_unreachable_endpoint(self, seeded_store, broadcaster, recording_sleep):
        config = WebhookConfig(url="http://127.0.0.1:9/hooks/pos", secret=SECRET, timeout_seconds=1)
        dispatcher = WebhookDispatcher.from_config(config, sleep=recording_sleep)

        await _place_order(seeded_store, broadcaster, dispatcher)

        assert dispatcher.failed_count == 1
        assert recording_sleep.delays == [1.0, 2.0, 4.0]
