"""Test signed webhook delivery with exponential backoff."""

import asyncio
import json

import aiohttp
import pytest

from pos_simulator.core.enums import DeliveryState
from pos_simulator.core.errors import DeliveryExhausted
from pos_simulator.core.models import WebhookLine, WebhookPayload
from pos_simulator.webhooks.delivery import WebhookDeliveryAgent, serialize_payload
from pos_simulator.webhooks.signing import verify

URL = "http://pricing.test/hooks/pos"


@pytest.fixture
def payload() -> WebhookPayload:
    return WebhookPayload(
        order_id="ord-1",
        venue_id="pos-sim-venue-001",
        timestamp="2024-01-01T18:00:00.000Z",
        items=[WebhookLine(item_id="ipa", name="IPA Pint", quantity=2, price=7)],
        subtotal=14,
        tax=1.16,
        total=15.16,
    )


def _agent(transport, sleep) -> WebhookDeliveryAgent:
    return WebhookDeliveryAgent(transport=transport, sleep=sleep)


class TestSerializePayload:
    def test_model_uses_camel_case(self, payload):
        body = json.loads(serialize_payload(payload))
        assert list(body) == [
            "orderId", "venueId", "timestamp", "items", "subtotal", "tax", "total",
        ]
        assert body["items"][0] == {"itemId": "ipa", "name": "IPA Pint", "quantity": 2, "price": 7.0}
        assert body["total"] == 15.16

    def test_mapping_is_compact(self):
        assert serialize_payload({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'


class TestDeliver:
    async def test_success_first_try(self, payload, make_transport, recording_sleep):
        transport = make_transport(200)
        result = await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        assert result.state == DeliveryState.SUCCESS
        assert result.done
        assert len(result.attempts) == 1
        assert len(transport.calls) == 1
        assert recording_sleep.delays == []

    async def test_always_failing_endpoint(self, payload, make_transport, recording_sleep):
        transport = make_transport(500)
        with pytest.raises(DeliveryExhausted) as exc_info:
            await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        assert len(transport.calls) == 4
        assert recording_sleep.delays == [1.0, 2.0, 4.0]
        exc = exc_info.value
        assert exc.attempts == 4
        assert exc.last_error == "HTTP 500"
        assert exc.result.state == DeliveryState.EXHAUSTED
        assert exc.result.done
        assert exc.result.delays == [1.0, 2.0, 4.0]

    async def test_stops_at_first_success(self, payload, make_transport, recording_sleep):
        transport = make_transport(503, 502, 201)
        result = await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        assert len(transport.calls) == 3
        assert recording_sleep.delays == [1.0, 2.0]
        assert result.attempts[-1].status == 201
        assert result.history == [
            DeliveryState.PENDING,
            DeliveryState.SENDING, DeliveryState.RETRYING,
            DeliveryState.SENDING, DeliveryState.RETRYING,
            DeliveryState.SENDING, DeliveryState.SUCCESS,
        ]

    async def test_every_attempt_sends_identical_bytes(self, payload, make_transport, recording_sleep):
        transport = make_transport(500)
        with pytest.raises(DeliveryExhausted):
            await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        bodies = {call["body"] for call in transport.calls}
        signatures = {call["headers"]["x-pos-signature"] for call in transport.calls}
        assert len(bodies) == 1
        assert len(signatures) == 1
        assert verify(bodies.pop(), signatures.pop(), "supersecret")

    async def test_headers(self, payload, make_transport, recording_sleep):
        transport = make_transport(200)
        await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        headers = transport.calls[0]["headers"]
        assert headers["Content-Type"] == "application/json"
        assert headers["x-pos-event"] == "order.created"
        assert verify(transport.calls[0]["body"], headers["x-pos-signature"], "supersecret")

    @pytest.mark.parametrize(
        "error",
        [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError(), OSError("unreachable")],
    )
    async def test_transport_errors_are_retried(self, payload, make_transport, recording_sleep, error):
        transport = make_transport(error, 200)
        result = await _agent(transport, recording_sleep).deliver(URL, payload, "supersecret")

        assert result.state == DeliveryState.SUCCESS
        assert result.attempts[0].error is not None
        assert recording_sleep.delays == [1.0]

    async def test_custom_attempts_and_delay(self, payload, make_transport, recording_sleep):
        transport = make_transport(500)
        agent = WebhookDeliveryAgent(transport=transport, sleep=recording_sleep, base_delay=0.5)
        with pytest.raises(DeliveryExhausted):
            await agent.deliver(URL, payload, "k", max_attempts=3)
        assert recording_sleep.delays == [0.5, 1.0]

    async def test_single_attempt_never_sleeps(self, payload, make_transport, recording_sleep):
        transport = make_transport(500)
        with pytest.raises(DeliveryExhausted):
            await _agent(transport, recording_sleep).deliver(URL, payload, "k", max_attempts=1)
        assert recording_sleep.delays == []

    async def test_rejects_zero_attempts(self, payload, make_transport, recording_sleep):
        with pytest.raises(ValueError):
            await _agent(make_transport(200), recording_sleep).deliver(
                URL, payload, "k", max_attempts=0,
            )

    async def test_custom_event_header(self, payload, make_transport, recording_sleep):
        transport = make_transport(200)
        await _agent(transport, recording_sleep).deliver(
            URL, payload, "k", event="menu.published",
        )
        assert transport.calls[0]["headers"]["x-pos-event"] == "menu.published"
