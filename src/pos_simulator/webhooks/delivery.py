"""Signed outbound webhook delivery.

Delivers one notification to one endpoint, at least once, with bounded
retries and exponential backoff::

    agent = WebhookDeliveryAgent()
    result = await agent.deliver(url, payload, secret)   # 1s, 2s, 4s ...

The body is serialized exactly once and signed exactly once; every retry
sends the identical bytes with the identical signature, so a receiver
verifying against the raw body never sees a spurious mismatch.

``WebhookDispatcher`` wraps the agent for the order path: each delivery
runs as a detached asyncio task that outlives the request, and terminal
failure is logged rather than raised.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import BaseModel

from pos_simulator.core.config import WebhookConfig
from pos_simulator.core.enums import TERMINAL_DELIVERY_STATES, DeliveryState, EventType
from pos_simulator.core.errors import DeliveryExhausted
from pos_simulator.observability.logger import get_logger
from pos_simulator.observability.metrics import (
    record_webhook_attempt,
    record_webhook_delivery,
)
from pos_simulator.webhooks.signing import sign

logger = get_logger(__name__)

# (url, body, headers, timeout_seconds) -> HTTP status
Transport = Callable[[str, bytes, dict[str, str], float], Awaitable[int]]
Sleep = Callable[[float], Awaitable[None]]

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def serialize_payload(payload: BaseModel | Mapping[str, Any]) -> bytes:
    """Deterministic JSON body for *payload*.

    Pydantic models keep their field order and camelCase aliases; plain
    mappings keep insertion order.  Both use compact separators.
    """
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True).encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


async def aiohttp_transport(
    url: str,
    body: bytes,
    headers: dict[str, str],
    timeout_seconds: float,
) -> int:
    """POST *body* with aiohttp and return the response status."""
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(url, data=body, headers=headers) as resp:
            await resp.read()
            return resp.status


# ------------------------------------------------------------------
# Result records
# ------------------------------------------------------------------

@dataclass
class DeliveryAttempt:
    number: int
    status: int | None = None
    error: str | None = None
    retry_in: float | None = None  # Seconds slept before the next attempt

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300


@dataclass
class DeliveryResult:
    endpoint: str
    signature: str
    body: bytes
    state: DeliveryState = DeliveryState.PENDING
    attempts: list[DeliveryAttempt] = field(default_factory=list)
    history: list[DeliveryState] = field(
        default_factory=lambda: [DeliveryState.PENDING]
    )

    def transition(self, state: DeliveryState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def delays(self) -> list[float]:
        return [a.retry_in for a in self.attempts if a.retry_in is not None]

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_DELIVERY_STATES


# ------------------------------------------------------------------
# Agent
# ------------------------------------------------------------------

class WebhookDeliveryAgent:
    """Delivers signed notifications with exponential backoff.

    Parameters
    ----------
    transport
        Coroutine performing one POST and returning the HTTP status.
        Defaults to :func:`aiohttp_transport`.
    sleep
        Coroutine used between attempts.  Defaults to ``asyncio.sleep``.
    base_delay
        Delay before the first retry, in seconds.  Doubles each retry.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        sleep: Sleep | None = None,
        base_delay: float = 1.0,
        timeout_seconds: float = 10.0,
        event_header: str = "x-pos-event",
        signature_header: str = "x-pos-signature",
    ) -> None:
        self._transport = transport or aiohttp_transport
        self._sleep = sleep or asyncio.sleep
        self._base_delay = base_delay
        self._timeout_seconds = timeout_seconds
        self._event_header = event_header
        self._signature_header = signature_header

    @classmethod
    def from_config(
        cls,
        config: WebhookConfig,
        transport: Transport | None = None,
        sleep: Sleep | None = None,
    ) -> WebhookDeliveryAgent:
        return cls(
            transport=transport,
            sleep=sleep,
            base_delay=config.base_delay_seconds,
            timeout_seconds=config.timeout_seconds,
            event_header=config.event_header,
            signature_header=config.signature_header,
        )

    async def deliver(
        self,
        endpoint: str,
        payload: BaseModel | Mapping[str, Any],
        secret: str,
        max_attempts: int = 4,
        event: str = EventType.ORDER_CREATED.value,
    ) -> DeliveryResult:
        """Deliver *payload* to *endpoint*.

        Returns on the first 2xx response.  Non-2xx responses and
        transport errors are retried until *max_attempts* is used up.

        Raises:
            DeliveryExhausted: every attempt failed.  ``exc.result`` holds
                the attempt history.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        body = serialize_payload(payload)
        signature = sign(body, secret)
        headers = {
            "Content-Type": "application/json",
            self._event_header: event,
            self._signature_header: signature,
        }
        result = DeliveryResult(endpoint=endpoint, signature=signature, body=body)
        delay = self._base_delay

        for number in range(1, max_attempts + 1):
            result.transition(DeliveryState.SENDING)
            attempt = DeliveryAttempt(number=number)
            result.attempts.append(attempt)

            try:
                attempt.status = await self._transport(
                    endpoint, body, headers, self._timeout_seconds,
                )
            except _TRANSPORT_ERRORS as exc:
                attempt.error = f"{type(exc).__name__}: {exc}"
                record_webhook_attempt("transport_error")
            else:
                if attempt.ok:
                    record_webhook_attempt("ok")
                    result.transition(DeliveryState.SUCCESS)
                    record_webhook_delivery(DeliveryState.SUCCESS.value)
                    logger.info(
                        "webhook_delivered",
                        endpoint=endpoint,
                        status=attempt.status,
                        attempt=number,
                    )
                    return result
                attempt.error = f"HTTP {attempt.status}"
                record_webhook_attempt("http_error")

            if number == max_attempts:
                break

            attempt.retry_in = delay
            result.transition(DeliveryState.RETRYING)
            logger.warning(
                "webhook_retrying",
                endpoint=endpoint,
                attempt=number,
                error=attempt.error,
                retry_in=delay,
            )
            await self._sleep(delay)
            delay *= 2

        result.transition(DeliveryState.EXHAUSTED)
        record_webhook_delivery(DeliveryState.EXHAUSTED.value)
        last_error = result.attempts[-1].error or "unknown error"
        raise DeliveryExhausted(
            endpoint, len(result.attempts), last_error, result=result,
        )


# ------------------------------------------------------------------
# Fire-and-forget dispatcher
# ------------------------------------------------------------------

class WebhookDispatcher:
    """Runs deliveries to one configured endpoint as detached tasks."""

    def __init__(
        self,
        agent: WebhookDeliveryAgent,
        endpoint: str,
        secret: str,
        max_attempts: int = 4,
    ) -> None:
        self._agent = agent
        self._endpoint = endpoint
        self._secret = secret
        self._max_attempts = max_attempts
        self._tasks: set[asyncio.Task[DeliveryResult | None]] = set()
        self.delivered_count = 0
        self.failed_count = 0

    @classmethod
    def from_config(
        cls,
        config: WebhookConfig,
        transport: Transport | None = None,
        sleep: Sleep | None = None,
    ) -> WebhookDispatcher:
        agent = WebhookDeliveryAgent.from_config(config, transport=transport, sleep=sleep)
        return cls(
            agent=agent,
            endpoint=config.url,
            secret=config.secret,
            max_attempts=config.max_attempts,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        payload: BaseModel | Mapping[str, Any],
        event: str = EventType.ORDER_CREATED.value,
    ) -> asyncio.Task[DeliveryResult | None]:
        """Start delivering *payload* in the background.

        Must be called from inside a running event loop.  The caller does
        not need to keep the returned task.
        """
        task = asyncio.get_running_loop().create_task(
            self._run(payload, event), name=f"webhook:{event}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        payload: BaseModel | Mapping[str, Any],
        event: str,
    ) -> DeliveryResult | None:
        try:
            result = await self._agent.deliver(
                self._endpoint,
                payload,
                self._secret,
                max_attempts=self._max_attempts,
                event=event,
            )
        except DeliveryExhausted as exc:
            self.failed_count += 1
            logger.error(
                "webhook_exhausted",
                endpoint=exc.endpoint,
                attempts=exc.attempts,
                error=exc.last_error,
            )
            return None
        except Exception:
            self.failed_count += 1
            logger.exception("webhook_failed", endpoint=self._endpoint)
            return None

        self.delivered_count += 1
        return result

    async def wait_idle(self) -> None:
        """Wait until every in-flight delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding deliveries.  Used at shutdown."""
        tasks = list(self._tasks)
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("webhook_dispatcher_closed", cancelled=len(tasks))
