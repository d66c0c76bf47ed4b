"""HTTP + WebSocket surface of the POS simulator.

Routes (mutating routes require the ``x-api-key`` header)::

    GET    /health                  liveness + counters
    GET    /metrics                 Prometheus exposition
    GET    /catalog/items           active items + menu version
    POST   /catalog/items           create item               [key]
    PATCH  /catalog/items/{id}      partial update            [key]
    DELETE /catalog/items/{id}      delete                    [key]
    POST   /pricing/{item_id}       guardrailed price change  [key]
    POST   /promotions              record promotion          [key]
    GET    /promotions              list promotions
    POST   /menu/publish            bump menu version         [key]
    GET    /orders                  newest first
    GET    /orders/{id}             one order
    POST   /orders                  create order (public)
    WS     /ws                      event stream

All error responses are ``{"error": "<message>"}``.

Usage::

    from pos_simulator.api.app import create_app

    app = create_app(settings=load_settings("configs/local.toml"))
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from pos_simulator.api.auth import require_api_key
from pos_simulator.broadcast.broadcaster import EventBroadcaster
from pos_simulator.broadcast.websocket import WebSocketSubscriber
from pos_simulator.core.config import Settings
from pos_simulator.core.errors import (
    AuthenticationError,
    GuardrailViolation,
    NotFoundError,
    PosError,
    ValidationError,
)
from pos_simulator.core.ids import utc_now
from pos_simulator.core.models import (
    CreateItemRequest,
    CreateOrderRequest,
    CreatePromotionRequest,
    PriceUpdateRequest,
    UpdateItemRequest,
)
from pos_simulator.observability.logger import bind_request_context, clear_request_context
from pos_simulator.observability.metrics import (
    render_latest,
    set_system_info,
    update_menu_version,
)
from pos_simulator.service import PosService
from pos_simulator.store.memory_store import PosStore
from pos_simulator.store.seed import seed_catalog
from pos_simulator.webhooks.delivery import WebhookDispatcher

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

_STATUS_BY_ERROR: list[tuple[type[PosError], int]] = [
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (GuardrailViolation, 400),
    (ValidationError, 400),
]


def _status_for(exc: PosError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _describe_validation_errors(errors: list[dict[str, Any]]) -> str:
    """One human-readable line for a FastAPI body validation failure."""
    locations = [
        [str(part) for part in err.get("loc", ()) if part != "body"] for err in errors
    ]
    if ["items"] in locations:
        return "Items array is required and must not be empty"

    missing = [
        loc[-1] for err, loc in zip(errors, locations)
        if err.get("type") == "missing" and loc
    ]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"

    first = errors[0] if errors else {}
    where = ".".join(locations[0]) if locations else ""
    msg = first.get("msg", "Invalid request")
    return f"{where}: {msg}" if where else msg


def create_app(
    settings: Settings | None = None,
    store: PosStore | None = None,
    broadcaster: EventBroadcaster | None = None,
    dispatcher: WebhookDispatcher | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create the simulator FastAPI application.

    Every collaborator is optional.  A store created here is seeded with
    the default menu when ``settings.seed_catalog`` is set; a store passed
    in is used as-is.  A webhook dispatcher is created from settings only
    when ``settings.webhook.url`` is configured.
    """
    settings = settings or Settings()
    settings.validate_webhook()

    if store is None:
        store = PosStore(clock=clock or utc_now)
        if settings.seed_catalog:
            seed_catalog(store, tax_rate=settings.default_tax_rate)
    if broadcaster is None:
        broadcaster = EventBroadcaster(
            menu_version=lambda: store.menu_version,
            send_timeout=settings.broadcast_send_timeout_seconds,
        )
    if dispatcher is None and settings.webhook.enabled:
        dispatcher = WebhookDispatcher.from_config(settings.webhook)

    service = PosService(
        store=store,
        broadcaster=broadcaster,
        dispatcher=dispatcher,
        venue_id=settings.venue_id,
        default_tax_rate=settings.default_tax_rate,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        set_system_info(API_VERSION, settings.venue_id)
        update_menu_version(store.menu_version)
        logger.info(
            "POS simulator ready: %d items, webhook %s",
            store.item_count,
            dispatcher.endpoint if dispatcher else "not configured",
        )
        yield
        if dispatcher is not None:
            await dispatcher.aclose()
        logger.info("POS simulator stopped")

    app = FastAPI(title="POS Simulator", version=API_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store component references on app state
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.dispatcher = dispatcher
    app.state.service = service

    # ------------------------------------------------------------------
    # Request context
    # ------------------------------------------------------------------

    @app.middleware("http")
    async def trace_requests(request: Request, call_next: Any) -> Response:
        trace_id = bind_request_context(
            request.headers.get("x-request-id"),
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["x-request-id"] = trace_id
        return response

    # ------------------------------------------------------------------
    # Health & metrics
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse(service.health().to_wire())

    @app.get("/metrics")
    async def metrics() -> Response:
        body, content_type = render_latest()
        return Response(content=body, media_type=content_type)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    @app.get("/catalog/items")
    async def list_items() -> JSONResponse:
        return JSONResponse(service.catalog().to_wire())

    @app.post("/catalog/items", dependencies=[Depends(require_api_key)])
    async def create_item(req: CreateItemRequest) -> JSONResponse:
        item = await service.create_item(req)
        return JSONResponse(item.to_wire(), status_code=201)

    @app.patch("/catalog/items/{item_id}", dependencies=[Depends(require_api_key)])
    async def update_item(item_id: str, req: UpdateItemRequest) -> JSONResponse:
        item = await service.update_item(item_id, req)
        return JSONResponse(item.to_wire())

    @app.delete("/catalog/items/{item_id}", dependencies=[Depends(require_api_key)])
    async def delete_item(item_id: str) -> JSONResponse:
        result = await service.delete_item(item_id)
        return JSONResponse(result.to_wire())

    # ------------------------------------------------------------------
    # Pricing & menu
    # ------------------------------------------------------------------

    @app.post("/pricing/{item_id}", dependencies=[Depends(require_api_key)])
    async def update_price(item_id: str, req: PriceUpdateRequest) -> JSONResponse:
        result = await service.update_price(item_id, req)
        return JSONResponse(result.to_wire())

    @app.post("/menu/publish", dependencies=[Depends(require_api_key)])
    async def publish_menu() -> JSONResponse:
        result = await service.publish_menu()
        return JSONResponse(result.to_wire())

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    @app.post("/promotions", dependencies=[Depends(require_api_key)])
    async def create_promotion(req: CreatePromotionRequest) -> JSONResponse:
        promotion = await service.create_promotion(req)
        return JSONResponse(promotion.to_wire(), status_code=201)

    @app.get("/promotions")
    async def list_promotions() -> JSONResponse:
        return JSONResponse(service.promotions().to_wire())

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    @app.get("/orders")
    async def list_orders() -> JSONResponse:
        return JSONResponse(service.orders().to_wire())

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str) -> JSONResponse:
        return JSONResponse(service.get_order(order_id).to_wire())

    @app.post("/orders")
    async def create_order(req: CreateOrderRequest) -> JSONResponse:
        order = await service.create_order(req)
        return JSONResponse(order.to_wire(), status_code=201)

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    @app.websocket("/ws")
    async def event_stream(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        await broadcaster.register(subscriber)
        try:
            # Inbound frames are ignored; the loop only waits for close.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            broadcaster.unregister(subscriber)

    # ------------------------------------------------------------------
    # Error responses
    # ------------------------------------------------------------------

    @app.exception_handler(PosError)
    async def pos_error_handler(request: Request, exc: PosError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error("Unhandled simulator error on %s: %s", request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=status)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(
            {"error": _describe_validation_errors(errors), "details": errors},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s", request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return app
