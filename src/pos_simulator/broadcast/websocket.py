"""Starlette WebSocket adapter for the broadcaster's ``Subscriber`` protocol."""

from __future__ import annotations

from starlette.websockets import WebSocket, WebSocketState


class WebSocketSubscriber:
    """One connected ``/ws`` client."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: str) -> None:
        await self._websocket.send_text(message)

    def __repr__(self) -> str:
        client = self._websocket.client
        peer = f"{client.host}:{client.port}" if client else "unknown"
        return f"WebSocketSubscriber({peer})"
