from fastapi import WebSocket
from starlette.websockets import WebSocketState

from logging_config import get_logger

logger = get_logger(__name__)


class TransportClosed(Exception):
    """Raised when an operation is attempted on a transport that is gone."""


class WebSocketTransport:
    """Send/ping/close capability over an accepted FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        client = websocket.client
        self.peer = f"{client.host}:{client.port}" if client else "unknown"
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str):
        if not self.is_open:
            raise TransportClosed(f"Transport to {self.peer} is closed")
        await self.websocket.send_text(text)

    async def ping(self):
        # ASGI exposes no ping frame; protocol pings are sent by uvicorn
        # (ws_ping_interval) and a dead peer shows up as a closed state here.
        if not self.is_open:
            raise TransportClosed(f"Transport to {self.peer} is closed")

    async def close(self, code: int = 1000):
        if self._closed:
            return
        self._closed = True
        if WebSocketState.DISCONNECTED in (self.websocket.application_state, self.websocket.client_state):
            return
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"Error closing WebSocket to {self.peer}: {e}")
