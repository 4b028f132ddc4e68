import asyncio

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from logging_config import get_logger
from transport import WebSocketTransport

logger = get_logger(__name__)

relay_router = APIRouter(tags=["relay"])


@relay_router.get("/health")
async def health(request: Request):
    registry = request.app.state.engine.registry
    return {"status": "ok", "connections": len(registry)}


@relay_router.websocket("/")
async def relay_endpoint(websocket: WebSocket):
    """Relay endpoint. Clients send JSON frames:

    - ``{"type": "join", "payload": {"roomId": "abc"}}``
    - ``{"type": "chat", "payload": {"message": "hi"}}``

    and receive plain text: chat messages verbatim and presence notices.
    """
    engine = websocket.app.state.engine
    await websocket.accept()
    transport = WebSocketTransport(websocket)
    logger.info(f"New client connected from {transport.peer}")

    connection = engine.registry.register(transport)
    writer = asyncio.create_task(connection.pump())

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection.identity}")
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            engine.handle_frame(connection, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection.identity}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.identity}: {e}", exc_info=True)
    finally:
        await engine.disconnect(connection)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
