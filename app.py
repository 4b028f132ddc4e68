from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from broadcast import RoomBroadcastEngine
from constants import CORS_ALLOW_ORIGINS, KEEPALIVE_INTERVAL_SECONDS, LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
from registry import ConnectionRegistry
from routers.relay import relay_router

setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS) -> FastAPI:
    registry = ConnectionRegistry(keepalive_interval=keepalive_interval)
    engine = RoomBroadcastEngine(registry)
    # A failed keep-alive probe goes through the same removal path as a close
    registry.on_probe_failure = engine.disconnect

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Room relay started")
        yield
        logger.info("Shutting down server")
        await engine.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(relay_router)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
