import uvicorn

from constants import HOST, KEEPALIVE_INTERVAL_SECONDS, LOG_FILE, LOG_LEVEL, PORT, WS_PING_TIMEOUT_SECONDS
from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app  # noqa: E402

logger = get_logger(__name__)


def main():
    logger.info(f"WebSocket server starting on {HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        ws_ping_interval=KEEPALIVE_INTERVAL_SECONDS,
        ws_ping_timeout=WS_PING_TIMEOUT_SECONDS,
    )


if __name__ == "__main__":
    main()
