import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Seconds between keep-alive probes on each connection
KEEPALIVE_INTERVAL_SECONDS = float(os.getenv("KEEPALIVE_INTERVAL_SECONDS", 30))
WS_PING_TIMEOUT_SECONDS = float(os.getenv("WS_PING_TIMEOUT_SECONDS", 20))

# Messages queued for one peer before new ones are dropped
OUTBOX_MAX_MESSAGES = int(os.getenv("OUTBOX_MAX_MESSAGES", 1000))

CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

# Close code sent to peers when the server goes away
GOING_AWAY_CLOSE_CODE = 1001
