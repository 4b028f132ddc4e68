import asyncio
from typing import Awaitable, Callable, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class LivenessMonitor:
    """Periodically probes one transport and reports when the probe fails.

    The monitor never reads the peer's answer to a probe. It only notices that
    the transport itself has gone away and hands off to ``on_failure``, which
    is expected to run the connection's normal removal path.

    The probe does not put a frame on the wire; ``transport.ping()`` only checks
    that the socket is still connected. WebSocket protocol pings come from
    uvicorn (``ws_ping_interval``), and that interval matches ``interval`` only
    when the server is started through ``entrypoint.main``. Under any other
    launcher uvicorn uses its own default ping interval.
    """

    def __init__(self, transport, interval: float, on_failure: Callable[[], Awaitable[None]], label: str = ""):
        self.transport = transport
        self.interval = interval
        self.on_failure = on_failure
        self.label = label
        self.probes_sent = 0
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self):
        if self._task is not None or self._cancelled:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Liveness monitor started for {self.label} every {self.interval}s")

    def cancel(self):
        """Stop probing. Only the first call has any effect."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            # The failure callback runs inside the task; don't cancel ourselves mid-removal
            if self._task is not asyncio.current_task():
                self._task.cancel()
        logger.debug(f"Liveness monitor cancelled for {self.label}")

    async def _run(self):
        try:
            while not self._cancelled:
                await asyncio.sleep(self.interval)
                if self._cancelled:
                    break
                try:
                    await self.transport.ping()
                    self.probes_sent += 1
                except Exception as e:
                    logger.warning(f"Keep-alive probe failed for {self.label}: {e}")
                    await self.on_failure()
                    break
        except asyncio.CancelledError:
            logger.debug(f"Liveness task cancelled for {self.label}")
