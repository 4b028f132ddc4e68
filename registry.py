import asyncio
import enum
import uuid
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Set

from constants import OUTBOX_MAX_MESSAGES
from liveness import LivenessMonitor
from logging_config import get_logger
from transport import TransportClosed

logger = get_logger(__name__)


class ConnectionState(str, enum.Enum):
    UNJOINED = "unjoined"
    JOINED = "joined"
    CLOSED = "closed"


def generate_identity() -> str:
    return uuid.uuid4().hex[:12]


class Connection:
    """One live duplex channel to a peer, as tracked by the registry."""

    def __init__(self, transport, identity: Optional[str] = None, outbox_size: int = OUTBOX_MAX_MESSAGES):
        self.transport = transport
        self.identity = identity or generate_identity()
        self.room: Optional[str] = None
        self.state = ConnectionState.UNJOINED
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self.dropped = 0
        self.monitor: Optional[LivenessMonitor] = None

    def __repr__(self):
        return f"<Connection {self.identity} room={self.room!r} state={self.state.value}>"

    def deliver(self, text: str):
        """Queue ``text`` for this connection without waiting on its transport."""
        if self.state == ConnectionState.CLOSED:
            return
        try:
            self.outbox.put_nowait(text)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Outbox full for connection {self.identity}, dropping message ({self.dropped} dropped)")

    async def pump(self):
        """Drain the outbox to the transport in order until the connection closes."""
        while True:
            text = await self.outbox.get()
            if text is None:
                break
            try:
                await self.transport.send_text(text)
            except TransportClosed:
                logger.debug(f"Dropping message for closed connection {self.identity}")
            except Exception as e:
                logger.warning(f"Error sending to connection {self.identity}: {e}")

    def stop_pump(self):
        # The stop marker must always fit; give up the oldest pending message if needed
        if self.outbox.full():
            self.outbox.get_nowait()
            self.dropped += 1
        self.outbox.put_nowait(None)


class ConnectionRegistry:
    """Authoritative store of active connections and their room membership.

    Rooms are not stored as objects; ``_rooms`` is an index derived from each
    connection's ``room`` and updated in the same step as every mutation. All
    operations are synchronous, so on the event loop none of them can be
    observed half-done.
    """

    def __init__(self, keepalive_interval: float = 30, on_probe_failure: Optional[Callable[[Connection], Awaitable[None]]] = None, outbox_size: int = OUTBOX_MAX_MESSAGES):
        self.keepalive_interval = keepalive_interval
        self.outbox_size = outbox_size
        self.on_probe_failure = on_probe_failure
        self._connections: Set[Connection] = set()
        self._rooms: Dict[str, Set[Connection]] = {}

    def __len__(self):
        return len(self._connections)

    def __contains__(self, connection: Connection):
        return connection in self._connections

    def connections(self) -> List[Connection]:
        return list(self._connections)

    def register(self, transport) -> Connection:
        connection = Connection(transport, outbox_size=self.outbox_size)
        self._connections.add(connection)

        async def _probe_failed():
            if self.on_probe_failure is not None:
                await self.on_probe_failure(connection)
            else:
                self.remove(connection)

        connection.monitor = LivenessMonitor(
            transport, self.keepalive_interval, _probe_failed, label=f"connection {connection.identity}"
        )
        connection.monitor.start()
        logger.info(f"Connection {connection.identity} registered ({len(self._connections)} active)")
        return connection

    def assign_room(self, connection: Connection, room: Optional[str]) -> bool:
        if not room:
            logger.warning(f"Join rejected for {connection.identity}: room ID missing")
            return False
        if connection not in self._connections:
            logger.warning(f"Join rejected for {connection.identity}: connection is not registered")
            return False
        if connection.room is not None:
            logger.warning(f"Join rejected for {connection.identity}: already in room {connection.room}")
            return False
        connection.room = room
        connection.state = ConnectionState.JOINED
        self._rooms.setdefault(room, set()).add(connection)
        logger.info(f"User {connection.identity} joined room {room}")
        return True

    def lookup_room(self, connection: Connection) -> Optional[str]:
        if connection not in self._connections:
            return None
        return connection.room

    def members_of(self, room: str) -> FrozenSet[Connection]:
        return frozenset(self._rooms.get(room, ()))

    def remove(self, connection: Connection) -> Optional[str]:
        """Detach ``connection`` and return the room it was in.

        Only the first call for a connection does anything; later calls
        return None.
        """
        if connection not in self._connections:
            return None
        self._connections.discard(connection)
        room = connection.room
        if room is not None:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._rooms[room]
        connection.state = ConnectionState.CLOSED
        if connection.monitor is not None:
            connection.monitor.cancel()
        connection.stop_pump()
        logger.info(f"Connection {connection.identity} removed ({len(self._connections)} active)")
        return room
