from dataclasses import dataclass
from typing import FrozenSet, Optional, Union

from constants import GOING_AWAY_CLOSE_CODE
from logging_config import get_logger
from registry import Connection, ConnectionRegistry, ConnectionState
from schemas.messages import ChatMessage, InboundMessage, JoinMessage, MalformedMessage, parse_inbound

logger = get_logger(__name__)

JOINED = "joined"
LEFT = "left"


@dataclass(frozen=True)
class Join:
    room: str


@dataclass(frozen=True)
class Relay:
    room: str
    text: str


@dataclass(frozen=True)
class Reject:
    reason: str


Action = Union[Join, Relay, Reject]


@dataclass(frozen=True)
class Broadcast:
    recipients: FrozenSet[Connection]
    content: str


def presence_notice(event: str, count: int) -> str:
    noun = "user" if count == 1 else "users"
    if event == JOINED:
        return f"A new user has joined. ({count} {noun} in room)"
    return f"A user has left. ({count} {noun} in room)"


def dispatch(connection: Connection, message: InboundMessage) -> Action:
    """Decide what an inbound message means for a connection in its current state.

    Pure: reads only ``connection.state``/``connection.room`` and the message.
    """
    if connection.state == ConnectionState.CLOSED:
        return Reject("connection is closed")

    if isinstance(message, JoinMessage):
        if connection.state != ConnectionState.UNJOINED:
            return Reject(f"already joined room {connection.room}")
        if not message.payload.room_id:
            return Reject("room ID missing in join request")
        return Join(message.payload.room_id)

    if isinstance(message, ChatMessage):
        if not message.payload.message:
            return Reject("message content missing in chat request")
        if connection.state != ConnectionState.JOINED or connection.room is None:
            return Reject("user not found in any room")
        return Relay(connection.room, message.payload.message)

    return Reject(f"unknown message type: {message.type}")


class RoomBroadcastEngine:
    """Turns inbound frames and disconnects into fan-out to room members."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def _fan_out(self, recipients: FrozenSet[Connection], content: str) -> Broadcast:
        for member in recipients:
            member.deliver(content)
        return Broadcast(recipients=recipients, content=content)

    def handle_frame(self, connection: Connection, raw) -> Optional[Broadcast]:
        try:
            message = parse_inbound(raw)
        except MalformedMessage as e:
            logger.warning(f"Error processing message from {connection.identity}: {e}")
            return None

        action = dispatch(connection, message)

        if isinstance(action, Reject):
            logger.warning(f"Rejected message from {connection.identity}: {action.reason}")
            return None

        if isinstance(action, Join):
            if not self.registry.assign_room(connection, action.room):
                return None
            members = self.registry.members_of(action.room)
            return self._fan_out(members, presence_notice(JOINED, len(members)))

        logger.info(f"Message in room {action.room} from {connection.identity}")
        logger.debug(f"Message content in room {action.room}: {action.text}")
        others = frozenset(m for m in self.registry.members_of(action.room) if m is not connection)
        return self._fan_out(others, action.text)

    async def disconnect(self, connection: Connection, notify: bool = True) -> Optional[Broadcast]:
        """Run the removal path for ``connection``. Safe to call more than once."""
        if connection not in self.registry:
            return None
        room = self.registry.remove(connection)
        broadcast = None

        if room is None:
            logger.info(f"Client {connection.identity} disconnected (not in any room)")
        else:
            logger.info(f"Client {connection.identity} disconnected from room {room}")
            remaining = self.registry.members_of(room)
            if not remaining:
                logger.info(f"Room {room} is now empty")
            elif notify:
                broadcast = self._fan_out(remaining, presence_notice(LEFT, len(remaining)))

        await connection.transport.close()
        return broadcast

    async def shutdown(self):
        connections = self.registry.connections()
        logger.info(f"Shutting down relay, closing {len(connections)} connection(s)")
        for connection in connections:
            await connection.transport.close(code=GOING_AWAY_CLOSE_CODE)
            await self.disconnect(connection, notify=False)
