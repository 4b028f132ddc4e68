import json
from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class MalformedMessage(ValueError):
    """Inbound frame could not be read as a relay message."""


class Envelope(BaseModel):
    type: str
    payload: Any = None


class JoinPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: Optional[str] = Field(None, alias="roomId")


class ChatPayload(BaseModel):
    message: Optional[str] = None


class JoinMessage(BaseModel):
    type: Literal["join"] = "join"
    payload: JoinPayload = Field(default_factory=JoinPayload)


class ChatMessage(BaseModel):
    type: Literal["chat"] = "chat"
    payload: ChatPayload = Field(default_factory=ChatPayload)


class UnknownMessage(BaseModel):
    type: str


InboundMessage = Union[JoinMessage, ChatMessage, UnknownMessage]

MESSAGE_TYPES: Dict[str, Type[BaseModel]] = {
    "join": JoinMessage,
    "chat": ChatMessage,
}


def parse_inbound(raw: Union[str, bytes]) -> InboundMessage:
    """Parse one text frame into a typed inbound message.

    Raises MalformedMessage for anything that is not a JSON object with a
    string ``type`` or whose payload fields have the wrong shape.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedMessage(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessage("Message is not a JSON object")

    try:
        envelope = Envelope.model_validate(data)
        model = MESSAGE_TYPES.get(envelope.type)
        if model is None:
            return UnknownMessage(type=envelope.type)
        if envelope.payload is None:
            return model(type=envelope.type)
        return model.model_validate({"type": envelope.type, "payload": envelope.payload})
    except ValidationError as e:
        raise MalformedMessage(f"Invalid message: {e.error_count()} validation error(s)") from e
