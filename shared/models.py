from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from shared.utils import MAX_MESSAGE_LENGTH


class SessionRole(str, Enum):
    """Fixed when the room is entered; reported to the server as isCreator."""
    CREATOR = "creator"
    JOINER = "joiner"


class SystemKind(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    NOTICE = "notice"  # system entry delivered by the server itself


# Server ids are whatever JSON scalar the backend assigns
MessageId = Union[str, int, float]


@dataclass(frozen=True)
class UserMessage:
    id: MessageId
    user_name: str
    text: str
    timestamp: str

    is_system = False


@dataclass(frozen=True)
class SystemMessage:
    id: MessageId
    text: str
    timestamp: str
    kind: SystemKind

    is_system = True


Message = Union[UserMessage, SystemMessage]


def message_from_dict(data: Dict[str, Any]) -> Message:
    """
    Build a feed entry from a server message object:
    {id, userName, text, timestamp} or {id, text, timestamp, isSystem: true}.
    Raises ValueError on shape violations.
    """
    if not isinstance(data, dict):
        raise ValueError(f"message must be an object, got {type(data).__name__}")
    msg_id = data.get("id")
    if msg_id is None or isinstance(msg_id, (bool, dict, list)):
        raise ValueError(f"message id must be a scalar, got {msg_id!r}")
    text = data.get("text")
    if not isinstance(text, str):
        raise ValueError("message text must be a string")
    timestamp = data.get("timestamp", "")
    if not isinstance(timestamp, str):
        timestamp = str(timestamp)

    if data.get("isSystem"):
        return SystemMessage(id=msg_id, text=text, timestamp=timestamp, kind=SystemKind.NOTICE)

    user_name = data.get("userName")
    if not isinstance(user_name, str) or not user_name:
        raise ValueError("user message needs a userName")
    if not text or len(text) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"user message text must be 1..{MAX_MESSAGE_LENGTH} characters")
    return UserMessage(id=msg_id, user_name=user_name, text=text, timestamp=timestamp)

