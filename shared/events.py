from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Set, Tuple

from shared.errors import BadPayloadError
from shared.log import get_logger
from shared.models import Message, SessionRole, message_from_dict

logger = get_logger(__name__)


class EventType(str, Enum):
    """Realtime event names exactly as they appear on the Socket.IO wire."""

    # Client -> server
    JOIN_ROOM = "joinRoom"                  # {token, userName, isCreator}
    SEND_MESSAGE = "sendMessage"            # {token, message, userName}

    # Server -> client
    ROOM_JOINED = "roomJoined"              # {users, messages} snapshot
    NEW_MESSAGE = "newMessage"              # message, sender's own included
    USER_CONNECTED = "userConnected"        # {userName}
    USER_DISCONNECTED = "userDisconnected"  # {userName}
    SESSION_EXPIRED = "sessionExpired"      # {} inactivity timeout


CLIENT_EVENTS: Set[EventType] = {
    EventType.JOIN_ROOM,
    EventType.SEND_MESSAGE,
}

SERVER_EVENTS: Set[EventType] = {
    EventType.ROOM_JOINED,
    EventType.NEW_MESSAGE,
    EventType.USER_CONNECTED,
    EventType.USER_DISCONNECTED,
    EventType.SESSION_EXPIRED,
}


# ========================================
#           OUTBOUND PAYLOADS
# ========================================

def join_room_payload(token: str, user_name: str, role: SessionRole) -> Dict[str, Any]:
    return {
        "token": token,
        "userName": user_name,
        "isCreator": role is SessionRole.CREATOR,
    }


def send_message_payload(token: str, user_name: str, text: str) -> Dict[str, Any]:
    return {"token": token, "message": text, "userName": user_name}


# ========================================
#           INBOUND PAYLOADS
# ========================================

def _require_dict(event: EventType, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise BadPayloadError(event.value, f"expected object, got {type(data).__name__}")
    return data


def parse_room_joined(data: Any) -> Tuple[List[str], List[Message]]:
    """
    Split a roomJoined snapshot into (users, messages).

    A malformed message entry is logged and left out; the rest of the
    snapshot still applies. Only a bad envelope or users list rejects it.
    """
    data = _require_dict(EventType.ROOM_JOINED, data)
    users = data.get("users", [])
    messages = data.get("messages", [])
    if not isinstance(users, list) or not all(isinstance(u, str) for u in users):
        raise BadPayloadError(EventType.ROOM_JOINED.value, "'users' must be a list of names")
    if not isinstance(messages, list):
        raise BadPayloadError(EventType.ROOM_JOINED.value, "'messages' must be a list")
    parsed: List[Message] = []
    for index, entry in enumerate(messages):
        try:
            parsed.append(message_from_dict(entry))
        except ValueError as e:
            logger.warning("Skipping roomJoined message #%d: %s", index, e,
                           extra={"event": EventType.ROOM_JOINED.value})
    return list(users), parsed


def parse_new_message(data: Any) -> Message:
    """
    Accepts the message object itself or one wrapped as {message: {...}}.
    """
    data = _require_dict(EventType.NEW_MESSAGE, data)
    inner = data.get("message")
    if isinstance(inner, dict):
        data = inner
    try:
        return message_from_dict(data)
    except ValueError as e:
        raise BadPayloadError(EventType.NEW_MESSAGE.value, str(e)) from e


def parse_presence(event: EventType, data: Any) -> str:
    """Return the user name carried by a userConnected/userDisconnected event."""
    data = _require_dict(event, data)
    name = data.get("userName")
    if not isinstance(name, str) or not name:
        raise BadPayloadError(event.value, "'userName' must be a non-empty string")
    return name
