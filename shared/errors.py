from __future__ import annotations
from typing import Optional


class ChatError(Exception):
    """Base class for every error the chat client raises."""

    def __init__(self, message: str = "", *, user_message: Optional[str] = None) -> None:
        super().__init__(message or user_message or self.__class__.__name__)
        self.user_message = user_message


class NetworkError(ChatError):
    """Transport or parse failure on an HTTP call to the backend."""
    pass


class InvalidTokenError(ChatError):
    """The backend explicitly answered that a room token is not valid."""

    def __init__(self, token: str) -> None:
        super().__init__(
            f"Token {token!r} rejected by backend",
            user_message="Invalid token. Please check and try again.",
        )
        self.token = token


class SessionExpiredError(ChatError):
    """Server-initiated termination of the chat session."""

    def __init__(self, token: Optional[str] = None) -> None:
        super().__init__(
            f"Session for room {token} expired" if token else "Session expired",
            user_message="Chat session has expired due to inactivity. Starting a new session...",
        )
        self.token = token


class BadPayloadError(ChatError):
    """Inbound realtime event whose payload does not have the documented shape."""

    def __init__(self, event: str, detail: str) -> None:
        super().__init__(f"Bad {event} payload: {detail}")
        self.event = event
        self.detail = detail


class ConfigError(ChatError):
    """Config file present but unreadable or of the wrong shape."""
    pass
