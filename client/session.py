from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from client.channel import RealtimeChannel
from client.feed import MessageFeed
from client.gateway import TokenGateway
from shared.errors import BadPayloadError, ChatError, NetworkError, SessionExpiredError
from shared.events import EventType, parse_new_message, parse_presence, parse_room_joined
from shared.log import get_logger
from shared.models import Message, SessionRole, SystemKind
from shared.utils import clean_name, clip_token_input, MAX_NAME_LENGTH

logger = get_logger(__name__)

EMPTY_TOKEN_ERROR = "Please enter a token"
INVALID_TOKEN_ERROR = "Invalid token. Please check and try again."
TOKEN_NETWORK_ERROR = "Error validating token. Please try again."


class View(str, Enum):
    WELCOME = "welcome"
    MENU = "menu"
    CHAT = "chat"


@dataclass(frozen=True)
class Identity:
    user_name: str


ChannelFactory = Callable[[], RealtimeChannel]
Notifier = Callable[[ChatError], Awaitable[None]]
Listener = Callable[["SessionStateMachine"], None]


async def _no_notice(error: ChatError) -> None:
    logger.warning("No presentation attached for notice: %s", error.user_message)


class SessionStateMachine:
    """
    Owns the view (welcome -> menu -> chat), the identity, the room token and
    role, and the one realtime channel that exists while the view is chat.

    Presentation calls the intent methods and re-renders from the public
    read-only properties; it never mutates the feed or identity directly.
    Intents never raise: every failure lands the session in a stable state.
    """

    def __init__(
        self,
        gateway: TokenGateway,
        channel_factory: ChannelFactory,
        *,
        notifier: Notifier = _no_notice,
    ) -> None:
        self.gateway = gateway
        self._channel_factory = channel_factory
        self._notifier = notifier
        self._listeners: List[Listener] = []

        self.view = View.WELCOME
        self.identity: Optional[Identity] = None
        self.room_token: Optional[str] = None
        self.role: Optional[SessionRole] = None
        self.feed = MessageFeed()
        self.connected_users: Tuple[str, ...] = ()
        self.channel: Optional[RealtimeChannel] = None

        # Token modal overlay, orthogonal to the view
        self.token_modal_open = False
        self.token_input = ""
        self.token_error = ""
        self._modal_generation = 0

        self.draft = ""
        self.emoji_picker_open = False

    # ========================================
    #           CHANGE NOTIFICATION
    # ========================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error("State listener failed: %s", e, exc_info=True)

    @property
    def user_name(self) -> str:
        return self.identity.user_name if self.identity else ""

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self.feed.snapshot()

    def _log_extra(self) -> dict:
        return {"room": self.room_token, "user_name": self.user_name or None}

    # ========================================
    #           WELCOME
    # ========================================

    def submit_name(self, raw_name: str) -> bool:
        """Welcome -> Menu on a non-empty trimmed name. No-op in any other view."""
        if self.view is not View.WELCOME:
            return False
        name = clean_name(raw_name)
        if name is None:
            logger.debug("Rejected empty name")
            return False
        if len(raw_name.strip()) > MAX_NAME_LENGTH:
            logger.debug("Name cut to %d characters", MAX_NAME_LENGTH)
        self.identity = Identity(user_name=name)
        self.view = View.MENU
        logger.info("Name set", extra=self._log_extra())
        self._changed()
        return True

    # ========================================
    #           MENU: CREATE PATH
    # ========================================

    async def start_new_chat(self) -> bool:
        """
        Create path: ask the gateway for a token and enter chat as creator.
        A gateway failure is only logged and the view stays on menu.
        """
        if self.view is not View.MENU or self.token_modal_open:
            return False
        try:
            token = await self.gateway.generate_token()
        except NetworkError as e:
            logger.error("Error generating token: %s", e, extra=self._log_extra())
            return False
        if self.view is not View.MENU or self.token_modal_open:
            logger.info("Discarding token generated after leaving the menu", extra={"room": token})
            return False
        await self._enter_chat(token, SessionRole.CREATOR)
        return True

    # ========================================
    #           MENU: JOIN PATH (TOKEN MODAL)
    # ========================================

    def open_token_modal(self) -> None:
        if self.view is not View.MENU:
            return
        self.token_modal_open = True
        self.token_error = ""
        self._modal_generation += 1
        self._changed()

    def set_token_input(self, raw: str) -> None:
        if not self.token_modal_open:
            return
        self.token_input = clip_token_input(raw)
        self._changed()

    def cancel_token_modal(self) -> None:
        if not self.token_modal_open:
            return
        self.token_modal_open = False
        self.token_input = ""
        self.token_error = ""
        self._modal_generation += 1
        self._changed()

    async def submit_token(self, raw: Optional[str] = None) -> bool:
        """
        Join path: validate the typed token and enter chat as joiner.
        Every failure is reported through ``token_error`` with the modal left open.
        """
        if not self.token_modal_open or self.view is not View.MENU:
            return False
        if raw is not None:
            self.token_input = clip_token_input(raw)
        if not self.token_input.strip():
            self._set_token_error(EMPTY_TOKEN_ERROR)
            return False

        candidate = self.token_input
        generation = self._modal_generation
        try:
            valid = await self.gateway.validate_token(candidate)
        except NetworkError as e:
            logger.warning("Token validation failed: %s", e, extra={"room": candidate})
            if generation == self._modal_generation:
                self._set_token_error(TOKEN_NETWORK_ERROR)
            return False

        if generation != self._modal_generation or self.view is not View.MENU:
            logger.info("Discarding validation answer for a closed token modal", extra={"room": candidate})
            return False
        if not valid:
            self._set_token_error(INVALID_TOKEN_ERROR)
            return False

        self.token_modal_open = False
        self.token_input = ""
        self.token_error = ""
        self._modal_generation += 1
        await self._enter_chat(candidate, SessionRole.JOINER)
        return True

    def _set_token_error(self, text: str) -> None:
        self.token_error = text
        self._changed()

    # ========================================
    #           CHAT ENTRY / EXIT
    # ========================================

    async def _enter_chat(self, token: str, role: SessionRole) -> None:
        """Menu -> Chat: acquire the channel and send exactly one join."""
        assert self.identity is not None
        if self.channel is not None:
            # Never two channels at once
            await self._release_channel()

        self.room_token = token
        self.role = role
        self.feed.clear()
        self.connected_users = ()
        self.draft = ""
        self.emoji_picker_open = False
        self.view = View.CHAT
        self._changed()

        channel = self._channel_factory()
        channel.on(EventType.ROOM_JOINED, self._on_room_joined)
        channel.on(EventType.NEW_MESSAGE, self._on_new_message)
        channel.on(EventType.USER_CONNECTED, self._on_user_connected)
        channel.on(EventType.USER_DISCONNECTED, self._on_user_disconnected)
        channel.on(EventType.SESSION_EXPIRED, self._on_session_expired)
        self.channel = channel
        try:
            await channel.open()
        except Exception as e:
            if self.channel is channel:
                logger.error("Could not connect realtime channel: %s", e, extra=self._log_extra())
                await self._leave_chat()
            return
        if self.channel is not channel:
            # Left chat while connecting; that exit already released the channel
            logger.debug("Chat left before the channel opened", extra={"room": token})
            return
        try:
            await channel.join(token, self.identity.user_name, role)
        except Exception as e:
            logger.error("Could not join room: %s", e, extra=self._log_extra())
            await self._leave_chat()

    async def back_to_menu(self) -> None:
        """Chat -> Menu on the user's request."""
        if self.view is not View.CHAT:
            return
        logger.info("Leaving room", extra=self._log_extra())
        await self._leave_chat()

    async def _leave_chat(self) -> None:
        await self._release_channel()
        self.view = View.MENU
        self.room_token = None
        self.role = None
        self.feed.clear()
        self.connected_users = ()
        self.draft = ""
        self.emoji_picker_open = False
        self._changed()

    async def _release_channel(self) -> None:
        channel, self.channel = self.channel, None
        if channel is not None:
            await channel.close()

    # ========================================
    #           CHAT: DRAFT AND SEND
    # ========================================

    def set_draft(self, text: str) -> None:
        if self.view is not View.CHAT:
            return
        self.draft = text
        self._changed()

    def toggle_emoji_picker(self) -> None:
        if self.view is not View.CHAT:
            return
        self.emoji_picker_open = not self.emoji_picker_open
        self._changed()

    def append_emoji(self, emoji: str) -> None:
        """The picker hands over plain text; it lands at the end of the draft."""
        if self.view is not View.CHAT:
            return
        self.draft += emoji
        self.emoji_picker_open = False
        self._changed()

    async def send_message(self, text: Optional[str] = None) -> bool:
        """
        Send the draft (or ``text``, which replaces it). No optimistic append:
        the message shows up when the server echoes it as newMessage.
        """
        if self.view is not View.CHAT or self.channel is None or self.room_token is None:
            return False
        if text is not None:
            self.draft = text
        sent = await self.channel.send(self.room_token, self.user_name, self.draft)
        if sent:
            self.draft = ""
            self.emoji_picker_open = False
            self._changed()
        return sent

    # ========================================
    #           INBOUND EVENTS
    # ========================================

    async def _on_room_joined(self, data: Any) -> None:
        try:
            users, messages = parse_room_joined(data)
        except BadPayloadError as e:
            logger.warning("%s", e, extra=self._log_extra())
            return
        self.connected_users = tuple(users)
        self.feed.replace(messages)
        logger.info("Joined room with %d users, %d messages", len(users), len(messages),
                    extra=self._log_extra())
        self._changed()

    async def _on_new_message(self, data: Any) -> None:
        try:
            message = parse_new_message(data)
        except BadPayloadError as e:
            logger.warning("%s", e, extra=self._log_extra())
            return
        self.feed.append(message)
        self._changed()

    async def _on_user_connected(self, data: Any) -> None:
        await self._on_presence(EventType.USER_CONNECTED, SystemKind.CONNECTED, data)

    async def _on_user_disconnected(self, data: Any) -> None:
        await self._on_presence(EventType.USER_DISCONNECTED, SystemKind.DISCONNECTED, data)

    async def _on_presence(self, event: EventType, kind: SystemKind, data: Any) -> None:
        try:
            name = parse_presence(event, data)
        except BadPayloadError as e:
            logger.warning("%s", e, extra=self._log_extra())
            return
        # connected_users is only ever replaced by a roomJoined snapshot
        self.feed.append_system(name, kind)
        self._changed()

    async def _on_session_expired(self, data: Any) -> None:
        if self.view is not View.CHAT:
            return
        logger.info("Session expired by server", extra=self._log_extra())
        error = SessionExpiredError(self.room_token)
        try:
            await self._notifier(error)
        finally:
            await self._leave_chat()

    # ========================================
    #           LIFECYCLE
    # ========================================

    async def aclose(self) -> None:
        """Release the channel and HTTP session; the session is unusable after."""
        await self._release_channel()
        await self.gateway.close()

    async def __aenter__(self) -> "SessionStateMachine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
