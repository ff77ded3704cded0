from __future__ import annotations
import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import socketio

from shared.events import SERVER_EVENTS, EventType, join_room_payload, send_message_payload
from shared.log import get_logger, log_chat_event
from shared.models import SessionRole
from shared.utils import clean_message

logger = get_logger(__name__)


EventHandler = Callable[[Any], Awaitable[None]]
ClientFactory = Callable[[], Any]


def default_client_factory() -> socketio.AsyncClient:
    # A dropped connection ends the chat; there is no reconnect-with-backoff
    return socketio.AsyncClient(reconnection=False)


class RealtimeChannel:
    """
    One Socket.IO connection for the lifetime of one chat view.

    Inbound events are queued as they arrive and dispatched from a single
    pump task in arrival order, each handler running to completion before
    the next one starts. Outbound sends are fire-and-forget.
    """

    def __init__(
        self,
        backend_url: str,
        *,
        socketio_path: str = "socket.io",
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.backend_url = backend_url
        self.socketio_path = socketio_path
        self._client_factory = client_factory
        self._sio: Optional[Any] = None
        self._queue: "asyncio.Queue[Tuple[Any, Any]]" = asyncio.Queue()
        self._pump: Optional[asyncio.Task] = None
        self.handlers: Dict[str, EventHandler] = {}
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._sio is not None and not self._closed

    def on(self, event: EventType, handler: EventHandler) -> None:
        self.handlers[event.value] = handler

    def _make_receiver(self, event: str) -> Callable[..., Awaitable[None]]:
        async def receive(*args: Any) -> None:
            if self._closed:
                return
            data = args[0] if args else {}
            self._queue.put_nowait((event, data))
        return receive

    async def open(self) -> None:
        """
        Connect to the backend; must succeed before join or send. If the
        channel is closed before the connect completes, the fresh connection
        is dropped and the channel stays closed.
        """
        if self._closed:
            raise RuntimeError("channel already closed")
        if self._sio is not None:
            return
        sio = self._client_factory()
        for event in SERVER_EVENTS:
            sio.on(event.value, handler=self._make_receiver(event.value))
        await sio.connect(self.backend_url, socketio_path=self.socketio_path)
        if self._closed:
            # close() ran while the connect was in flight and had nothing to release
            logger.info("Channel closed during connect, dropping connection")
            await sio.disconnect()
            return
        self._sio = sio
        self._pump = asyncio.create_task(self._pump_loop())
        logger.info("Realtime channel open to %s", self.backend_url)

    async def _pump_loop(self) -> None:
        while not self._closed:
            event, data = await self._queue.get()
            try:
                log_chat_event(logger, "debug", "Inbound event", event=event, payload=data)
                handler = self.handlers.get(event)
                if handler is not None:
                    await handler(data)
            except Exception as e:
                logger.error("Handler for %s failed: %s", event, e, exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every event received so far has been handled."""
        await self._queue.join()

    async def join(self, token: str, user_name: str, role: SessionRole) -> None:
        """Ask the server to put this connection in room ``token``."""
        if not self.is_open:
            logger.warning("join() on a channel that is not open", extra={"room": token})
            return
        payload = join_room_payload(token, user_name, role)
        await self._sio.emit(EventType.JOIN_ROOM.value, payload)
        logger.info("Joining room as %s", role.value, extra={"room": token, "user_name": user_name})

    async def send(self, token: str, user_name: str, text: str) -> bool:
        """
        Emit a chat message. Returns False without emitting when the text is
        empty after trimming, longer than the limit, or the channel is gone.
        The message reaches the feed through the server's newMessage echo.
        """
        cleaned = clean_message(text)
        if cleaned is None or not self.is_open:
            logger.debug("Dropped outbound message (len=%d, open=%s)", len(text), self.is_open)
            return False
        await self._sio.emit(EventType.SEND_MESSAGE.value, send_message_payload(token, user_name, cleaned))
        return True

    async def close(self) -> None:
        """Release the connection. Safe to call repeatedly and from a handler."""
        if self._closed:
            return
        self._closed = True

        # Closing from inside a handler: the pump exits once that handler returns
        pump, self._pump = self._pump, None
        if pump is not None and pump is not asyncio.current_task():
            pump.cancel()
            with suppress(asyncio.CancelledError):
                await pump
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        sio, self._sio = self._sio, None
        if sio is not None:
            try:
                await sio.disconnect()
            except Exception as e:
                logger.error("Error closing realtime channel: %s", e)
        logger.info("Realtime channel closed")

    async def __aenter__(self) -> "RealtimeChannel":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
