"""Stand-ins for the Socket.IO client and the token gateway."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from client.channel import RealtimeChannel
from shared.errors import NetworkError


class FakeSocketIOClient:
    def __init__(self, fail_connect: bool = False, connect_gate: Optional[asyncio.Event] = None) -> None:
        self.handlers: Dict[str, Callable] = {}
        self.emitted: List[Tuple[str, Any]] = []
        self.connected = False
        self.connect_url: Optional[str] = None
        self.connect_kwargs: Dict[str, Any] = {}
        self.disconnect_calls = 0
        self.fail_connect = fail_connect
        self.connect_gate = connect_gate

    def on(self, event: str, handler=None, namespace=None):
        self.handlers[event] = handler
        return handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.fail_connect:
            raise ConnectionError("connection refused")
        self.connected = True
        self.connect_url = url
        self.connect_kwargs = kwargs

    async def emit(self, event: str, data: Any = None, **kwargs: Any) -> None:
        self.emitted.append((event, data))

    async def disconnect(self) -> None:
        self.connected = False
        self.disconnect_calls += 1

    async def server_emit(self, event: str, *args: Any) -> None:
        """Deliver an event as if the server had sent it."""
        await self.handlers[event](*args)

    def emitted_events(self, event: str) -> List[Any]:
        return [data for name, data in self.emitted if name == event]


class FakeChannels:
    """Channel factory for SessionStateMachine that records what it built."""

    def __init__(self, fail_connect: bool = False) -> None:
        self.fail_connect = fail_connect
        self.connect_gate: Optional[asyncio.Event] = None
        self.channels: List[RealtimeChannel] = []
        self.clients: List[FakeSocketIOClient] = []

    def _new_client(self) -> FakeSocketIOClient:
        client = FakeSocketIOClient(fail_connect=self.fail_connect, connect_gate=self.connect_gate)
        self.clients.append(client)
        return client

    def __call__(self) -> RealtimeChannel:
        channel = RealtimeChannel("http://backend.test", client_factory=self._new_client)
        self.channels.append(channel)
        return channel

    @property
    def client(self) -> FakeSocketIOClient:
        return self.clients[-1]

    @property
    def channel(self) -> RealtimeChannel:
        return self.channels[-1]

    async def deliver(self, event: str, *args: Any) -> None:
        """Server pushes ``event`` on the newest channel; wait until handled."""
        channel = self.channel
        await self.client.server_emit(event, *args)
        await channel.drain()


class FakeGateway:
    def __init__(self, token: str = "AB12CD", valid: bool = True) -> None:
        self.token = token
        self.valid = valid
        self.generate_error: Optional[Exception] = None
        self.validate_error: Optional[Exception] = None
        self.generate_calls = 0
        self.validated: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def generate_token(self) -> str:
        self.generate_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.generate_error is not None:
            raise self.generate_error
        return self.token

    async def validate_token(self, candidate: str) -> bool:
        self.validated.append(candidate)
        if self.gate is not None:
            await self.gate.wait()
        if self.validate_error is not None:
            raise self.validate_error
        return self.valid

    async def close(self) -> None:
        self.closed = True


def network_down() -> NetworkError:
    return NetworkError("connection refused")
