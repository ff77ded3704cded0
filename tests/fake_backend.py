"""
In-process chat backend for end-to-end tests.

Serves the two token routes over aiohttp and the realtime events over a
python-socketio AsyncServer attached to the same app. Room bookkeeping is
deliberately small: enough to drive the client through its whole lifecycle.
"""

import itertools
from typing import Dict, List

import socketio
from aiohttp import web
from aiohttp.test_utils import TestServer


class FakeChatBackend:
    def __init__(self) -> None:
        self.sio = socketio.AsyncServer(async_mode="aiohttp")
        self.app = web.Application()
        self.sio.attach(self.app)
        self.app.add_routes([
            web.get("/api/generate-token", self._generate),
            web.post("/api/validate-token", self._validate),
        ])
        self.rooms: Dict[str, List[str]] = {}
        self.history: Dict[str, List[dict]] = {}
        self.members: Dict[str, tuple] = {}  # sid -> (token, name)
        self.join_requests: List[dict] = []
        self._tokens = iter(["AB12CD", "EF34GH", "JK56LM"])
        self._ids = itertools.count(1)
        self._server = TestServer(self.app)

        self.sio.on("joinRoom", self._join_room)
        self.sio.on("sendMessage", self._send_message)
        self.sio.on("disconnect", self._disconnect)

    @property
    def url(self) -> str:
        return f"http://{self._server.host}:{self._server.port}"

    async def start(self) -> None:
        await self._server.start_server()

    async def close(self) -> None:
        await self._server.close()

    async def _generate(self, request: web.Request) -> web.Response:
        token = next(self._tokens)
        self.rooms[token] = []
        self.history[token] = []
        return web.json_response({"token": token})

    async def _validate(self, request: web.Request) -> web.Response:
        body = await request.json()
        return web.json_response({"valid": body.get("token") in self.rooms})

    async def _join_room(self, sid, data) -> None:
        self.join_requests.append(data)
        token, name = data["token"], data["userName"]
        self.members[sid] = (token, name)
        self.rooms[token].append(name)
        await self.sio.enter_room(sid, token)
        await self.sio.emit("roomJoined", {
            "users": list(self.rooms[token]),
            "messages": list(self.history[token]),
        }, to=sid)
        await self.sio.emit("userConnected", {"userName": name}, room=token, skip_sid=sid)

    async def _send_message(self, sid, data) -> None:
        token = data["token"]
        message = {
            "id": next(self._ids),
            "userName": data["userName"],
            "text": data["message"],
            "timestamp": "2024-01-01T00:00:00Z",
        }
        self.history[token].append(message)
        await self.sio.emit("newMessage", message, room=token)

    async def _disconnect(self, sid, *args) -> None:
        token, name = self.members.pop(sid, (None, None))
        if token is None:
            return
        if name in self.rooms.get(token, []):
            self.rooms[token].remove(name)
        await self.sio.emit("userDisconnected", {"userName": name}, room=token, skip_sid=sid)

    async def expire(self, token: str) -> None:
        await self.sio.emit("sessionExpired", {}, room=token)
