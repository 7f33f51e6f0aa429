import asyncio
import json
from typing import Optional

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from auxbar_sync.exceptions import PresenceClientError
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.presence.render import PresencePayload
from auxbar_sync.storage.config_manager import ConfigManager


async def _wait_until(predicate, timeout: float = 3.0, interval: float = 0.01):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_until():
    return _wait_until


class FakeAuxbarServer:
    """In-process stand-in for the Auxbar auth and real-time endpoints."""

    PASSWORD = "correct-horse"

    def __init__(self):
        self.login_requests: list[dict] = []
        self.refresh_requests: list[dict] = []
        self.ws_tokens: list[str] = []
        self.frames: list[dict] = []
        self.open_sockets: list[web.WebSocketResponse] = []

        self.session_active_elsewhere = False
        self.refresh_status = 200
        self.refresh_delay = 0.0
        self.widget_slug = "dj-example"
        self.send_raw_on_connect: list[str] = []

        self._issued = 0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/auth/login", self.handle_login)
        app.router.add_post("/api/auth/refresh", self.handle_refresh)
        app.router.add_get("/ws", self.handle_ws)
        return app

    def _issue(self) -> dict:
        self._issued += 1
        return {
            "accessToken": f"access-{self._issued}",
            "refreshToken": f"refresh-{self._issued}",
        }

    async def handle_login(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.login_requests.append(body)

        if body.get("password") != self.PASSWORD:
            return web.json_response({"error": "Invalid email or password"}, status=401)
        if self.session_active_elsewhere and not body.get("forceLogin"):
            return web.json_response({"error": "ACTIVE_SESSION_EXISTS"}, status=409)

        self.session_active_elsewhere = False
        return web.json_response(
            {
                **self._issue(),
                "user": {
                    "id": "u1",
                    "email": body["email"],
                    "displayName": "Example",
                    "widgetSlug": self.widget_slug,
                },
            }
        )

    async def handle_refresh(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.refresh_requests.append(body)
        if self.refresh_delay:
            await asyncio.sleep(self.refresh_delay)
        if self.refresh_status != 200:
            return web.json_response(
                {"error": "Invalid refresh token"}, status=self.refresh_status
            )
        return web.json_response(self._issue())

    async def handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.ws_tokens.append(request.query.get("token", ""))
        self.open_sockets.append(ws)

        for raw in self.send_raw_on_connect:
            await ws.send_str(raw)
        await ws.send_json({"type": "connected", "widgetSlug": self.widget_slug})

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    self.frames.append(json.loads(msg.data))
        finally:
            self.open_sockets.remove(ws)
        return ws

    async def drop_connections(self) -> None:
        for ws in list(self.open_sockets):
            await ws.close()


@pytest.fixture
async def auxbar_server():
    fake = FakeAuxbarServer()
    server = TestServer(fake.app())
    await server.start_server()
    fake.base_url = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
def fast_settings(auxbar_server) -> SyncSettings:
    return SyncSettings(
        base_url=auxbar_server.base_url,
        poll_interval_s=0.02,
        reconnect_timeout_s=5.0,
        error_reconnect_timeout_s=0.05,
        presence_grace_delay_s=0.0,
        presence_reconnect_interval_s=0.0,
    )


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "Auxbar" / "config.json"


@pytest.fixture
def store(config_path) -> ConfigManager:
    return ConfigManager(config_path)


class FakePresenceClient:
    """Records what would have been shown on the Discord profile."""

    def __init__(self, available: bool = True):
        self.available = available
        self.is_ready = False
        self.fail_updates = False
        self.payloads: list[PresencePayload] = []
        self.connects = 0
        self.clears = 0
        self.closed = False

    @property
    def last(self) -> Optional[PresencePayload]:
        return self.payloads[-1] if self.payloads else None

    async def connect(self) -> None:
        self.connects += 1
        if not self.available:
            raise PresenceClientError("Could not connect to Discord: not running")
        self.is_ready = True

    async def set_presence(self, payload: PresencePayload) -> None:
        if not self.is_ready:
            raise PresenceClientError("Discord Rich Presence is not connected.")
        if self.fail_updates:
            raise PresenceClientError("Discord rejected the presence update")
        self.payloads.append(payload)

    async def clear(self) -> None:
        if not self.is_ready:
            raise PresenceClientError("Discord Rich Presence is not connected.")
        self.clears += 1

    async def close(self) -> None:
        self.closed = True
        self.is_ready = False


@pytest.fixture
def presence_client() -> FakePresenceClient:
    return FakePresenceClient()
