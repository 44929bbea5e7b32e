from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi import WebSocketDisconnect

from communication_service.api.v1.routers import ws
from communication_service.application.dto.principal import Principal
from communication_service.domain.value_objects.enums import PresenceStatus
from tests.conftest import FakeUoW, make_presence


class ScriptedWebSocket:
    def __init__(self, *frames: dict) -> None:
        self.app = SimpleNamespace(state=SimpleNamespace(cache=None, redis=None))
        self._frames = [json.dumps(f) for f in frames]
        self.sent: list[dict] = []

    async def receive_text(self) -> str:
        if not self._frames:
            raise WebSocketDisconnect(code=1000)
        return self._frames.pop(0)

    async def send_text(self, raw: str) -> None:
        self.sent.append(json.loads(raw))


def _clock(*ticks: float):
    values = iter(ticks)
    return lambda: next(values)


@pytest.fixture
def uow(monkeypatch) -> FakeUoW:
    uow = FakeUoW()

    @asynccontextmanager
    async def fake_open_uow(cache=None):
        yield uow

    monkeypatch.setattr(ws, "open_uow", fake_open_uow)
    return uow


@pytest.mark.asyncio
async def test_activity_brings_idle_user_back_online(uow):
    idle = make_presence("player-1", PresenceStatus.AWAY, idle=timedelta(minutes=10))
    uow.presence._store["player-1"] = idle
    keepalive = ws.PresenceKeepAlive("player-1", 30, clock=_clock(0, 31))

    assert await keepalive.touch(None) is True

    stored = uow.presence._store["player-1"]
    assert stored.status == PresenceStatus.ONLINE
    assert stored.last_seen_at > idle.last_seen_at


@pytest.mark.asyncio
async def test_refresh_is_throttled_per_connection(uow, monkeypatch):
    refreshed: list[str] = []

    async def heartbeat(user_id, uow):
        refreshed.append(user_id)

    monkeypatch.setattr(ws.presence_service, "heartbeat", heartbeat)
    socket = ScriptedWebSocket({"type": "ping"}, {"type": "ping"}, {"type": "ping"})
    keepalive = ws.PresenceKeepAlive("player-1", 30, clock=_clock(0, 10, 45, 50))

    with pytest.raises(WebSocketDisconnect):
        await ws._read_loop(socket, Principal(user_id="player-1", roles=["player"]), keepalive)

    assert refreshed == ["player-1"]
    assert [frame["type"] for frame in socket.sent] == ["pong", "pong", "pong"]


@pytest.mark.asyncio
async def test_unknown_frames_do_not_refresh_presence(uow, monkeypatch):
    refreshed: list[str] = []

    async def heartbeat(user_id, uow):
        refreshed.append(user_id)

    monkeypatch.setattr(ws.presence_service, "heartbeat", heartbeat)
    socket = ScriptedWebSocket({"type": "shrug"})
    keepalive = ws.PresenceKeepAlive("player-1", 0, clock=_clock(0, 1))

    with pytest.raises(WebSocketDisconnect):
        await ws._read_loop(socket, Principal(user_id="player-1", roles=["player"]), keepalive)

    assert refreshed == []
    assert socket.sent[0]["data"]["code"] == "unknown_type"
