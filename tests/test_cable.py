# tests/test_cable.py

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from taskboard.live import cable as cable_module
from taskboard.live.cable import CableChannel
from taskboard.live.events import EventKind, LiveEvent

from .fakes import make_task


def message(channel: CableChannel, payload) -> str:
    return json.dumps({"identifier": channel.identifier, "message": payload})


def test_subscribe_command_uses_channel_identifier() -> None:
    channel = CableChannel("ws://localhost:3000/cable")
    cmd = channel.subscribe_command()

    assert cmd["command"] == "subscribe"
    assert json.loads(cmd["identifier"]) == {"channel": "TasksChannel"}


def test_protocol_frames_are_not_delivered() -> None:
    channel = CableChannel("ws://localhost:3000/cable")
    got: list[LiveEvent] = []
    channel.subscribe(got.append)

    assert channel.handle_frame(json.dumps({"type": "welcome"})) is None
    assert channel.handle_frame(json.dumps({"type": "ping", "message": 1761459000})) is None
    assert not channel.connected

    confirm = {"type": "confirm_subscription", "identifier": channel.identifier}
    assert channel.handle_frame(json.dumps(confirm)) is None
    assert channel.connected

    assert channel.handle_frame(json.dumps({"type": "disconnect", "reason": "restart"})) is None
    assert not channel.connected
    assert got == []


def test_broadcast_frames_are_parsed_and_delivered() -> None:
    channel = CableChannel("ws://localhost:3000/cable")
    got: list[LiveEvent] = []
    channel.subscribe(got.append)

    task = make_task(4, "done")
    event = channel.handle_frame(message(channel, {"action": "update", "task": task.to_dict()}))
    channel.handle_frame(message(channel, {"action": "destroy", "id": 4}))

    assert event is not None and event.task == task
    assert [e.kind for e in got] == [EventKind.UPDATE, EventKind.DESTROY]


def test_malformed_and_foreign_frames_are_dropped() -> None:
    channel = CableChannel("ws://localhost:3000/cable")
    got: list[LiveEvent] = []
    channel.subscribe(got.append)

    assert channel.handle_frame("not json") is None
    assert channel.handle_frame(json.dumps([1, 2])) is None
    assert channel.handle_frame(message(channel, {"action": "archive", "id": 1})) is None
    other = json.dumps({"identifier": json.dumps({"channel": "Other"}), "message": {"action": "destroy", "id": 1}})
    assert channel.handle_frame(other) is None

    assert got == []


def test_from_settings_derives_origin(settings) -> None:
    channel = CableChannel.from_settings(settings)

    assert channel.url == "ws://localhost:3000/cable"
    assert channel.origin == "http://localhost:3000"
    assert channel.reconnect_delay == 0.1


class FakeSocket:
    def __init__(self, frames: list[str], hold: asyncio.Event | None = None) -> None:
        self.frames = frames
        self.hold = hold
        self.sent: list[dict] = []

    async def __aenter__(self) -> FakeSocket:
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame
        if self.hold is not None:
            await self.hold.wait()


@pytest.mark.asyncio
async def test_reader_reconnects_after_drops(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="taskboard.live.cable")
    channel = CableChannel("ws://localhost:3000/cable", reconnect_delay=0.1)
    frames = [
        json.dumps({"type": "welcome"}),
        json.dumps({"type": "confirm_subscription", "identifier": channel.identifier}),
        message(channel, {"action": "destroy", "id": 8}),
    ]
    sockets: list[FakeSocket] = []
    attempts: list[dict] = []

    def fake_connect(url: str, **kwargs) -> FakeSocket:
        attempts.append(kwargs)
        if len(attempts) == 1:
            raise OSError("connection refused")
        sock = FakeSocket(frames if len(attempts) == 2 else [], hold=None if len(attempts) == 2 else asyncio.Event())
        sockets.append(sock)
        return sock

    monkeypatch.setattr(cable_module, "ws_connect", fake_connect)
    got: list[LiveEvent] = []
    channel.subscribe(got.append)

    await channel.connect()

    async def third_attempt() -> None:
        while len(attempts) < 3:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(third_attempt(), timeout=5)
    await channel.close()

    assert [e.id for e in got] == [8]
    assert attempts[0]["subprotocols"] == ["actioncable-v1-json"]
    assert sockets[0].sent == [channel.subscribe_command()]
    assert not channel.connected

    drops = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("OSError" in m and "reconnecting" in m for m in drops)
    assert any("closed by server" in m for m in drops)
