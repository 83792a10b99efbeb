# src/taskboard/live/cable.py

"""
ActionCable client for the task store's live-update topic.

Protocol (actioncable-v1-json):
- server sends {"type": "welcome"} after the socket opens,
- we send {"command": "subscribe", "identifier": "{\"channel\": \"TasksChannel\"}"},
- server confirms with {"type": "confirm_subscription", "identifier": ...},
- broadcasts arrive as {"identifier": ..., "message": {"action": ..., "task"|"id": ...}},
- {"type": "ping"} frames are keepalives.

Reconnection belongs here (the transport), not in the sync layer: when the socket drops
we log it and reconnect after `reconnect_delay`. Events broadcast while disconnected are
not replayed; the sync layer catches up on its next fetch-all.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import WebSocketException

from ..core.errors import ChannelDisconnect
from .events import LiveEvent
from .observers import ObserverList

logger = logging.getLogger(__name__)

SUBPROTOCOL = "actioncable-v1-json"


class CableChannel:
    def __init__(
        self,
        url: str,
        *,
        channel: str = "TasksChannel",
        reconnect_delay: float = 3.0,
        origin: str | None = None,
    ) -> None:
        self.url = url
        self.channel = channel
        self.identifier = json.dumps({"channel": channel})
        self.reconnect_delay = max(0.1, float(reconnect_delay))
        self.origin = origin
        self._observers: ObserverList[LiveEvent] = ObserverList("cable-channel")
        self._runner: asyncio.Task[None] | None = None
        self._subscribed = False
        self._closing = False

    @classmethod
    def from_settings(cls, settings) -> CableChannel:
        api_url = str(getattr(settings, "api_url", "") or "")
        return cls(
            str(getattr(settings, "cable_url")),
            channel=str(getattr(settings, "cable_channel", "TasksChannel")),
            reconnect_delay=float(getattr(settings, "cable_reconnect_seconds", 3.0)),
            origin=api_url.rstrip("/") or None,
        )

    @property
    def connected(self) -> bool:
        return self._subscribed

    def subscribe(self, callback: Callable[[LiveEvent], None]) -> Callable[[], None]:
        return self._observers.register(callback)

    async def connect(self) -> None:
        """Start the background reader. Returns immediately; delivery starts once subscribed."""
        if self._runner is not None and not self._runner.done():
            return
        self._closing = False
        self._runner = asyncio.create_task(self._run(), name=f"cable:{self.channel}")

    async def close(self) -> None:
        self._closing = True
        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        self._subscribed = False

    def subscribe_command(self) -> dict[str, str]:
        return {"command": "subscribe", "identifier": self.identifier}

    def handle_frame(self, raw: str | bytes) -> LiveEvent | None:
        """
        Process one server frame. Delivers and returns the LiveEvent for broadcast frames,
        None for protocol frames and for anything malformed (logged and dropped).
        """
        try:
            data: Any = json.loads(raw)
        except ValueError:
            logger.warning("Cable: non-JSON frame dropped")
            return None
        if not isinstance(data, dict):
            logger.warning("Cable: unexpected frame dropped: %r", data)
            return None

        frame_type = data.get("type")
        if frame_type == "ping":
            return None
        if frame_type == "welcome":
            logger.debug("Cable: welcome")
            return None
        if frame_type == "confirm_subscription":
            if data.get("identifier") == self.identifier:
                self._subscribed = True
                logger.info("Connected to %s", self.channel)
            return None
        if frame_type == "reject_subscription":
            self._subscribed = False
            logger.warning("Cable: subscription to %s rejected", self.channel)
            return None
        if frame_type == "disconnect":
            self._subscribed = False
            logger.warning(
                "Cable: server disconnect (reason=%s, reconnect=%s)",
                data.get("reason"),
                data.get("reconnect"),
            )
            return None

        if "message" not in data or data.get("identifier") != self.identifier:
            logger.debug("Cable: ignoring frame %r", frame_type)
            return None

        try:
            event = LiveEvent.from_payload(data["message"])
        except ValueError as e:
            logger.warning("Cable: malformed live event dropped (%s)", e)
            return None

        self._observers.emit(event)
        return event

    async def _run(self) -> None:
        while not self._closing:
            try:
                async with ws_connect(
                    self.url,
                    subprotocols=[SUBPROTOCOL],  # type: ignore[list-item]
                    origin=self.origin,  # type: ignore[arg-type]
                ) as ws:
                    await ws.send(json.dumps(self.subscribe_command()))
                    async for raw in ws:
                        self.handle_frame(raw)
                    err = ChannelDisconnect(f"{self.channel}: connection closed by server")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                err = ChannelDisconnect(f"{self.channel}: {e.__class__.__name__}: {e}")
            finally:
                self._subscribed = False

            if self._closing:
                break
            logger.warning("Disconnected from %s (%s); reconnecting in %.1fs", self.channel, err, self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

        logger.info("Cable reader for %s stopped", self.channel)
