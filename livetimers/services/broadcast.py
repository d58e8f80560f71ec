"""Periodic push of timer snapshots to every open live-update channel.

``ChannelRegistry`` owns the set of admitted WebSockets; ``Broadcaster`` owns
the loop task. Both are created at startup and hung off ``app.state``, so
nothing here is module-level mutable state.

Delivery is best effort and at most once per tick: channels that are not
connected are skipped, channels whose send fails are dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, Literal
from uuid import uuid4

from prometheus_client import Counter, Gauge
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocket, WebSocketState

from ..crud.timers import list_all_timers
from ..schemas.timer import TimerOut

logger = logging.getLogger(__name__)

LIVE_CHANNELS = Gauge("livetimers_live_channels", "Open live-update channels")
BROADCAST_TICKS = Counter("livetimers_broadcast_ticks_total", "Broadcast ticks completed")
BROADCAST_FAILURES = Counter("livetimers_broadcast_failures_total", "Broadcast ticks that failed")

TimerLoader = Callable[[], list[TimerOut]]


@dataclass
class Channel:
    websocket: WebSocket
    owner_id: str
    username: str
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def ready(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class ChannelRegistry:
    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}

    def add(self, websocket: WebSocket, owner_id: str, username: str) -> Channel:
        channel = Channel(websocket=websocket, owner_id=owner_id, username=username)
        self._channels[channel.id] = channel
        LIVE_CHANNELS.inc()
        return channel

    def discard(self, channel_id: str) -> None:
        if self._channels.pop(channel_id, None) is not None:
            LIVE_CHANNELS.dec()

    def snapshot(self) -> list[Channel]:
        return list(self._channels.values())

    def __len__(self) -> int:
        return len(self._channels)


def encode_snapshot(timers: Iterable[TimerOut]) -> str:
    return json.dumps({"timers": [t.model_dump(mode="json", by_alias=True) for t in timers]})


def store_loader(session_factory: sessionmaker) -> TimerLoader:
    def load() -> list[TimerOut]:
        with session_factory() as db:
            return list_all_timers(db)

    return load


class Broadcaster:
    def __init__(
        self,
        registry: ChannelRegistry,
        load_timers: TimerLoader,
        *,
        interval: float = 1.0,
        scope: Literal["owner", "all"] = "owner",
    ) -> None:
        self.registry = registry
        self.load_timers = load_timers
        self.interval = interval
        self.scope = scope
        self._task: asyncio.Task | None = None

    def _payloads(self, timers: list[TimerOut]) -> Callable[[Channel], str]:
        if self.scope == "all":
            everything = encode_snapshot(timers)
            return lambda channel: everything
        by_owner: dict[str, list[TimerOut]] = defaultdict(list)
        for timer in timers:
            by_owner[timer.user_id].append(timer)
        encoded: dict[str, str] = {}

        def for_channel(channel: Channel) -> str:
            if channel.owner_id not in encoded:
                encoded[channel.owner_id] = encode_snapshot(by_owner.get(channel.owner_id, []))
            return encoded[channel.owner_id]

        return for_channel

    async def tick(self) -> int:
        """Push one snapshot round. Returns how many channels were sent to."""
        channels = self.registry.snapshot()
        if not channels:
            return 0
        timers = await run_in_threadpool(self.load_timers)
        payload_for = self._payloads(timers)
        sent = 0
        for channel in channels:
            if not channel.ready:
                continue
            try:
                await channel.websocket.send_text(payload_for(channel))
            except Exception as exc:
                logger.info("Dropping live channel %s after failed send: %s", channel.id, exc)
                self.registry.discard(channel.id)
                continue
            sent += 1
        return sent

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.tick()
                BROADCAST_TICKS.inc()
            except Exception:
                BROADCAST_FAILURES.inc()
                logger.exception("Error sending timer updates")
            await asyncio.sleep(max(self.interval - (loop.time() - started), 0))

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="timer-broadcast")
            logger.info("Broadcast loop started (every %ss, scope=%s)", self.interval, self.scope)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Broadcast loop stopped")
