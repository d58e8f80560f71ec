"""Broadcast loop fan-out against fake channels."""

import asyncio
import json
import os
import sys
from pathlib import Path

from starlette.websockets import WebSocketState

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from livetimers.schemas.timer import TimerOut
from livetimers.services.broadcast import Broadcaster, ChannelRegistry, encode_snapshot


class FakeSocket:
    def __init__(self, *, state=WebSocketState.CONNECTED, fail=False):
        self.client_state = state
        self.application_state = WebSocketState.CONNECTED
        self.fail = fail
        self.sent = []

    async def send_text(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))


def make_timer(timer_id, user_id, *, active=True, seconds=0):
    return TimerOut(
        id=timer_id,
        user_id=user_id,
        description=f"timer {timer_id}",
        start="2024-05-01T09:00:00.000Z",
        end=None if active else "2024-05-01T09:00:05.000Z",
        is_active=active,
        duration_seconds=seconds,
    )


TIMERS = [
    make_timer("a" * 32, "alice", seconds=7),
    make_timer("b" * 32, "bob", active=False, seconds=5),
    make_timer("c" * 32, "alice", active=False, seconds=2),
]


def test_snapshot_uses_client_field_names():
    payload = json.loads(encode_snapshot(TIMERS[:1]))
    assert payload == {
        "timers": [
            {
                "_id": "a" * 32,
                "userId": "alice",
                "description": "timer " + "a" * 32,
                "start": "2024-05-01T09:00:00.000Z",
                "end": None,
                "isActive": True,
                "durationInSeconds": 7,
            }
        ]
    }


def test_owner_scope_sends_each_channel_its_own_timers():
    registry = ChannelRegistry()
    alice_1, alice_2, bob = FakeSocket(), FakeSocket(), FakeSocket()
    registry.add(alice_1, "alice", "alice")
    registry.add(alice_2, "alice", "alice")
    registry.add(bob, "bob", "bob")
    broadcaster = Broadcaster(registry, lambda: TIMERS, scope="owner")

    sent = asyncio.run(broadcaster.tick())

    assert sent == 3
    assert alice_1.sent == alice_2.sent
    assert [t["_id"] for t in alice_1.sent[0]["timers"]] == ["a" * 32, "c" * 32]
    assert [t["_id"] for t in bob.sent[0]["timers"]] == ["b" * 32]


def test_all_scope_sends_everything_to_everyone():
    registry = ChannelRegistry()
    alice, bob = FakeSocket(), FakeSocket()
    registry.add(alice, "alice", "alice")
    registry.add(bob, "bob", "bob")
    broadcaster = Broadcaster(registry, lambda: TIMERS, scope="all")

    asyncio.run(broadcaster.tick())

    assert alice.sent == bob.sent
    assert len(alice.sent[0]["timers"]) == 3


def test_channels_not_ready_are_skipped_and_kept():
    registry = ChannelRegistry()
    connecting = FakeSocket(state=WebSocketState.CONNECTING)
    registry.add(connecting, "alice", "alice")
    broadcaster = Broadcaster(registry, lambda: TIMERS)

    assert asyncio.run(broadcaster.tick()) == 0
    assert connecting.sent == []
    assert len(registry) == 1


def test_failed_send_drops_channel_but_not_others():
    registry = ChannelRegistry()
    broken, healthy = FakeSocket(fail=True), FakeSocket()
    registry.add(broken, "alice", "alice")
    registry.add(healthy, "alice", "alice")
    broadcaster = Broadcaster(registry, lambda: TIMERS)

    assert asyncio.run(broadcaster.tick()) == 1
    assert len(registry) == 1
    assert len(healthy.sent) == 1


def test_no_channels_skips_the_store():
    calls = []
    broadcaster = Broadcaster(ChannelRegistry(), lambda: calls.append(1) or [])

    assert asyncio.run(broadcaster.tick()) == 0
    assert calls == []


def test_loop_survives_failing_ticks_until_stopped():
    registry = ChannelRegistry()
    registry.add(FakeSocket(), "alice", "alice")
    attempts = []

    def flaky_loader():
        attempts.append(1)
        raise RuntimeError("store unavailable")

    broadcaster = Broadcaster(registry, flaky_loader, interval=0.01)

    async def scenario():
        broadcaster.start()
        await asyncio.sleep(0.1)
        await broadcaster.stop()

    asyncio.run(scenario())

    assert len(attempts) >= 2
