import json
from contextlib import asynccontextmanager
from typing import Any

import pytest

from finance_tracker.integration.channel import RealtimeChannel


class FakeSocket:
    def __init__(self, frames: list[str]) -> None:
        self.frames = frames

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame


def fake_connector(frames: list[str], fail_after: int = 1):
    calls: list[dict[str, Any]] = []

    @asynccontextmanager
    async def connect(url: str, **kwargs: Any):
        calls.append({"url": url, **kwargs})
        if len(calls) > fail_after:
            raise OSError("connection refused")
        yield FakeSocket(frames)

    return connect, calls


@pytest.mark.anyio
async def test_dispatches_frames_and_runs_lifecycle_hooks() -> None:
    received: list[Any] = []
    events: list[str] = []

    async def on_message(message: Any) -> None:
        received.append(message)

    frames = [
        json.dumps({"event": "transaction:created", "data": {"_id": "srv-1", "description": "coffee"}}),
        "not json",
        json.dumps({"event": "transaction:deleted", "data": {"id": "srv-1"}}),
    ]
    connect, calls = fake_connector(frames)
    channel = RealtimeChannel(
        "wss://tracker.example.com/events",
        on_message,
        on_connect=lambda: events.append("connect"),
        on_disconnect=lambda: events.append("disconnect"),
        token="secret",
        reconnect_attempts=0,
        reconnect_delay=0,
        connector=connect,
    )

    await channel.run()

    assert [message["event"] for message in received] == ["transaction:created", "transaction:deleted"]
    assert events == ["connect", "disconnect"]
    assert calls[0]["additional_headers"] == {"Authorization": "Bearer secret"}
    assert channel.connected is False


@pytest.mark.anyio
async def test_gives_up_after_consecutive_failures() -> None:
    async def on_message(message: Any) -> None:
        pass

    connect, calls = fake_connector([], fail_after=0)
    channel = RealtimeChannel(
        "wss://tracker.example.com/events",
        on_message,
        reconnect_attempts=3,
        reconnect_delay=0,
        connector=connect,
    )

    await channel.run()

    assert len(calls) == 4


@pytest.mark.anyio
async def test_handler_errors_do_not_drop_the_connection() -> None:
    received: list[Any] = []

    async def on_message(message: Any) -> None:
        if message.get("boom"):
            raise RuntimeError("handler bug")
        received.append(message)

    connect, _ = fake_connector([json.dumps({"boom": True}), json.dumps({"ok": True})])
    channel = RealtimeChannel("wss://x", on_message, reconnect_attempts=0, reconnect_delay=0, connector=connect)

    await channel.run()

    assert received == [{"ok": True}]


@pytest.mark.anyio
async def test_stop_cancels_the_reconnect_loop() -> None:
    async def on_message(message: Any) -> None:
        pass

    connect, _ = fake_connector([], fail_after=0)
    channel = RealtimeChannel("wss://x", on_message, reconnect_attempts=1000, reconnect_delay=10, connector=connect)

    task = channel.start()
    await channel.stop()

    assert task.done()
