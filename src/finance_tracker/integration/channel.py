import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from finance_tracker.logger import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[Any], Awaitable[object]]
LifecycleHandler = Callable[[], Awaitable[object] | object]


async def _call(handler: LifecycleHandler | None) -> None:
    if handler is None:
        return
    result = handler()
    if asyncio.iscoroutine(result):
        await result


class RealtimeChannel:
    """
    Websocket client for server push events.

    Each text frame is a JSON envelope handed to ``on_message``. The channel
    reconnects after a drop, giving up after ``reconnect_attempts`` consecutive
    failures; a successful connection resets the count.
    """

    def __init__(
        self,
        url: str,
        on_message: MessageHandler,
        *,
        on_connect: LifecycleHandler | None = None,
        on_disconnect: LifecycleHandler | None = None,
        token: str | None = None,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 2.0,
        connector: Callable[..., Any] | None = None,
    ) -> None:
        self.url = url
        self.on_message = on_message
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.token = token
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self._connect = connector or websockets.connect
        self._task: asyncio.Task | None = None
        self._stopping = False
        self.connected = False

    def _connect_kwargs(self) -> dict[str, Any]:
        if self.token:
            return {"additional_headers": {"Authorization": f"Bearer {self.token}"}}
        return {}

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[REALTIME] Discarding non-JSON frame.")
            return
        try:
            await self.on_message(message)
        except Exception:
            logger.exception("[REALTIME] Message handler failed for %r.", message)

    async def _session(self) -> None:
        async with self._connect(self.url, **self._connect_kwargs()) as socket:
            self.connected = True
            logger.info("[REALTIME] Connected to %s.", self.url)
            try:
                await _call(self.on_connect)
                async for raw in socket:
                    await self._dispatch(raw)
            finally:
                self.connected = False
                logger.info("[REALTIME] Disconnected from %s.", self.url)
                await _call(self.on_disconnect)

    async def run(self) -> None:
        failures = 0
        while not self._stopping:
            try:
                await self._session()
                failures = 0
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                failures += 1
                logger.warning("[REALTIME] Connection failed (%d/%d): %s", failures, self.reconnect_attempts, exc)
            if self._stopping:
                break
            if failures > self.reconnect_attempts:
                logger.error("[REALTIME] Giving up after %d failed attempts; working offline.", failures)
                break
            await asyncio.sleep(self.reconnect_delay * max(failures, 1))

    def start(self) -> asyncio.Task:
        self._stopping = False
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._stopping = True
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
