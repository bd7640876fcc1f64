"""Long-lived Solana websocket subscriptions (logsSubscribe / programSubscribe).

One ProgramSubscription owns one connection and one subscription. It
reconnects with exponential backoff and dispatches every notification to an
async handler as its own task; notifications from different subscriptions
are not ordered relative to each other. ``stop()`` is idempotent.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from loguru import logger

NotificationHandler = Callable[[dict[str, Any]], Awaitable[None]]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACTIVE = "active"
    STOPPED = "stopped"


class ProgramSubscription:
    """Single-subscription websocket client with auto-reconnect."""

    def __init__(
        self,
        ws_url: str,
        method: str,
        params: list[Any],
        handler: NotificationHandler,
        *,
        callback_timeout: float = 30.0,
    ) -> None:
        self._ws_url = ws_url
        self._method = method
        self._params = params
        self._handler = handler
        self._callback_timeout = callback_timeout
        self._ws: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._reconnect_delay = 5.0
        self._max_reconnect_delay = 60.0
        self._message_count = 0
        self._subscription_id: int | None = None
        self._task: asyncio.Task | None = None
        self._pending_tasks: set[asyncio.Task] = set()

    @property
    def method(self) -> str:
        return self._method

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def subscription_id(self) -> int | None:
        return self._subscription_id

    def start(self) -> "ProgramSubscription":
        """Spawn the connection loop. Calling start twice is a no-op."""
        if self._task is None and self._state != ConnectionState.STOPPED:
            self._running = True
            self._task = asyncio.create_task(self._run())
        return self

    async def _run(self) -> None:
        while self._running:
            try:
                self._state = ConnectionState.CONNECTING
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=30,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._ws = ws
                    self._state = ConnectionState.CONNECTED
                    self._reconnect_delay = 5.0
                    await self._subscribe()
                    self._state = ConnectionState.ACTIVE
                    logger.info(f"[WS] {self._method} active")
                    await self._listen()
            except (
                websockets.ConnectionClosed,
                ConnectionError,
                OSError,
                TimeoutError,
            ) as e:
                logger.warning(f"[WS] {self._method} disconnected: {e}")
            finally:
                self._ws = None
                self._subscription_id = None
                if self._state != ConnectionState.STOPPED:
                    self._state = ConnectionState.DISCONNECTED

            if self._running:
                logger.info(f"[WS] Reconnecting in {self._reconnect_delay:.0f}s...")
                await asyncio.sleep(self._reconnect_delay)
                self._reconnect_delay = min(self._reconnect_delay * 2, self._max_reconnect_delay)

    async def _subscribe(self) -> None:
        if not self._ws:
            return
        await self._ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "method": self._method,
            "params": self._params,
        }))
        try:
            response = await asyncio.wait_for(self._ws.recv(), timeout=10.0)
            data = json.loads(response)
            if "result" in data:
                self._subscription_id = data["result"]
                logger.debug(f"[WS] {self._method} id={self._subscription_id}")
            elif "error" in data:
                logger.warning(f"[WS] {self._method} rejected: {data['error']}")
        except (asyncio.TimeoutError, json.JSONDecodeError) as e:
            logger.warning(f"[WS] Subscribe confirmation failed: {e}")

    async def _listen(self) -> None:
        if not self._ws:
            return
        async for message in self._ws:
            self._message_count += 1
            self.dispatch(message)

    def dispatch(self, message: str | bytes) -> bool:
        """Route one raw websocket frame to the handler. Returns True if dispatched.

        Notifications look like
        {"method": "<x>Notification", "params": {"result": {...}, "subscription": id}}
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return False
        params = data.get("params") if isinstance(data, dict) else None
        if not params:
            return False
        result = params.get("result")
        if not isinstance(result, dict):
            return False

        task = asyncio.create_task(self._safe_callback(result))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        return True

    async def _safe_callback(self, result: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(self._handler(result), timeout=self._callback_timeout)
        except asyncio.TimeoutError:
            logger.error(f"[WS] {self._method} handler timed out")
        except Exception as e:
            logger.error(f"[WS] {self._method} handler error: {e}")

    async def stop(self) -> None:
        """Tear down the subscription. Safe to call repeatedly."""
        if self._state == ConnectionState.STOPPED:
            return
        self._running = False
        self._state = ConnectionState.STOPPED

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (websockets.WebSocketException, OSError) as e:
                logger.debug(f"[WS] Close failed during teardown: {e}")

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for pending in list(self._pending_tasks):
            pending.cancel()
        self._pending_tasks.clear()
