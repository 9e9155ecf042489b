from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable, Iterable
from typing import Any

import websockets

from .state import FeedState
from .types import ConnectionStatus, RawTradeEvent

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
CONTROL_CHANNELS = frozenset({"pong", "subscriptionResponse"})
TRADES_CHANNEL = "trades"

DEFAULT_HEARTBEAT_INTERVAL = 30.0  # seconds
DEFAULT_RECONNECT_BASE_DELAY = 3.0  # seconds
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5

TradeCallback = Callable[[RawTradeEvent], None]


class HyperliquidTradeStream:
    """Single persistent connection to the Hyperliquid ``trades`` channel.

    Transport failures never raise to the caller: they are retried with a
    linear backoff (``base * attempt``) and reported through ``FeedState``.
    Once ``max_reconnect_attempts`` consecutive attempts have failed the
    stream parks in ``ERROR`` until ``start`` is called again.
    """

    def __init__(
        self,
        ws_url: str,
        state: FeedState,
        coins: Iterable[str] = (),
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        reconnect_base_delay: float = DEFAULT_RECONNECT_BASE_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.ws_url = ws_url
        self.state = state
        self.coins = frozenset(coins)
        self.heartbeat_interval = heartbeat_interval
        self.reconnect_base_delay = reconnect_base_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self._connect = connect

        self._status = ConnectionStatus.DISCONNECTED
        self._callback: TradeCallback | None = None
        self._ws: Any = None
        self._session_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_attempts = 0
        self._stopping = False
        self._stopped = asyncio.Event()

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def start(self, callback: TradeCallback) -> None:
        if self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            return
        if self._reconnect_handle is not None:
            return
        self._callback = callback
        self._stopping = False
        self._stopped.clear()
        self._reconnect_attempts = 0
        self._open()

    async def stop(self) -> None:
        self._stopping = True
        # Timers go before the first await so nothing can fire after stop().
        self._cancel_timers()
        self._reconnect_attempts = 0

        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close(code=NORMAL_CLOSURE, reason="Manual disconnect")

        task, self._session_task = self._session_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self._set_status(ConnectionStatus.DISCONNECTED)
        self._stopped.set()

    async def wait_stopped(self) -> ConnectionStatus:
        await self._stopped.wait()
        return self._status

    def _set_status(self, new_status: ConnectionStatus) -> None:
        if self._status == new_status:
            return
        old = self._status
        self._status = new_status
        logger.info("Hyperliquid stream state: %s -> %s", old.value, new_status.value)
        self.state.set_connection_status(new_status)

    def _cancel_timers(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def _open(self) -> None:
        self._reconnect_handle = None
        if self._stopping:
            return
        self._set_status(ConnectionStatus.CONNECTING)
        self.state.set_error_message(None)
        self._session_task = asyncio.get_running_loop().create_task(self._session())

    async def _session(self) -> None:
        try:
            ws = await self._connect(self.ws_url, ping_interval=20, ping_timeout=20)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Failed to connect to %s: %s", self.ws_url, exc)
            self._handle_abnormal_close(f"WebSocket connection error: {exc}")
            return

        if self._stopping:
            with contextlib.suppress(Exception):
                await ws.close(code=NORMAL_CLOSURE, reason="Stopped while connecting")
            return

        self._ws = ws
        self._reconnect_attempts = 0
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info("Connected to Hyperliquid WS %s", self.ws_url)

        error: str | None = None
        try:
            await self._subscribe(ws)
            self._heartbeat_task = asyncio.create_task(self._heartbeat(ws))
            async for raw in ws:
                self._handle_message(raw)
        except asyncio.CancelledError:
            raise
        except websockets.ConnectionClosed:
            pass
        except Exception as exc:
            error = str(exc)
        finally:
            if self._heartbeat_task is not None:
                self._heartbeat_task.cancel()
                self._heartbeat_task = None
            if self._ws is ws:
                self._ws = None

        if self._stopping:
            return

        code = getattr(ws, "close_code", None)
        if code == NORMAL_CLOSURE and error is None:
            logger.info("Hyperliquid WS closed normally")
            self._set_status(ConnectionStatus.DISCONNECTED)
            self._stopped.set()
            return

        logger.warning("Hyperliquid WS disconnected (code=%s, error=%s)", code, error)
        self._handle_abnormal_close(error or f"Connection closed with code {code}")

    def _handle_abnormal_close(self, reason: str) -> None:
        if self._stopping:
            return
        if self._reconnect_attempts < self.max_reconnect_attempts:
            self._reconnect_attempts += 1
            delay = self.reconnect_base_delay * self._reconnect_attempts
            logger.warning(
                "Reconnecting in %.1fs (attempt %d/%d): %s",
                delay,
                self._reconnect_attempts,
                self.max_reconnect_attempts,
                reason,
            )
            self._set_status(ConnectionStatus.CONNECTING)
            self.state.set_error_message(
                f"Reconnecting... ({self._reconnect_attempts}/{self.max_reconnect_attempts})"
            )
            loop = asyncio.get_running_loop()
            self._reconnect_handle = loop.call_later(delay, self._open)
            return

        logger.error("Giving up on %s after %d reconnect attempts", self.ws_url, self._reconnect_attempts)
        self._set_status(ConnectionStatus.ERROR)
        self.state.set_error_message("Max reconnection attempts reached. Please reconnect manually.")
        self._stopped.set()

    async def _subscribe(self, ws: Any) -> None:
        if not self.coins:
            await ws.send(json.dumps({"method": "subscribe", "subscription": {"type": TRADES_CHANNEL}}))
        else:
            for coin in sorted(self.coins):
                await ws.send(
                    json.dumps(
                        {
                            "method": "subscribe",
                            "subscription": {"type": TRADES_CHANNEL, "coin": coin},
                        }
                    )
                )
        logger.info("Subscribed to trades channel (coins=%s)", ",".join(sorted(self.coins)) or "all")

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await ws.send(json.dumps({"method": "ping"}))
            except websockets.ConnectionClosed:
                return
            except Exception:
                logger.exception("Heartbeat send failed")
                return

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Skipping malformed WS frame: %s", exc)
            return
        if not isinstance(message, dict):
            logger.warning("Skipping WS frame that is not an object")
            return

        channel = message.get("channel")
        if channel in CONTROL_CHANNELS:
            return
        if channel != TRADES_CHANNEL:
            logger.debug("Ignoring WS channel=%r", channel)
            return

        self.state.record_message()
        for event in _extract_trades(message.get("data")):
            if self.coins and event.coin not in self.coins:
                continue
            if self._callback is None:
                continue
            try:
                self._callback(event)
            except Exception:
                logger.exception("Error in trade callback for tid=%s", event.tid)


def parse_ws_message(raw: str | bytes) -> list[RawTradeEvent]:
    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return []
    if not isinstance(message, dict) or message.get("channel") != TRADES_CHANNEL:
        return []
    return _extract_trades(message.get("data"))


def _extract_trades(data: Any) -> list[RawTradeEvent]:
    if data is None:
        return []
    records = data if isinstance(data, list) else [data]
    events: list[RawTradeEvent] = []
    for record in records:
        if not isinstance(record, dict):
            logger.warning("Skipping trade that is not an object: %r", record)
            continue
        try:
            events.append(RawTradeEvent.from_message(record))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed trade %r: %s", record.get("tid"), exc)
    return events
