import asyncio
import json
import logging
from typing import Callable, Mapping, Optional

import websockets

from core.message_handler import parse_ticker
from models.market import TickEvent
from utils.logger import setup_logger

DEFAULT_FEED_URL = (
    "wss://stream.binance.com:9443/stream?streams=btcusdt@ticker/ethusdt@ticker"
)


class PriceFeedClient:
    """
    Push source of ticks from the exchange's combined ticker stream.

    Reconnects with exponential backoff.  The consecutive-failure counter is
    reset every time a connection opens; once it reaches `max_retries` the
    client gives up (``gave_up`` is set) and run() returns.  The process
    itself keeps going.
    """

    def __init__(
        self,
        symbol_map: Mapping[str, str],
        on_tick: Callable[[TickEvent], None],
        url: str = DEFAULT_FEED_URL,
        logger: Optional[logging.Logger] = None,
        *,
        max_retries: int = 10,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        heartbeat_interval: float = 25.0,
    ):
        self.url = url
        self.symbol_map = {k.upper(): v for k, v in symbol_map.items()}
        self.on_tick = on_tick
        self.logger = logger if logger else setup_logger("PriceFeedClient")

        self.queue: asyncio.Queue = asyncio.Queue()
        self.ws = None

        self.is_running = False
        self.gave_up = False
        self._stop = False
        self._retries = 0
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._heartbeat_interval = heartbeat_interval
        self._backoff = initial_backoff

        self._hb_task: Optional[asyncio.Task] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._consumer_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.is_running and self.ws is not None

    def stop(self) -> None:
        self._stop = True

    async def run(self) -> None:
        self._backoff = self._initial_backoff
        while not self._stop:
            try:
                await self._connect_once()
            except Exception as exc:
                self.logger.warning("Feed session failed: %s", exc)
            if self._stop:
                break
            self._retries += 1
            if self._retries >= self._max_retries:
                self.gave_up = True
                self.logger.error(
                    "❌ Price feed gave up after %d consecutive failures", self._retries
                )
                break
            self.logger.info(
                "🔁 Reconnecting in %.1fs (attempt %d/%d)",
                self._backoff, self._retries, self._max_retries,
            )
            await asyncio.sleep(self._backoff)
            self._backoff = min(self._backoff * 2, self._max_backoff)
        self.is_running = False

    async def _connect_once(self) -> None:
        try:
            async with websockets.connect(self.url, ping_interval=None) as ws:
                self.ws = ws
                self.is_running = True
                self._retries = 0
                self._backoff = self._initial_backoff
                self.logger.info("✅ Feed connected → %s", self.url)

                self._listener_task = asyncio.create_task(self.listen_messages())
                self._consumer_task = asyncio.create_task(self.process_message_queue())
                self._hb_task = asyncio.create_task(self._heartbeat())

                await self._listener_task
        finally:
            self.is_running = False
            if self._hb_task and not self._hb_task.done():
                self._hb_task.cancel()
            self.ws = None
            self.logger.info("Feed session ended")

    async def graceful_shutdown(self) -> None:
        self._stop = True
        self.is_running = False
        await self.queue.put(None)
        for task in (self._hb_task, self._listener_task, self._consumer_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if self.ws:
            try:
                await self.ws.close()
            except Exception as exc:
                self.logger.debug("Error closing feed socket: %s", exc)

    async def _heartbeat(self) -> None:
        while self.is_running and self.ws:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                pong = await self.ws.ping()
                await asyncio.wait_for(pong, timeout=10)
            except Exception as e:
                self.logger.warning("Heartbeat ping failed: %s", e)
                self.is_running = False
                try:
                    await self.ws.close()
                except Exception as exc:
                    self.logger.debug("Error closing feed socket: %s", exc)
                break

    async def listen_messages(self) -> None:
        try:
            async for raw in self.ws:
                await self.queue.put(raw)
        except websockets.exceptions.ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd else 1006
            reason = e.rcvd.reason if e.rcvd else ""
            level = self.logger.warning if code not in (1000, 1006) else self.logger.info
            level("Feed closed (code=%s reason=%s)", code, reason)
        finally:
            self.is_running = False
            await self.queue.put(None)

    async def process_message_queue(self) -> None:
        while True:
            try:
                raw = await self.queue.get()
                if raw is None:
                    break
                self.handle_raw(raw)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                self.logger.exception("Queue consumer crashed: %s", exc)

    def handle_raw(self, raw_msg) -> Optional[TickEvent]:
        try:
            msg = json.loads(raw_msg)
        except (TypeError, ValueError):
            self.logger.warning("Malformed feed payload: %s", raw_msg)
            return None
        tick = parse_ticker(msg, self.symbol_map)
        if tick is not None:
            self.on_tick(tick)
        return tick
