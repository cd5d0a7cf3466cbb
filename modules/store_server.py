"""
store_server.py
---------------
HTTP front of the shared state store.

Routes
------
GET       /api/data           full blob (defaults when the store is empty)
POST|PUT  /api/data           replace the blob; stale ``version`` → 409, a missing
                              one is only accepted while the store is empty
GET       /api/health         {status, activeTradeCount, totalTrades, uptime}
GET       /api/stats          performance, last 10 trades, active positions
GET       /api/trades.csv     closed trades as CSV
POST      /api/trades/close   manual close of an asset's active position

All writes are serialised on one asyncio.Lock and land in SQLite as a single
transaction.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web
from pydantic import ValidationError

from core.context import TradingContext
from models.store import ManualCloseRequest, StoreBlob
from modules.outcome_recorder import OutcomeRecorder, compute_performance
from modules.persistence.sqlite import SQLiteStateStore, StaleVersionError
from modules.reporting import build_health, build_stats, trades_to_csv
from utils.logger import setup_logger


class StoreServer:
    """aiohttp application serving the state blob out of SQLite."""

    def __init__(
        self,
        store: SQLiteStateStore,
        *,
        recorder: Optional[OutcomeRecorder] = None,
        host: str = "0.0.0.0",
        port: int = 3001,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.recorder = recorder or OutcomeRecorder()
        self.host = host
        self.port = port
        self.logger = logger or setup_logger("StoreServer")
        self.started_at = time.time()
        self._lock = asyncio.Lock()
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    # ------------------------------------------------------------------ #
    # App lifecycle
    # ------------------------------------------------------------------ #
    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/data", self.get_data)
        app.router.add_post("/api/data", self.put_data)
        app.router.add_put("/api/data", self.put_data)
        app.router.add_get("/api/health", self.health)
        app.router.add_get("/api/stats", self.stats)
        app.router.add_get("/api/trades.csv", self.trades_csv)
        app.router.add_post("/api/trades/close", self.close_trade)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        self.logger.info("✅ Store server listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self.logger.info("Store server stopped")

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _load_blob(self) -> StoreBlob:
        payload, version = self.store.load()
        blob = StoreBlob.model_validate(payload) if payload else StoreBlob()
        blob.version = version
        return blob

    def _persist(self, blob: StoreBlob, expected_version: Optional[int]) -> int:
        blob.performance = compute_performance(blob.trades)
        blob.timestamp = int(time.time() * 1000)
        return self.store.save(blob.to_wire(), expected_version=expected_version)

    @staticmethod
    def _error(status: int, message: str, **extra) -> web.Response:
        return web.json_response({"success": False, "error": message, **extra}, status=status)

    # ------------------------------------------------------------------ #
    # Routes
    # ------------------------------------------------------------------ #
    async def get_data(self, request: web.Request) -> web.Response:
        blob = self._load_blob()
        self.logger.debug(
            "GET /api/data - %d trades, %d active",
            len(blob.trades),
            sum(1 for s in blob.active_trades.values() if s is not None),
        )
        return web.json_response(blob.to_wire())

    async def put_data(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except ValueError:
            return self._error(400, "Body is not valid JSON")
        if not isinstance(body, dict):
            return self._error(400, "Invalid data structure")
        try:
            blob = StoreBlob.model_validate(body)
        except ValidationError as ve:
            self.logger.warning("Rejected malformed state blob: %s", ve)
            return self._error(400, "Invalid data structure")

        expected = blob.version
        async with self._lock:
            if expected is None:
                current = self.store.current_version()
                if current > 0:
                    self.logger.warning("Rejected write without version stamp (store at %d)", current)
                    return self._error(409, "Version required", version=current)
                self.logger.warning("Write without version stamp accepted on an empty store")
            try:
                version = self._persist(blob, expected)
            except StaleVersionError as exc:
                self.logger.warning("Rejected stale write: %s", exc)
                return self._error(409, "Stale version", version=exc.current)

        self.logger.info(
            "State saved - %d trades, version %d", len(blob.trades), version
        )
        return web.json_response(
            {"success": True, "timestamp": blob.timestamp, "version": version}
        )

    async def health(self, request: web.Request) -> web.Response:
        try:
            blob = self._load_blob()
        except ValueError as exc:
            self.logger.exception("Health check could not read state")
            return web.json_response({"status": "error", "error": str(exc)}, status=500)
        return web.json_response(build_health(blob, self.started_at))

    async def stats(self, request: web.Request) -> web.Response:
        return web.json_response(build_stats(self._load_blob()))

    async def trades_csv(self, request: web.Request) -> web.Response:
        blob = self._load_blob()
        day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return web.Response(
            text=trades_to_csv(blob.trades),
            content_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="trades_{day}.csv"'},
        )

    async def close_trade(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
            req = ManualCloseRequest.model_validate(body)
        except (ValueError, ValidationError) as exc:
            self.logger.warning("Rejected manual close payload: %s", exc)
            return self._error(400, "Required fields: asset, outcome, exitPrice")

        async with self._lock:
            blob = self._load_blob()
            ctx = TradingContext.for_assets(blob.active_trades)
            ctx.replace_from_blob(blob)
            setup = ctx.active.get(req.asset)
            if setup is None:
                return self._error(404, f"No active trade found for {req.asset}")

            trade = self.recorder.record(
                ctx,
                req.asset,
                setup,
                req.outcome,
                req.profit,
                exit_price=req.exit_price,
                closed_by="MANUAL",
            )
            if trade is None:
                return self._error(
                    409, f"Active {req.asset} trade is already recorded", version=blob.version
                )
            ctx.active[req.asset] = None
            version = self._persist(ctx.to_blob(), expected_version=blob.version)

        self.logger.info(
            "Manual close %s %s @ %s (version %d)",
            req.asset, req.outcome, req.exit_price, version,
        )
        return web.json_response({"success": True, "recorded": True, "version": version})
