"""
store_sync.py
-------------
Pulls and pushes the full state blob between a TradingContext and the shared
store.

* load()  – full-snapshot overwrite of local state; on any failure the local
            state is kept untouched.
* save()  – pushes the whole local state with its version stamp.  Nothing is
            pushed without a version: a context that never loaded first
            fetches the store's snapshot and merges onto it.  A 409 means
            another writer got there first: local changes are rebased onto
            the store's snapshot and pushed again.  Other failures are logged
            only; the next successful push carries the latest state anyway.
* request_save() – fire-and-forget variant for the tick loop.  Pushes are
            coalesced: while one is in flight, further requests collapse into a
            single follow-up push of the then-current state.

Every HTTP call is bounded by the session timeout; a timeout is just another
failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import aiohttp
from pydantic import ValidationError

from core.context import TradingContext
from models.store import StoreBlob
from modules.outcome_recorder import compute_performance

DEFAULT_TIMEOUT_SECONDS = 5.0
MAX_PUSH_ATTEMPTS = 3

_FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValidationError, ValueError)


class StoreSynchronizer:

    def __init__(
        self,
        ctx: TradingContext,
        base_url: str = "http://localhost:3001",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        read_only: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ctx = ctx
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.read_only = read_only
        self.logger = logger or logging.getLogger(self.__class__.__name__)

        self._session = session
        self._owns_session = session is None
        self._dirty = False
        self._save_task: Optional[asyncio.Task] = None
        # slot ids of the last snapshot local state agreed with the store on
        self._base_slots: Dict[str, Optional[str]] = {}

        self.metrics = {"loads": 0, "saves": 0, "failures": 0, "conflicts": 0, "rebases": 0}

    @property
    def data_url(self) -> str:
        return f"{self.base_url}/api/data"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _fetch(self) -> StoreBlob:
        session = await self._get_session()
        async with session.get(self.data_url, timeout=self.timeout) as resp:
            resp.raise_for_status()
            data = await resp.json()
        return StoreBlob.model_validate(data)

    # -------------------------------------------------------------------- #
    async def load(self) -> bool:
        """Replace local state with the store's snapshot; False on failure."""
        try:
            blob = await self._fetch()
        except _FETCH_ERRORS as exc:
            self.metrics["failures"] += 1
            self.logger.warning("Store load failed, keeping local state: %s", exc)
            return False

        self.ctx.replace_from_blob(blob)
        self.ctx.performance = compute_performance(self.ctx.trades)
        self._base_slots = self.ctx.slot_ids()
        self.metrics["loads"] += 1
        self.logger.info(
            "Loaded %d trades, %d active (version %s) from store",
            len(self.ctx.trades), self.ctx.active_count(), self.ctx.version,
        )
        return True

    async def rebase(self) -> bool:
        """Fetch the store's snapshot and merge unsaved local changes onto it."""
        try:
            blob = await self._fetch()
        except _FETCH_ERRORS as exc:
            self.metrics["failures"] += 1
            self.logger.warning("Store fetch for rebase failed: %s", exc)
            return False

        remote_slots = {
            asset.lower(): (s.id if s is not None and s.is_active else None)
            for asset, s in blob.active_trades.items()
        }
        reapplied = self.ctx.rebase_onto(blob, self._base_slots)
        self.ctx.performance = compute_performance(self.ctx.trades)
        self._base_slots = remote_slots
        self.metrics["rebases"] += 1
        self.logger.info(
            "Rebased onto store version %s (%d local trades re-applied)",
            self.ctx.version, len(reapplied),
        )
        return True

    async def save(self) -> bool:
        """Push the full local state; False when nothing was persisted."""
        if self.read_only:
            self.logger.debug("Read-only synchronizer: save skipped")
            return False

        for _ in range(MAX_PUSH_ATTEMPTS):
            if self.ctx.version is None:
                self.logger.warning("No store version yet; merging onto the store snapshot first")
                if not await self.rebase():
                    return False

            payload = self.ctx.to_blob().to_wire()
            pushed_slots = self.ctx.slot_ids()
            try:
                session = await self._get_session()
                async with session.post(self.data_url, json=payload, timeout=self.timeout) as resp:
                    body = await resp.json(content_type=None)
                    status = resp.status
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                self.metrics["failures"] += 1
                self.logger.error("Store save failed: %s", exc)
                return False

            if status == 409:
                self.metrics["conflicts"] += 1
                self.logger.warning(
                    "Store rejected stale write (local version %s, store %s); rebasing",
                    payload.get("version"), (body or {}).get("version"),
                )
                if not await self.rebase():
                    return False
                continue
            if status != 200 or not (body or {}).get("success"):
                self.metrics["failures"] += 1
                self.logger.error("Store save failed: HTTP %s %s", status, body)
                return False

            self.ctx.version = body.get("version", self.ctx.version)
            self._base_slots = pushed_slots
            self.metrics["saves"] += 1
            return True

        self.logger.error("Store save gave up after %d conflicting attempts", MAX_PUSH_ATTEMPTS)
        return False

    # -------------------------------------------------------------------- #
    def request_save(self) -> None:
        """Schedule a background push without blocking the caller."""
        if self.read_only:
            return
        self._dirty = True
        if self._save_task is None or self._save_task.done():
            self._save_task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while self._dirty:
            self._dirty = False
            await self.save()

    async def flush(self) -> None:
        """Wait for any scheduled push to finish."""
        if self._save_task is not None and not self._save_task.done():
            await self._save_task

    async def close(self) -> None:
        if self._save_task is not None and not self._save_task.done():
            self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
