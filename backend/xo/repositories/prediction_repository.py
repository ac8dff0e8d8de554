"""View-segmented, refetch-only mirror of remote prediction records."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, Iterable

from loguru import logger

from xo.clients import LedgerClient
from xo.domain import IdPage, Prediction, PredictionStatus
from xo.domain.eligibility import is_expired
from xo.errors import PartialViewResolutionFailure
from xo.services.polling import PeriodicTask
from xo.services.wallet_session import SessionChange, WalletSession

from .types import ViewName, ViewSnapshot


class PredictionRepository:
    """Maintain the Open, Matched and Owned views.

    Every refresh fetches the id list for the view, resolves each id to a
    record and replaces the view wholesale. Ids that fail to resolve are
    dropped and reported on the snapshot's ``failures``. The ledger stays
    the source of truth: nothing here edits a cached record.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        session: WalletSession,
        *,
        page_size: int = 20,
        concurrency: int = 5,
        open_interval: float = 30,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._session = session
        self.page_size = page_size
        self._concurrency = max(1, concurrency)
        self._clock = clock
        self._views: dict[ViewName, ViewSnapshot] = {name: ViewSnapshot() for name in ViewName}
        self._locks: dict[ViewName, asyncio.Lock] = {name: asyncio.Lock() for name in ViewName}
        self._open_poller = PeriodicTask("open-predictions", self.refresh_open, open_interval)
        self._session_subscription = None
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Views

    def view(self, name: ViewName) -> ViewSnapshot:
        return self._views[name]

    @property
    def open(self) -> ViewSnapshot:
        return self._views[ViewName.OPEN]

    @property
    def matched(self) -> ViewSnapshot:
        return self._views[ViewName.MATCHED]

    @property
    def owned(self) -> ViewSnapshot:
        return self._views[ViewName.OWNED]

    def now(self) -> int:
        return int(self._clock())

    async def fetch(self, prediction_id: int) -> Prediction:
        """Read one record straight from the ledger, bypassing the views."""

        return await self._ledger.get_prediction(prediction_id)

    # ------------------------------------------------------------------
    # Refresh

    async def refresh_open(self, offset: int = 0, limit: int | None = None) -> ViewSnapshot:
        if limit is None:
            limit = self.page_size
        async with self._locks[ViewName.OPEN]:
            try:
                page = await self._ledger.get_open_predictions(offset, limit)
            except Exception as exc:
                return self._keep_previous(ViewName.OPEN, exc)
            records, failures = await self._resolve(page.ids)
            now = self.now()
            visible = [
                record
                for record in records
                if record.status is PredictionStatus.OPEN and not is_expired(record, now)
            ]
            return self._replace(ViewName.OPEN, visible, page, offset, failures)

    async def refresh_matched(self, offset: int = 0, limit: int | None = None) -> ViewSnapshot:
        if limit is None:
            limit = self.page_size
        async with self._locks[ViewName.MATCHED]:
            if not self._session.state.identity.privileged:
                return self._clear(ViewName.MATCHED)
            try:
                page = await self._ledger.get_matched_predictions(offset, limit)
            except Exception as exc:
                return self._keep_previous(ViewName.MATCHED, exc)
            records, failures = await self._resolve(page.ids)
            if not self._session.state.identity.privileged:
                return self._clear(ViewName.MATCHED)
            visible = [record for record in records if record.status is PredictionStatus.MATCHED]
            return self._replace(ViewName.MATCHED, visible, page, offset, failures)

    async def refresh_owned(self) -> ViewSnapshot:
        async with self._locks[ViewName.OWNED]:
            address = self._session.state.address
            if address is None:
                return self._clear(ViewName.OWNED)
            try:
                ids = await self._ledger.get_user_predictions(address)
            except Exception as exc:
                return self._keep_previous(ViewName.OWNED, exc)
            unique_ids = list(dict.fromkeys(ids))
            records, failures = await self._resolve(unique_ids)
            if self._session.state.address != address:
                logger.debug("Discarding owned view for {}; identity changed", address)
                return self._views[ViewName.OWNED]
            records.sort(key=lambda record: (record.created_at, record.id), reverse=True)
            page = IdPage(ids=unique_ids, total=len(unique_ids))
            return self._replace(ViewName.OWNED, records, page, 0, failures)

    async def refresh(self, views: Iterable[ViewName] | None = None) -> dict[ViewName, ViewSnapshot]:
        """Refresh several views concurrently; each one is independent of the others."""

        names = list(dict.fromkeys(views)) if views is not None else list(ViewName)
        refreshers = {
            ViewName.OPEN: self.refresh_open,
            ViewName.MATCHED: self.refresh_matched,
            ViewName.OWNED: self.refresh_owned,
        }
        snapshots = await asyncio.gather(*(refreshers[name]() for name in names))
        return dict(zip(names, snapshots))

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        """Follow the session: poll Open while connected, refetch on identity or privilege change."""

        if self._session_subscription is None:
            self._session_subscription = self._session.subscribe(self._on_session_change)
        if self._session.state.is_connected:
            self._open_poller.start()

    async def close(self) -> None:
        if self._session_subscription is not None:
            self._session_subscription.close()
            self._session_subscription = None
        await self._open_poller.stop()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def wait_idle(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _on_session_change(self, change: SessionChange) -> None:
        if change.connection_changed and not change.current.is_connected:
            self._open_poller.cancel()
            self._views[ViewName.OWNED] = ViewSnapshot()
            self._views[ViewName.MATCHED] = ViewSnapshot()
            return
        if change.connection_changed:
            self._open_poller.start()
        views: list[ViewName] = []
        if change.identity_changed:
            views.append(ViewName.OWNED)
        if change.identity_changed or change.privilege_changed:
            views.append(ViewName.MATCHED)
        if views:
            self._schedule(self.refresh(views))

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Internals

    async def _resolve(
        self, ids: list[int]
    ) -> tuple[list[Prediction], list[PartialViewResolutionFailure]]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def fetch_one(prediction_id: int) -> Prediction:
            async with semaphore:
                return await self._ledger.get_prediction(prediction_id)

        results = await asyncio.gather(*(fetch_one(pid) for pid in ids), return_exceptions=True)
        records: list[Prediction] = []
        failures: list[PartialViewResolutionFailure] = []
        for prediction_id, result in zip(ids, results):
            if isinstance(result, Exception):
                logger.warning("Dropping prediction {} from view: {}", prediction_id, result)
                failures.append(PartialViewResolutionFailure(prediction_id, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                records.append(result)
        return records, failures

    def _replace(
        self,
        name: ViewName,
        records: list[Prediction],
        page: IdPage,
        offset: int,
        failures: list[PartialViewResolutionFailure],
    ) -> ViewSnapshot:
        snapshot = ViewSnapshot(
            records=tuple(records),
            total=page.total,
            offset=offset,
            failures=tuple(failures),
            refreshed_at=datetime.now(timezone.utc),
        )
        self._views[name] = snapshot
        logger.info(
            "Refreshed {} view: {} record(s), {} dropped", name.value, len(records), len(failures)
        )
        return snapshot

    def _keep_previous(self, name: ViewName, exc: Exception) -> ViewSnapshot:
        logger.warning("Could not list {} predictions: {}", name.value, exc)
        snapshot = replace(self._views[name], error=str(exc) or exc.__class__.__name__)
        self._views[name] = snapshot
        return snapshot

    def _clear(self, name: ViewName) -> ViewSnapshot:
        snapshot = ViewSnapshot(refreshed_at=datetime.now(timezone.utc))
        self._views[name] = snapshot
        return snapshot
