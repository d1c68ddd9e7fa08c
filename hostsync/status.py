"""Host status poller.

Polls the live host status feed (connectivity + authentication) on its own
fixed interval, independent of the host directory's refresh cadence.

Each successful poll replaces the whole status map. A host missing from a
response has no known status afterwards; its previous record is not
carried over. A failed poll is logged and leaves the previous map in place;
the next tick is the retry.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping

from hostsync import metrics
from hostsync.config import settings
from hostsync.results import UpdateResult
from hostsync.schemas import HostStatus
from hostsync.utils.timeouts import SHUTDOWN_TIMEOUT, with_timeout

logger = logging.getLogger(__name__)

_UNSET: object = object()


class StatusPoller:
    """Keeps a host-id keyed map of the latest ``HostStatus`` records."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Iterable[HostStatus]]],
        *,
        interval: float | None = None,
        fetch_timeout: float | None | object = _UNSET,
    ):
        self._fetch = fetch
        self._interval = settings.status_poll_interval if interval is None else interval
        self._fetch_timeout = settings.fetch_timeout if fetch_timeout is _UNSET else fetch_timeout

        self._statuses: Mapping[str, HostStatus] = MappingProxyType({})
        self._last_update: datetime | None = None
        self._generation = 0
        self._inflight: asyncio.Task[UpdateResult] | None = None
        self._inflight_generation = 0
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def statuses(self) -> Mapping[str, HostStatus]:
        return self._statuses

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    @property
    def active(self) -> bool:
        return self._task is not None

    def status_for(self, host_id: str) -> HostStatus | None:
        """Latest status for a host, or None when unknown."""
        return self._statuses.get(host_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> UpdateResult | None:
        """Poll once, then keep polling every interval in a background task.

        Returns the first poll's result, or None if already active.
        """
        if self._task is not None:
            return None
        self._task = asyncio.create_task(self._poll_loop(), name="host-status-poller")
        logger.info(f"Host status poller started (interval={self._interval:.1f}s)")
        return await self.poll_once()

    def deactivate(self) -> None:
        """Cancel the background task. Safe to call repeatedly."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self._generation += 1
        logger.info("Host status poller stopped")

    async def aclose(self) -> None:
        """Deactivate and wait for an outstanding poll to settle."""
        self.deactivate()
        if self._inflight is not None:
            await asyncio.wait({self._inflight}, timeout=SHUTDOWN_TIMEOUT)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Host status poll error")

    async def poll_once(self) -> UpdateResult:
        """Fetch the status feed once, or join the poll already in flight."""
        generation = self._generation
        while self._inflight is not None and self._inflight_generation != self._generation:
            await asyncio.shield(self._inflight)
            if self._generation != generation:
                return UpdateResult.stale()

        if self._inflight is None:
            self._inflight_generation = self._generation
            self._inflight = asyncio.create_task(
                self._run_poll(self._generation), name="host-status-poll"
            )
        return await asyncio.shield(self._inflight)

    async def _run_poll(self, generation: int) -> UpdateResult:
        try:
            try:
                if self._fetch_timeout:
                    records = await with_timeout(self._fetch(), self._fetch_timeout, "host status poll")
                else:
                    records = await self._fetch()
                statuses = {record.host_id: record for record in records}
            except Exception as e:
                result = UpdateResult.failure(e)
            else:
                result = None

            if generation != self._generation:
                result = UpdateResult.stale()
            elif result is None:
                self._statuses = MappingProxyType(statuses)
                self._last_update = datetime.now(timezone.utc)
                result = UpdateResult.success(len(statuses))
            else:
                logger.warning(f"Host status poll failed: {result.error}")
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

        metrics.record_status_poll(result.outcome, len(self._statuses) if result.ok else None)
        return result
