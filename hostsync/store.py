"""Entity store: a polled, in-memory mirror of one control plane collection.

One store per collection (hosts, pools, services). The store owns the
authoritative ``items`` tuple and the id ``index`` derived from it, and
replaces both together after every successful fetch. A failed fetch leaves
them untouched: stale data is preferred over partial data.

Scheduling:
- ``activate()`` marks the store active and fetches immediately.
- After every completed fetch while active, a single timer is armed:
  ``retry_delay`` after a failure, ``refresh_interval`` after a success
  (``None`` disables the steady-state refresh). Arming replaces any
  pending timer, so there is never more than one.
- ``deactivate()`` cancels the timer and bumps a generation counter. A
  fetch that was already in flight completes but its result is discarded.

Only one fetch is ever outstanding per store: a redundant ``update()``
joins the fetch in flight and receives its result.

The store is bound to the event loop it is used from; it is not
thread-safe.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from operator import attrgetter
from types import MappingProxyType
from typing import Awaitable, Callable, Generic, Iterable, Iterator, Mapping, TypeVar

from hostsync import metrics
from hostsync.config import settings
from hostsync.results import UpdateResult
from hostsync.utils.async_tasks import safe_create_task
from hostsync.utils.timeouts import SHUTDOWN_TIMEOUT, with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET: object = object()


class EntityStore(Generic[T]):
    """Polled mirror of one collection, keyed by entity id."""

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Iterable[T]]],
        *,
        key: Callable[[T], str] | None = None,
        refresh_interval: float | None | object = _UNSET,
        retry_delay: float | None = None,
        fetch_timeout: float | None | object = _UNSET,
    ):
        """
        Args:
            name: Collection name, used in logs and metrics (e.g. "hosts").
            fetch: Zero-argument coroutine function returning the full
                collection. Any exception it raises is a failed update.
            key: Returns an entity's id. Defaults to ``entity.id``.
            refresh_interval: Seconds between successful fetches while
                active; ``None`` leaves steady-state refresh to the caller.
            retry_delay: Seconds to wait after a failed fetch before retrying.
            fetch_timeout: Optional per-fetch timeout; a timeout is a failure.
        """
        self.name = name
        self._fetch = fetch
        self._key = key or attrgetter("id")
        self._refresh_interval = (
            settings.refresh_interval if refresh_interval is _UNSET else refresh_interval
        )
        self._retry_delay = settings.retry_delay if retry_delay is None else retry_delay
        self._fetch_timeout = settings.fetch_timeout if fetch_timeout is _UNSET else fetch_timeout

        self._items: tuple[T, ...] = ()
        self._index: Mapping[str, T] = MappingProxyType({})
        self._last_update: datetime | None = None

        self._active = False
        self._generation = 0
        self._inflight: asyncio.Task[UpdateResult] | None = None
        self._inflight_generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._cycle_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return (
            f"<EntityStore {self.name} items={len(self._items)} "
            f"active={self._active} pending={self.pending}>"
        )

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def index(self) -> Mapping[str, T]:
        return self._index

    @property
    def last_update(self) -> datetime | None:
        """Time of the last successful fetch (UTC); None before the first."""
        return self._last_update

    @property
    def active(self) -> bool:
        return self._active

    @property
    def pending(self) -> bool:
        """True while a fetch is outstanding."""
        return self._inflight is not None

    def get(self, entity_id: str) -> T | None:
        return self._index.get(entity_id)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._index

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> UpdateResult | None:
        """Start the refresh loop with an immediate fetch.

        Returns the first fetch's result, or None if already active.
        """
        if self._active:
            return None
        self._active = True
        logger.info(f"{self.name} store activated")
        return await self.update()

    def deactivate(self) -> None:
        """Stop the refresh loop. Safe to call repeatedly."""
        if not self._active:
            return
        self._active = False
        self._generation += 1
        self._cancel_timer()
        if self._cycle_task is not None and not self._cycle_task.done():
            self._cycle_task.cancel()
        self._cycle_task = None
        logger.info(f"{self.name} store deactivated")

    async def aclose(self) -> None:
        """Deactivate and wait for an outstanding fetch to settle."""
        self.deactivate()
        if self._inflight is not None:
            await asyncio.wait({self._inflight}, timeout=SHUTDOWN_TIMEOUT)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def update(self) -> UpdateResult:
        """Fetch the collection once, or join the fetch already in flight.

        Returns a discarded result without fetching if the store is
        deactivated while this call waits out a fetch from before an
        earlier deactivation.
        """
        generation = self._generation
        while self._inflight is not None and self._inflight_generation != self._generation:
            # Fetch from before the last deactivation; wait it out so two
            # fetches never overlap. Its result will be discarded.
            await asyncio.shield(self._inflight)
            if self._generation != generation:
                logger.debug(f"{self.name} deactivated while waiting, not fetching")
                return UpdateResult.stale()

        if self._inflight is None:
            self._inflight_generation = self._generation
            self._inflight = asyncio.create_task(
                self._run_fetch(self._generation), name=f"{self.name}-fetch"
            )
        else:
            logger.debug(f"{self.name} update already in flight, joining it")
        return await asyncio.shield(self._inflight)

    async def _run_fetch(self, generation: int) -> UpdateResult:
        started = time.monotonic()
        try:
            try:
                if self._fetch_timeout:
                    fetched = await with_timeout(
                        self._fetch(), self._fetch_timeout, f"{self.name} fetch"
                    )
                else:
                    fetched = await self._fetch()
                items = tuple(fetched)
                index = self._build_index(items)
            except Exception as e:
                result = UpdateResult.failure(e)
            else:
                result = None

            if generation != self._generation:
                logger.debug(f"{self.name} fetch completed after deactivation, discarding")
                result = UpdateResult.stale()
            elif result is None:
                self._apply(items, index)
                result = UpdateResult.success(len(items))
            else:
                logger.warning(f"{self.name} update failed: {result.error}")
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

        metrics.record_fetch(self.name, result.outcome, time.monotonic() - started)
        if self._active and not result.discarded:
            self._schedule_next(result)
        return result

    def _build_index(self, items: tuple[T, ...]) -> dict[str, T]:
        index: dict[str, T] = {}
        for entity in items:
            entity_id = self._key(entity)
            if entity_id in index:
                logger.warning(f"{self.name}: duplicate id {entity_id!r}, keeping the last one")
            index[entity_id] = entity
        return index

    def _apply(self, items: tuple[T, ...], index: dict[str, T]) -> None:
        now = datetime.now(timezone.utc)
        if self._last_update is not None and now <= self._last_update:
            now = self._last_update + timedelta(microseconds=1)
        self._items = items
        self._index = MappingProxyType(index)
        self._last_update = now
        metrics.record_entities(self.name, len(items))

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _schedule_next(self, result: UpdateResult) -> None:
        self._cancel_timer()
        if result.failed:
            delay: float | None = self._retry_delay
        else:
            delay = self._refresh_interval
            if delay is not None and delay <= 0:
                delay = None
        if delay is None:
            return
        if result.failed:
            logger.debug(f"{self.name} retrying in {delay:.1f}s")
        self._timer = asyncio.get_running_loop().call_later(delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if not self._active:
            return
        self._cycle_task = safe_create_task(self.update(), name=f"{self.name}-refresh")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
