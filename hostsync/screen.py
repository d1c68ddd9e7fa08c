"""Hosts screen orchestration.

Wires the collection stores and the host status poller together for one
operator screen:

- ``enter()`` activates every store it depends on and starts the status
  poller; ``exit()`` deactivates all of them. A store left active keeps
  issuing requests, so prefer ``async with``.
- ``rows()`` merges the host directory with the live status feed at read
  time. Status is never written into the hosts store.
- Host commands go to the control plane and then refresh the hosts store.

Stores are refreshed independently; nothing here assumes hosts, pools and
statuses arrive in any particular order.
"""
from __future__ import annotations

import asyncio
import logging

from hostsync.classify import classify_status
from hostsync.client import ControlPlaneClient
from hostsync.config import Settings, settings as default_settings
from hostsync.results import UpdateResult
from hostsync.schemas import (
    AddHostResponse,
    Host,
    HostCreate,
    HostRow,
    NewHostDefaults,
    Pool,
    Service,
)
from hostsync.status import StatusPoller
from hostsync.store import EntityStore

logger = logging.getLogger(__name__)


class HostsScreen:
    """Controller-side composition of the hosts, pools and services stores."""

    def __init__(self, client: ControlPlaneClient, *, settings: Settings | None = None):
        cfg = settings or default_settings
        self.client = client
        self.settings = cfg

        store_options = dict(
            refresh_interval=cfg.refresh_interval,
            retry_delay=cfg.retry_delay,
            fetch_timeout=cfg.fetch_timeout,
        )
        self.hosts: EntityStore[Host] = EntityStore("hosts", client.list_hosts, **store_options)
        self.pools: EntityStore[Pool] = EntityStore("pools", client.list_pools, **store_options)
        self.services: EntityStore[Service] = EntityStore(
            "services", client.list_services, **store_options
        )
        self.statuses = StatusPoller(
            client.list_host_statuses,
            interval=cfg.status_poll_interval,
            fetch_timeout=cfg.fetch_timeout,
        )

    @property
    def stores(self) -> tuple[EntityStore, ...]:
        return (self.hosts, self.pools, self.services)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def enter(self) -> dict[str, UpdateResult | None]:
        """Activate all stores and the status poller concurrently.

        Returns each component's first result keyed by name. Failures are
        already being retried by the stores themselves.
        """
        names = [store.name for store in self.stores] + ["statuses"]
        results = await asyncio.gather(
            *(store.activate() for store in self.stores),
            self.statuses.activate(),
        )
        for name, result in zip(names, results):
            if result is not None and result.failed:
                logger.warning(f"Initial {name} fetch failed, retrying in background: {result.error}")
        return dict(zip(names, results))

    def exit(self) -> None:
        """Deactivate everything. Safe to call repeatedly."""
        for store in self.stores:
            store.deactivate()
        self.statuses.deactivate()

    async def __aenter__(self) -> "HostsScreen":
        await self.enter()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.exit()
        await asyncio.gather(
            *(store.aclose() for store in self.stores),
            self.statuses.aclose(),
        )

    # ------------------------------------------------------------------
    # Read-time merge
    # ------------------------------------------------------------------

    def _row(self, host: Host) -> HostRow:
        status = self.statuses.status_for(host.id)
        health, active, authenticated = classify_status(status)
        return HostRow(
            host=host,
            pool=self.pools.get(host.pool_id),
            status=status,
            health=health,
            active=active,
            authenticated=authenticated,
        )

    def rows(self) -> list[HostRow]:
        """Display-ready hosts sorted by name (then id)."""
        hosts = sorted(self.hosts.items, key=lambda h: (h.name.lower(), h.id))
        return [self._row(host) for host in hosts]

    def row(self, host_id: str) -> HostRow | None:
        host = self.hosts.get(host_id)
        if host is None:
            return None
        return self._row(host)

    def new_host_defaults(self) -> NewHostDefaults:
        """Initial add-host form values; the pool is filled once pools resolve."""
        pool_id = None
        if self.pools.last_update is not None and self.pools.items:
            pool_id = self.pools.items[0].id
        return NewHostDefaults(
            port=self.settings.default_rpc_port,
            ram_limit=self.settings.default_ram_limit,
            pool_id=pool_id,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def refresh(self) -> dict[str, UpdateResult]:
        """Refresh hosts and pools now."""
        hosts, pools = await asyncio.gather(self.hosts.update(), self.pools.update())
        return {"hosts": hosts, "pools": pools}

    async def add_host(self, request: HostCreate) -> AddHostResponse:
        """Add a host, then refresh the hosts store.

        Raises:
            ControlPlaneError: the control plane rejected or never got the request.
        """
        response = await self.client.add_host(request)
        await self.hosts.update()
        return response

    async def remove_host(self, host_id: str) -> None:
        """Remove a host, then refresh the hosts store.

        Raises:
            KeyError: the host is not in the hosts store.
            ControlPlaneError: the control plane rejected or never got the request.
        """
        if self.hosts.get(host_id) is None:
            raise KeyError(host_id)
        await self.client.remove_host(host_id)
        await self.hosts.update()
