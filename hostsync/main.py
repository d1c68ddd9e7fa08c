"""hostsync HTTP service.

Serves the hosts screen's read-only snapshot and host commands:
- GET  /hosts, /hosts/{id}, /pools, /services
- POST /hosts, DELETE /hosts/{id}, POST /refresh
- GET  /health, /metrics
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response

from hostsync.client import ControlPlaneClient, ControlPlaneError
from hostsync.config import settings
from hostsync.logging_config import setup_logging
from hostsync.metrics import get_metrics
from hostsync.schemas import AddHostResponse, HostCreate, HostRow, NewHostDefaults, Pool, Service
from hostsync.screen import HostsScreen
from hostsync.session import SessionContext
from hostsync.utils.async_tasks import setup_asyncio_exception_handler
from hostsync.version import __version__, get_commit

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Enter the hosts screen on startup, tear it down on shutdown."""
    setup_asyncio_exception_handler()

    screen: HostsScreen | None = getattr(app.state, "screen", None)
    client: ControlPlaneClient | None = None
    if screen is None:
        logger.info(f"Connecting to control plane at {settings.controller_url}")
        client = ControlPlaneClient(
            settings.controller_url, SessionContext.from_settings(settings)
        )
        screen = HostsScreen(client)
        app.state.screen = screen

    async with screen:
        logger.info("Hosts screen active")
        yield

    if client is not None:
        await client.aclose()
        app.state.screen = None
    logger.info("Hosts screen stopped")


app = FastAPI(
    title="hostsync",
    version=__version__,
    lifespan=lifespan,
)


def get_screen(request: Request) -> HostsScreen:
    screen = getattr(request.app.state, "screen", None)
    if screen is None:
        raise HTTPException(status_code=503, detail="Hosts screen not running")
    return screen


def _upstream_error(e: ControlPlaneError) -> HTTPException:
    """Map a control plane failure to the status we return."""
    if e.status_code is not None and 400 <= e.status_code < 500:
        return HTTPException(status_code=e.status_code, detail=e.detail or e.message)
    return HTTPException(status_code=502, detail=e.detail or e.message)


# --- Health ---

@app.get("/health")
def health(screen: HostsScreen = Depends(get_screen)):
    """Liveness plus freshness of each collection."""
    def stamp(value: datetime | None) -> str | None:
        return value.isoformat() if value else None

    return {
        "status": "ok",
        "version": __version__,
        "commit": get_commit(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "collections": {
            store.name: {
                "active": store.active,
                "pending": store.pending,
                "count": len(store),
                "last_update": stamp(store.last_update),
            }
            for store in screen.stores
        },
        "statuses": {
            "active": screen.statuses.active,
            "count": len(screen.statuses.statuses),
            "last_update": stamp(screen.statuses.last_update),
        },
    }


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    content, content_type = get_metrics()
    return Response(content=content, media_type=content_type)


# --- Snapshot ---

@app.get("/hosts", response_model=list[HostRow])
def list_hosts(screen: HostsScreen = Depends(get_screen)):
    return screen.rows()


@app.get("/hosts/defaults", response_model=NewHostDefaults)
def new_host_defaults(screen: HostsScreen = Depends(get_screen)):
    return screen.new_host_defaults()


@app.get("/hosts/{host_id}", response_model=HostRow)
def get_host(host_id: str, screen: HostsScreen = Depends(get_screen)):
    row = screen.row(host_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Host {host_id} not found")
    return row


@app.get("/pools", response_model=list[Pool])
def list_pools(screen: HostsScreen = Depends(get_screen)):
    return list(screen.pools.items)


@app.get("/services", response_model=list[Service])
def list_services(screen: HostsScreen = Depends(get_screen)):
    return list(screen.services.items)


# --- Commands ---

@app.post("/hosts", response_model=AddHostResponse, status_code=201)
async def add_host(request: HostCreate, screen: HostsScreen = Depends(get_screen)):
    try:
        return await screen.add_host(request)
    except ControlPlaneError as e:
        logger.warning(f"Adding host {request.ip_addr} failed: {e}")
        raise _upstream_error(e)


@app.delete("/hosts/{host_id}", status_code=204)
async def remove_host(host_id: str, screen: HostsScreen = Depends(get_screen)):
    try:
        await screen.remove_host(host_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Host {host_id} not found")
    except ControlPlaneError as e:
        logger.warning(f"Removing host {host_id} failed: {e}")
        raise _upstream_error(e)
    return Response(status_code=204)


@app.post("/refresh")
async def refresh(screen: HostsScreen = Depends(get_screen)):
    """Refresh hosts and pools now and report each outcome."""
    results = await screen.refresh()
    return {
        name: {
            "outcome": result.outcome.value,
            "count": result.count,
            "error": str(result.error) if result.error else None,
        }
        for name, result in results.items()
    }


def main() -> None:
    setup_logging()
    uvicorn.run(app, host=settings.bind_host, port=settings.bind_port, log_config=None)


if __name__ == "__main__":
    main()
