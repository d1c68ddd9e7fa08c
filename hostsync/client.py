"""Client for the control plane REST API."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from hostsync.config import settings
from hostsync.schemas import AddHostResponse, Host, HostCreate, HostStatus, Pool, Service
from hostsync.session import SessionContext

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

HOSTS_PATH = "/hosts"
POOLS_PATH = "/pools"
SERVICES_PATH = "/services"
HOST_STATUSES_PATH = "/api/v2/hoststatuses"


class ControlPlaneError(Exception):
    """Base exception for control plane communication errors."""
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str = "",
        retriable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail
        self.retriable = retriable


class ControlPlaneUnavailableError(ControlPlaneError):
    """Control plane is not reachable (connect error or timeout)."""
    def __init__(self, message: str):
        super().__init__(message, retriable=True)


class ControlPlaneRequestError(ControlPlaneError):
    """Control plane answered with a non-2xx status."""
    def __init__(self, message: str, status_code: int, detail: str = ""):
        super().__init__(message, status_code=status_code, detail=detail)


class ControlPlaneProtocolError(ControlPlaneError):
    """Control plane answered 2xx with a body we cannot interpret."""


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict):
        for key in ("Detail", "detail", "error"):
            if payload.get(key):
                return str(payload[key])
    return str(payload)[:500]


def _as_list(payload: Any, path: str) -> list:
    """Collections arrive either as a JSON array or as an id-keyed object."""
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return list(payload.values())
    raise ControlPlaneProtocolError(f"Unexpected collection payload from {path}: {type(payload).__name__}")


def _parse_many(model: type[M], payload: Any, path: str) -> list[M]:
    try:
        return [model.model_validate(item) for item in _as_list(payload, path)]
    except ValidationError as e:
        raise ControlPlaneProtocolError(f"Invalid {model.__name__} payload from {path}: {e}") from e


class ControlPlaneClient:
    """Async client for the host, pool, service and status endpoints.

    Raises ``ControlPlaneError`` subclasses for every failure; never retries
    on its own. Retrying is the caller's policy (see ``EntityStore``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: SessionContext | None = None,
        *,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or settings.controller_url).rstrip("/")
        self.session = session or SessionContext.from_settings(settings)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            limits=httpx.Limits(
                max_connections=settings.http_max_connections,
                max_keepalive_connections=settings.http_max_keepalive_connections,
            ),
            timeout=httpx.Timeout(timeout or settings.http_timeout),
            verify=settings.verify_tls,
        )
        self._http.cookies.update(self.session.cookies())

    async def __aenter__(self) -> "ControlPlaneClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    async def _request(self, method: str, path: str, *, json_body: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(
                method,
                url,
                json=json_body,
            )
        except httpx.HTTPError as e:
            raise ControlPlaneUnavailableError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.debug(f"{method} {path} returned HTTP {response.status_code}: {detail}")
            raise ControlPlaneRequestError(
                f"HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
                detail=detail,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ControlPlaneProtocolError(f"{method} {path} returned invalid JSON") from e

    # --- Collections ---

    async def list_hosts(self) -> list[Host]:
        return _parse_many(Host, await self._request("GET", HOSTS_PATH), HOSTS_PATH)

    async def list_pools(self) -> list[Pool]:
        return _parse_many(Pool, await self._request("GET", POOLS_PATH), POOLS_PATH)

    async def list_services(self) -> list[Service]:
        return _parse_many(Service, await self._request("GET", SERVICES_PATH), SERVICES_PATH)

    async def list_host_statuses(self) -> list[HostStatus]:
        return _parse_many(
            HostStatus, await self._request("GET", HOST_STATUSES_PATH), HOST_STATUSES_PATH
        )

    # --- Hosts ---

    async def get_host(self, host_id: str) -> Host:
        path = f"{HOSTS_PATH}/{host_id}"
        payload = await self._request("GET", path)
        try:
            return Host.model_validate(payload)
        except ValidationError as e:
            raise ControlPlaneProtocolError(f"Invalid Host payload from {path}: {e}") from e

    async def add_host(self, request: HostCreate) -> AddHostResponse:
        """Register a host; the response carries its delegate private key."""
        payload = await self._request("POST", f"{HOSTS_PATH}/add", json_body=request.to_payload())
        logger.info(f"Added host {request.ip_addr} to pool {request.pool_id}")
        return AddHostResponse.model_validate(payload or {})

    async def remove_host(self, host_id: str) -> None:
        await self._request("DELETE", f"{HOSTS_PATH}/{host_id}")
        logger.info(f"Removed host {host_id}")
