"""Tests for the control plane HTTP client."""
from __future__ import annotations

import json

import httpx
import pytest

from hostsync.client import (
    ControlPlaneClient,
    ControlPlaneError,
    ControlPlaneProtocolError,
    ControlPlaneRequestError,
    ControlPlaneUnavailableError,
)
from hostsync.config import settings
from hostsync.schemas import HostCreate
from hostsync.session import SessionContext

BASE_URL = "https://cp.example"


def _client(handler, session: SessionContext | None = None) -> ControlPlaneClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ControlPlaneClient(BASE_URL, session or SessionContext(), http_client=http)


class TestCollections:
    @pytest.mark.asyncio
    async def test_list_hosts_from_id_keyed_object(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == "/hosts"
            return httpx.Response(200, json={
                "h1": {"ID": "h1", "Name": "alpha", "PoolID": "default", "Memory": 1024},
                "h2": {"ID": "h2", "Name": "beta", "PoolID": "default"},
            })

        client = _client(handler)
        hosts = await client.list_hosts()

        assert [h.id for h in hosts] == ["h1", "h2"]
        assert hosts[0].name == "alpha"
        assert hosts[0].memory == 1024

    @pytest.mark.asyncio
    async def test_list_pools_from_array(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/pools"
            return httpx.Response(200, json=[{"ID": "default", "CoreCapacity": 8}])

        pools = await _client(handler).list_pools()

        assert pools[0].id == "default"
        assert pools[0].core_capacity == 8

    @pytest.mark.asyncio
    async def test_unknown_attributes_are_kept(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"ID": "s1", "Name": "web", "Launch": "auto"}])

        services = await _client(handler).list_services()

        assert services[0].name == "web"
        assert services[0].model_extra == {"Launch": "auto"}

    @pytest.mark.asyncio
    async def test_null_collection_is_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=None)

        assert await _client(handler).list_services() == []

    @pytest.mark.asyncio
    async def test_list_host_statuses(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v2/hoststatuses"
            return httpx.Response(200, json=[
                {"HostID": "h1", "Active": True, "Authenticated": False},
                {"HostID": "h2"},
            ])

        statuses = await _client(handler).list_host_statuses()

        assert statuses[0].host_id == "h1"
        assert statuses[0].connected is True
        assert statuses[0].authenticated is False
        assert statuses[1].connected is None

    @pytest.mark.asyncio
    async def test_get_host(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/hosts/h1"
            return httpx.Response(200, json={"ID": "h1", "Name": "alpha"})

        host = await _client(handler).get_host("h1")

        assert host.name == "alpha"


class TestErrors:
    @pytest.mark.asyncio
    async def test_http_error_maps_to_request_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"Detail": "database unavailable"})

        with pytest.raises(ControlPlaneRequestError) as exc_info:
            await _client(handler).list_hosts()

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "database unavailable"
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="forbidden")

        with pytest.raises(ControlPlaneRequestError) as exc_info:
            await _client(handler).list_pools()

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "forbidden"

    @pytest.mark.asyncio
    async def test_connect_error_maps_to_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ControlPlaneUnavailableError) as exc_info:
            await _client(handler).list_hosts()

        assert exc_info.value.retriable is True
        assert isinstance(exc_info.value, ControlPlaneError)

    @pytest.mark.asyncio
    async def test_timeout_maps_to_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ControlPlaneUnavailableError):
            await _client(handler).list_host_statuses()

    @pytest.mark.asyncio
    async def test_invalid_json_is_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>login</html>")

        with pytest.raises(ControlPlaneProtocolError):
            await _client(handler).list_hosts()

    @pytest.mark.asyncio
    async def test_scalar_collection_is_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json="not a collection")

        with pytest.raises(ControlPlaneProtocolError):
            await _client(handler).list_hosts()

    @pytest.mark.asyncio
    async def test_entity_without_id_is_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"Name": "nameless"}])

        with pytest.raises(ControlPlaneProtocolError):
            await _client(handler).list_hosts()


class TestHostCommands:
    @pytest.mark.asyncio
    async def test_add_host_posts_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"PrivateKey": "-----BEGIN KEY-----"})

        request = HostCreate(host="10.0.0.5", port=4979, pool_id="default", ram_limit="")
        response = await _client(handler).add_host(request)

        assert seen["method"] == "POST"
        assert seen["path"] == "/hosts/add"
        assert seen["body"] == {
            "IPAddr": "10.0.0.5:4979",
            "PoolID": "default",
            "RAMLimit": "100%",
        }
        assert response.private_key == "-----BEGIN KEY-----"

    @pytest.mark.asyncio
    async def test_add_host_includes_name_when_given(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        request = HostCreate(host="h", port=1, pool_id="p", name="alpha", ram_limit="50%")
        response = await _client(handler).add_host(request)

        assert seen["body"]["Name"] == "alpha"
        assert seen["body"]["RAMLimit"] == "50%"
        assert response.private_key == ""

    @pytest.mark.asyncio
    async def test_remove_host_sends_delete(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(204)

        assert await _client(handler).remove_host("h1") is None
        assert seen == {"method": "DELETE", "path": "/hosts/h1"}


class TestSession:
    @pytest.mark.asyncio
    async def test_session_cookies_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["cookie"] = request.headers.get("cookie", "")
            return httpx.Response(200, json=[])

        session = SessionContext(username="admin", token="abc123")
        await _client(handler, session).list_pools()

        assert "ZCPToken=abc123" in seen["cookie"]
        assert "ZUsername=admin" in seen["cookie"]

    @pytest.mark.asyncio
    async def test_injected_http_client_is_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        client = ControlPlaneClient(BASE_URL, SessionContext(), http_client=http)

        async with client:
            pass

        assert http.is_closed is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_timeout_defaults_to_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "http_timeout", 12.5)

        default = ControlPlaneClient(BASE_URL, SessionContext())
        explicit = ControlPlaneClient(BASE_URL, SessionContext(), timeout=2.0)

        assert default._http.timeout.read == 12.5
        assert explicit._http.timeout.read == 2.0
        await default.aclose()
        await explicit.aclose()

    @pytest.mark.asyncio
    async def test_owned_http_client_is_closed(self):
        client = ControlPlaneClient(BASE_URL, SessionContext())

        await client.aclose()

        assert client._http.is_closed is True
