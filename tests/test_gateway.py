"""Tests for the HTTP gateway's request shaping and error mapping."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from conftest import PHONE

from courier_client.errors import AuthRejected, NetworkError, RemoteRejected, SessionExpired
from courier_client.gateway import HttpGateway
from courier_client.literals import TOKEN_KEY
from courier_client.models import GeoPoint
from courier_client.store import MemoryCredentialStore

BASE = "https://api.test/api/v1"

USER = {"id": "c-1", "name": "Ravi Kumar", "phoneNumber": PHONE}

Handler = Callable[[httpx.Request], httpx.Response]


def _gateway(handler: Handler, token: str | None = "T1") -> HttpGateway:
    store = MemoryCredentialStore({TOKEN_KEY: token} if token else None)
    return HttpGateway(store, base_url=BASE, transport=httpx.MockTransport(handler))


def _call(gateway: HttpGateway, fn: Callable[[HttpGateway], Any]) -> Any:
    async def _main() -> Any:
        async with gateway:
            return await fn(gateway)

    return asyncio.run(_main())


def test_login_sends_numeric_pin_and_returns_profile() -> None:
    """The PIN goes out as a number and no bearer header is sent when signed out."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "token": "T1", "user": USER})

    response = _call(_gateway(handler, token=None), lambda g: g.login(PHONE, "012345"))

    assert response.token == "T1"
    assert response.user.name == "Ravi Kumar"
    assert seen[0].url == httpx.URL(f"{BASE}/delivery/login")
    assert json.loads(seen[0].content) == {"phoneNumber": PHONE, "pin": 12345}
    assert "Authorization" not in seen[0].headers


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"message": "Invalid PIN"}),
        httpx.Response(200, json={"success": False, "message": "Invalid PIN"}),
    ],
)
def test_login_rejection_is_auth_rejected(response: httpx.Response) -> None:
    """HTTP 4xx and success=false on login both surface as AuthRejected."""
    with pytest.raises(AuthRejected, match="Invalid PIN"):
        _call(_gateway(lambda request: response, token=None), lambda g: g.login(PHONE, "123456"))


def test_login_without_token_is_rejected() -> None:
    """A login answer missing the token is not a usable session."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "user": USER})

    with pytest.raises(RemoteRejected):
        _call(_gateway(handler, token=None), lambda g: g.login(PHONE, "123456"))


def test_authenticated_calls_carry_bearer_token() -> None:
    """The stored token rides along and paging parameters are sent as query params."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "orders": []})

    assert _call(_gateway(handler), lambda g: g.get_order_history(5, 10)) == ()
    assert seen[0].headers["Authorization"] == "Bearer T1"
    assert seen[0].url.params["limit"] == "5"
    assert seen[0].url.params["offset"] == "10"


def test_status_update_payload() -> None:
    """Status updates carry the target status and the location."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    here = GeoPoint(latitude=12.5, longitude=77.25)
    _call(_gateway(handler), lambda g: g.update_order_status("o-1", "in_transit", here))

    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/v1/delivery/orders/o-1/status"
    assert json.loads(seen[0].content) == {
        "status": "in_transit",
        "location": {"latitude": 12.5, "longitude": 77.25},
    }


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(401, json={"message": "jwt expired"}), SessionExpired),
        (httpx.Response(503, text="upstream down"), NetworkError),
        (httpx.Response(409, json={"error": "Order already accepted"}), RemoteRejected),
        (httpx.Response(200, json={"success": False, "message": "nope"}), RemoteRejected),
        (httpx.Response(200, text="<html>oops</html>"), RemoteRejected),
    ],
)
def test_error_mapping(response: httpx.Response, error: type[Exception]) -> None:
    """Status codes and bodies map onto the error taxonomy."""
    with pytest.raises(error):
        _call(_gateway(lambda request: response), lambda g: g.accept_order("o-1"))


def test_conflict_keeps_status_code() -> None:
    """RemoteRejected keeps the HTTP status and the server's message."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error": "Order already accepted"})

    with pytest.raises(RemoteRejected, match="already accepted") as info:
        _call(_gateway(handler), lambda g: g.accept_order("o-1"))
    assert info.value.status_code == 409


def test_timeout_is_network_error() -> None:
    """Transport timeouts become NetworkError."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        _call(_gateway(handler), lambda g: g.get_active_orders())


def test_malformed_order_is_remote_rejected() -> None:
    """A body that fails model validation is RemoteRejected."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "order": {"id": "o-1", "status": "pending"}})

    with pytest.raises(RemoteRejected, match="malformed"):
        _call(_gateway(handler), lambda g: g.get_order_details("o-1"))
