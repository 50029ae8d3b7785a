"""
Typed façade over the delivery backend's REST API.

``RemoteGateway`` is the contract the rest of the package depends on;
``HttpGateway`` implements it with ``httpx``.  Every response is parsed into the
models of :mod:`courier_client.models` before it leaves this module, so business
logic never sees a raw ``dict``.  Transport and HTTP failures are translated
into the error taxonomy of :mod:`courier_client.errors`:

* timeouts, connection errors and 502/503/504 -> ``NetworkError``
* 401 on an authenticated call -> ``SessionExpired``
* any rejection on login / OTP calls -> ``AuthRejected``
* other 4xx/5xx, ``success: false`` or an unparseable body -> ``RemoteRejected``
"""

from __future__ import annotations

import logging
from time import perf_counter
from types import TracebackType
from typing import Any, Protocol, TypeVar

import httpx
import pydantic

from courier_client.errors import AuthRejected, NetworkError, RemoteRejected, SessionExpired
from courier_client.literals import TOKEN_KEY, OrderStatus, Period
from courier_client.models import (
    AuthResponse,
    EarningsHistoryEntry,
    EarningsHistoryPage,
    Envelope,
    GeoPoint,
    Order,
    OrderEnvelope,
    OrdersPage,
    Profile,
    ProfileEnvelope,
    RemoteEarnings,
)
from courier_client.store import CredentialStore
from courier_client.types import OrderId, PhoneNumber

__all__ = [
    "DEFAULT_BASE_URL",
    "HttpGateway",
    "RemoteGateway",
]

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8081/api/v1"

_RETRYABLE_STATUS = frozenset({502, 503, 504})

EnvelopeT = TypeVar("EnvelopeT", bound=Envelope)


# ---------------------------------------------------------------------------
# Contract -------------------------------------------------------------------
# ---------------------------------------------------------------------------


class RemoteGateway(Protocol):
    """Backend operations consumed by the core."""

    async def login(self, phone_number: PhoneNumber, pin: str) -> AuthResponse: ...

    async def request_otp(self, phone_number: PhoneNumber) -> None: ...

    async def verify_otp(self, phone_number: PhoneNumber, code: str) -> AuthResponse: ...

    async def get_active_orders(self) -> tuple[Order, ...]: ...

    async def get_order_history(self, limit: int = 20, offset: int = 0) -> tuple[Order, ...]: ...

    async def get_order_details(self, order_id: OrderId) -> Order: ...

    async def accept_order(self, order_id: OrderId) -> None: ...

    async def update_order_status(
        self, order_id: OrderId, status: OrderStatus, location: GeoPoint | None
    ) -> None: ...

    async def complete_delivery(
        self, order_id: OrderId, location: GeoPoint | None, signature: str | None = None
    ) -> None: ...

    async def get_earnings(self, period: Period = "week") -> RemoteEarnings: ...

    async def get_earnings_history(self, limit: int = 50, offset: int = 0) -> tuple[EarningsHistoryEntry, ...]: ...

    async def set_availability(self, is_available: bool) -> None: ...

    async def get_profile(self) -> Profile: ...


# ---------------------------------------------------------------------------
# httpx implementation -------------------------------------------------------
# ---------------------------------------------------------------------------


class HttpGateway:
    """``RemoteGateway`` speaking JSON over HTTP with a bearer token."""

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Create the underlying ``httpx.AsyncClient``.

        Parameters
        ----------
        credentials
            Store consulted on *every* request for the current bearer token.
        base_url
            API root, e.g. ``https://api.example.com/api/v1``.
        timeout_s
            Per-request timeout; expiry surfaces as ``NetworkError``.
        transport
            Optional transport override (``httpx.MockTransport`` in tests).

        """
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_s),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpGateway:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Auth --------------------------------------------------------------
    # ------------------------------------------------------------------

    async def login(self, phone_number: PhoneNumber, pin: str) -> AuthResponse:
        payload = {"phoneNumber": phone_number, "pin": int(pin)}
        response = await self._request("POST", "/delivery/login", AuthResponse, json=payload, auth_call=True)
        return self._require_credentials(response)

    async def request_otp(self, phone_number: PhoneNumber) -> None:
        payload = {"phoneNumber": phone_number}
        await self._request("POST", "/delivery/request-otp", Envelope, json=payload, auth_call=True)

    async def verify_otp(self, phone_number: PhoneNumber, code: str) -> AuthResponse:
        payload = {"phoneNumber": phone_number, "otp": int(code)}
        response = await self._request("POST", "/delivery/verify-otp", AuthResponse, json=payload, auth_call=True)
        return self._require_credentials(response)

    # ------------------------------------------------------------------
    # Orders ------------------------------------------------------------
    # ------------------------------------------------------------------

    async def get_active_orders(self) -> tuple[Order, ...]:
        page = await self._request("GET", "/delivery/orders/active", OrdersPage)
        return page.orders

    async def get_order_history(self, limit: int = 20, offset: int = 0) -> tuple[Order, ...]:
        params = {"limit": limit, "offset": offset}
        page = await self._request("GET", "/delivery/orders/history", OrdersPage, params=params)
        return page.orders

    async def get_order_details(self, order_id: OrderId) -> Order:
        envelope = await self._request("GET", f"/delivery/orders/{order_id}", OrderEnvelope)
        return envelope.order

    async def accept_order(self, order_id: OrderId) -> None:
        await self._request("POST", f"/delivery/orders/{order_id}/accept", Envelope)

    async def update_order_status(self, order_id: OrderId, status: OrderStatus, location: GeoPoint | None) -> None:
        payload = {"status": status, "location": _dump_location(location)}
        await self._request("POST", f"/delivery/orders/{order_id}/status", Envelope, json=payload)

    async def complete_delivery(
        self, order_id: OrderId, location: GeoPoint | None, signature: str | None = None
    ) -> None:
        payload = {"location": _dump_location(location), "signature": signature}
        await self._request("POST", f"/delivery/orders/{order_id}/complete", Envelope, json=payload)

    # ------------------------------------------------------------------
    # Earnings / profile ------------------------------------------------
    # ------------------------------------------------------------------

    async def get_earnings(self, period: Period = "week") -> RemoteEarnings:
        return await self._request("GET", "/delivery/earnings", RemoteEarnings, params={"period": period})

    async def get_earnings_history(self, limit: int = 50, offset: int = 0) -> tuple[EarningsHistoryEntry, ...]:
        params = {"limit": limit, "offset": offset}
        page = await self._request("GET", "/delivery/earnings/history", EarningsHistoryPage, params=params)
        return page.history

    async def set_availability(self, is_available: bool) -> None:
        await self._request("POST", "/delivery/availability", Envelope, json={"isAvailable": is_available})

    async def get_profile(self) -> Profile:
        envelope = await self._request("GET", "/delivery/profile", ProfileEnvelope)
        return envelope.profile

    # ------------------------------------------------------------------
    # Internals ---------------------------------------------------------
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        model: type[EnvelopeT],
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        auth_call: bool = False,
    ) -> EnvelopeT:
        """Send one request and return its body parsed as *model*."""
        headers: dict[str, str] = {}
        token = await self._credentials.get(TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        t0 = perf_counter()
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out after %.2fs", method, path, perf_counter() - t0)
            raise NetworkError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        logger.debug("%s %s -> %d in %.2fs", method, path, response.status_code, perf_counter() - t0)

        if response.is_error:
            message = _error_message(response)
            if auth_call and response.is_client_error:
                raise AuthRejected(message or "credentials rejected")
            if response.status_code == 401:
                raise SessionExpired(message or "session expired")
            if response.status_code in _RETRYABLE_STATUS:
                raise NetworkError(message or f"{method} {path}: HTTP {response.status_code}")
            raise RemoteRejected(
                message or f"{method} {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            parsed = model.model_validate_json(response.content)
        except pydantic.ValidationError as exc:
            logger.warning("Malformed %s from %s %s: %s", model.__name__, method, path, exc)
            raise RemoteRejected(
                f"malformed response from {path} ({exc.error_count()} invalid field(s))",
                status_code=response.status_code,
            ) from exc

        if not parsed.success:
            if auth_call:
                raise AuthRejected(parsed.message or "credentials rejected")
            raise RemoteRejected(parsed.message or f"{method} {path} was refused", status_code=response.status_code)
        return parsed

    @staticmethod
    def _require_credentials(response: AuthResponse) -> AuthResponse:
        if not response.token or response.user is None:
            raise RemoteRejected("auth response is missing token or user")
        return response


def _dump_location(location: GeoPoint | None) -> dict[str, Any] | None:
    return location.model_dump(mode="json", by_alias=True) if location is not None else None


def _error_message(response: httpx.Response) -> str | None:
    """Pull ``message`` out of an error body when the server sent JSON."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        return str(message) if message else None
    return None
