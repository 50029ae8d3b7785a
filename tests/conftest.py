"""Pytest configuration and shared fakes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from courier_client.client import CourierClient
from courier_client.literals import OrderStatus, Period
from courier_client.models import (
    AuthResponse,
    Customer,
    EarningsHistoryEntry,
    GeoPoint,
    Order,
    OrderItem,
    Profile,
    RemoteEarnings,
)
from courier_client.store import MemoryCredentialStore

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=UTC)

PHONE = "9876543210"
PIN = "123456"


def pytest_configure() -> None:  # noqa: D103
    # Silence verbose INFO logs from httpx (and httpcore) during test runs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _make_order(
    id: str = "o-1",
    status: OrderStatus = "pending",
    *,
    subtotal: int | str = 200,
    delivery_fee: int | str = 30,
    completed_at: datetime | None = None,
) -> Order:
    return Order(
        id=id,
        order_id=f"ORD-{id}",
        status=status,
        customer=Customer(name="Asha Rao", phone="9123456780", address="12 MG Road, Bengaluru"),
        items=(OrderItem(name="Masala Dosa", quantity=2, price=Decimal(100)),),
        subtotal=Decimal(subtotal),
        delivery_fee=Decimal(delivery_fee),
        amount=Decimal(subtotal) + Decimal(delivery_fee),
        created_at=datetime(2026, 10, 19, 9, 30, tzinfo=UTC),
        completed_at=completed_at,
    )


class FakeGateway:
    """
    In-memory ``RemoteGateway``.

    * ``fail[name]`` makes the named call raise that exception.
    * ``gates[name]`` is a FIFO of events; each call to *name* waits for the next one.
    * ``calls`` records every call in order.
    """

    def __init__(self) -> None:
        self.token = "T1"
        self.user = Profile(id="c-1", name="Ravi Kumar", phone_number=PHONE)
        self.active: list[Order] = []
        self.history: list[Order] = []
        self.earnings = RemoteEarnings(
            total_earnings=Decimal("450.00"), deliveries_count=9, weekly_count=31, avg_per_delivery=Decimal("50.00")
        )
        self.payouts: list[EarningsHistoryEntry] = []
        self.fail: dict[str, Exception] = {}
        self.gates: dict[str, list[asyncio.Event]] = {}
        self.calls: list[tuple[str, tuple[object, ...]]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _hit(self, name: str, *args: object) -> None:
        self.calls.append((name, args))
        pending = self.gates.get(name)
        if pending:
            await pending.pop(0).wait()
        if name in self.fail:
            raise self.fail[name]

    async def login(self, phone_number: str, pin: str) -> AuthResponse:
        await self._hit("login", phone_number, pin)
        return AuthResponse(token=self.token, user=self.user)

    async def request_otp(self, phone_number: str) -> None:
        await self._hit("request_otp", phone_number)

    async def verify_otp(self, phone_number: str, code: str) -> AuthResponse:
        await self._hit("verify_otp", phone_number, code)
        return AuthResponse(token=self.token, user=self.user)

    async def get_active_orders(self) -> tuple[Order, ...]:
        snapshot = tuple(self.active)
        await self._hit("get_active_orders")
        return snapshot

    async def get_order_history(self, limit: int = 20, offset: int = 0) -> tuple[Order, ...]:
        snapshot = tuple(self.history[offset : offset + limit])
        await self._hit("get_order_history", limit, offset)
        return snapshot

    async def get_order_details(self, order_id: str) -> Order:
        await self._hit("get_order_details", order_id)
        return next(o for o in (*self.active, *self.history) if o.id == order_id)

    async def accept_order(self, order_id: str) -> None:
        await self._hit("accept_order", order_id)

    async def update_order_status(self, order_id: str, status: OrderStatus, location: GeoPoint | None) -> None:
        await self._hit("update_order_status", order_id, status, location)

    async def complete_delivery(self, order_id: str, location: GeoPoint | None, signature: str | None = None) -> None:
        await self._hit("complete_delivery", order_id, location, signature)

    async def get_earnings(self, period: Period = "week") -> RemoteEarnings:
        await self._hit("get_earnings", period)
        return self.earnings

    async def get_earnings_history(self, limit: int = 50, offset: int = 0) -> tuple[EarningsHistoryEntry, ...]:
        await self._hit("get_earnings_history", limit, offset)
        return tuple(self.payouts[:limit])

    async def set_availability(self, is_available: bool) -> None:
        await self._hit("set_availability", is_available)

    async def get_profile(self) -> Profile:
        await self._hit("get_profile")
        return self.user


@pytest.fixture()
def make_order() -> Callable[..., Order]:
    """Return the order factory."""
    return _make_order


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def credentials() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture()
def client(gateway: FakeGateway, credentials: MemoryCredentialStore) -> CourierClient:
    """Client wired to the fake gateway, signed out."""
    return CourierClient(gateway, credentials, clock=lambda: NOW)


@pytest.fixture()
def signed_in(client: CourierClient, gateway: FakeGateway) -> CourierClient:
    """Client signed in as the fake courier with ``o-1`` pending in the active view."""
    result = asyncio.run(client.session.login_with_pin(PHONE, PIN))
    assert result.ok
    gateway.active = [_make_order("o-1", "pending")]
    asyncio.run(client.orders.refresh_active())
    gateway.calls.clear()
    return client
