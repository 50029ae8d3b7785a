"""Tests for the active / history order views."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeGateway, _make_order

from courier_client.client import CourierClient
from courier_client.errors import NotSignedIn


def test_refresh_active_replaces_wholesale(signed_in: CourierClient, gateway: FakeGateway) -> None:
    """Orders missing from the new response disappear; nothing is merged."""
    client = signed_in
    gateway.active = [_make_order("o-2", "picked_up"), _make_order("o-3", "in_transit")]

    active = asyncio.run(client.orders.refresh_active())

    assert [o.id for o in active] == ["o-2", "o-3"]
    assert client.orders.get("o-1") is None


def test_refresh_active_files_terminal_orders_under_history(signed_in: CourierClient, gateway: FakeGateway) -> None:
    """Terminal orders in the active response land in history."""
    gateway.active = [_make_order("o-1", "cancelled"), _make_order("o-2", "pending")]

    asyncio.run(signed_in.orders.refresh_active())

    assert signed_in.orders.view_of("o-1") == "history"
    assert signed_in.orders.view_of("o-2") == "active"


def test_refresh_history_evicts_from_active(signed_in: CourierClient, gateway: FakeGateway) -> None:
    """An id is never in both views at once."""
    gateway.history = [_make_order("o-1", "delivered", completed_at=None), _make_order("o-9", "pending")]

    history = asyncio.run(signed_in.orders.refresh_history())

    assert [o.id for o in history] == ["o-1"]
    assert signed_in.orders.view_of("o-1") == "history"
    assert signed_in.orders.active == ()
    assert signed_in.orders.get("o-9") is None
    assert gateway.calls == [("get_order_history", (20, 0))]


def test_stale_refresh_is_discarded(signed_in: CourierClient, gateway: FakeGateway) -> None:
    """When two refreshes overlap, the one that started last wins."""
    client = signed_in

    async def scenario() -> None:
        slow_gate, fast_gate = asyncio.Event(), asyncio.Event()
        gateway.gates["get_active_orders"] = [slow_gate, fast_gate]

        gateway.active = [_make_order("old", "pending")]
        slow = asyncio.create_task(client.orders.refresh_active())
        await asyncio.sleep(0)
        gateway.active = [_make_order("new", "pending")]
        fast = asyncio.create_task(client.orders.refresh_active())
        await asyncio.sleep(0)

        fast_gate.set()
        await fast
        slow_gate.set()
        await slow

    asyncio.run(scenario())
    assert [o.id for o in client.orders.active] == ["new"]


def test_load_details_files_by_status(signed_in: CourierClient, gateway: FakeGateway) -> None:
    """A fetched order is filed by its status."""
    gateway.history = [_make_order("o-7", "delivered")]

    order = asyncio.run(signed_in.orders.load_details("o-7"))

    assert order.status == "delivered"
    assert signed_in.orders.view_of("o-7") == "history"


def test_sign_out_clears_views(signed_in: CourierClient) -> None:
    """Signing out empties both views."""
    assert signed_in.orders.active

    asyncio.run(signed_in.session.logout())

    assert signed_in.orders.active == ()
    assert signed_in.orders.history == ()


def test_refresh_requires_session(client: CourierClient, gateway: FakeGateway) -> None:
    """Refreshes are gated on a session."""
    with pytest.raises(NotSignedIn):
        asyncio.run(client.orders.refresh_active())
    assert gateway.calls == []
