"""In-memory index of the courier's orders, split into *active* and *history* views."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from courier_client.gateway import RemoteGateway
from courier_client.models import Order
from courier_client.session import SessionManager, SessionState
from courier_client.types import OrderId

__all__ = ["OrderStore", "View"]

logger = logging.getLogger(__name__)

View = Literal["active", "history"]


class OrderStore:
    """
    Cache of known orders keyed by id.

    Each refresh replaces its view wholesale from the backend; there is no
    incremental merge.  An id lives in exactly one view.  ``active`` normally
    holds non-terminal orders only, except for an order whose terminal
    transition has been applied optimistically and is still awaiting the
    backend: it stays in ``active`` until the confirmed copy is filed with
    :meth:`put`.
    """

    def __init__(self, gateway: RemoteGateway, session: SessionManager, *, history_page_size: int = 20) -> None:
        self._gateway = gateway
        self._session = session
        self.history_page_size = history_page_size
        self._active: dict[OrderId, Order] = {}
        self._history: dict[OrderId, Order] = {}
        # Bumped on every refresh start; a response is applied only if no newer refresh began.
        self._generation: dict[View, int] = {"active": 0, "history": 0}
        session.subscribe(self._on_session_change)

    # ------------------------------------------------------------------
    # Views -------------------------------------------------------------
    # ------------------------------------------------------------------

    @property
    def active(self) -> tuple[Order, ...]:
        return tuple(self._active.values())

    @property
    def history(self) -> tuple[Order, ...]:
        return tuple(self._history.values())

    def get(self, order_id: OrderId) -> Order | None:
        """Return the cached order from whichever view holds it."""
        return self._active.get(order_id) or self._history.get(order_id)

    def view_of(self, order_id: OrderId) -> View | None:
        if order_id in self._active:
            return "active"
        if order_id in self._history:
            return "history"
        return None

    # ------------------------------------------------------------------
    # Backend refresh ---------------------------------------------------
    # ------------------------------------------------------------------

    async def refresh_active(self) -> tuple[Order, ...]:
        """Replace the active view with ``getActiveOrders``; newest refresh wins."""
        generation = self._begin("active")
        orders = await self._session.call(self._gateway.get_active_orders)
        if self._is_stale("active", generation):
            return self.active

        self._active = {}
        for order in orders:
            self._history.pop(order.id, None)
            if order.is_terminal:
                self._history[order.id] = order
            else:
                self._active[order.id] = order
        logger.info("Active orders refreshed: %d", len(self._active))
        return self.active

    async def refresh_history(self, limit: int | None = None, offset: int = 0) -> tuple[Order, ...]:
        """Replace the history view with one page of ``getOrderHistory``."""
        generation = self._begin("history")
        orders = await self._session.call(
            self._gateway.get_order_history, limit or self.history_page_size, offset
        )
        if self._is_stale("history", generation):
            return self.history
        return self._fill_history(orders)

    async def refresh_history_since(self, since: datetime) -> tuple[Order, ...]:
        """
        Replace the history view with every page needed to reach back to *since*.

        Pages are fetched newest first until one comes back short or ends
        with an order finished before *since*.
        """
        generation = self._begin("history")
        collected: list[Order] = []
        pages = 0
        while True:
            pages += 1
            page = await self._session.call(
                self._gateway.get_order_history, self.history_page_size, len(collected)
            )
            collected.extend(page)
            if len(page) < self.history_page_size or _finished_at(page[-1]) < since:
                break
        if self._is_stale("history", generation):
            return self.history
        logger.debug("Fetched %d history page(s) back to %s", pages, since)
        return self._fill_history(collected)

    async def load_details(self, order_id: OrderId) -> Order:
        """Fetch one order and file it under the view its status belongs to."""
        order = await self._session.call(self._gateway.get_order_details, order_id)
        self.put(order)
        return order

    # ------------------------------------------------------------------
    # Local mutation (used by the state machine) ------------------------
    # ------------------------------------------------------------------

    def put(self, order: Order) -> None:
        """Insert *order* into the view matching its status, evicting it from the other."""
        if order.is_terminal:
            self._active.pop(order.id, None)
            self._history[order.id] = order
        else:
            self._history.pop(order.id, None)
            self._active[order.id] = order

    def replace(self, order: Order) -> None:
        """Overwrite the cached copy in whichever view holds it, without re-filing."""
        if order.id in self._history:
            self._history[order.id] = order
        else:
            self._active[order.id] = order

    def clear(self) -> None:
        """Forget everything, including refreshes still in flight."""
        self._active.clear()
        self._history.clear()
        for view in self._generation:
            self._generation[view] += 1

    # ------------------------------------------------------------------
    # Internals ---------------------------------------------------------
    # ------------------------------------------------------------------

    def _begin(self, view: View) -> int:
        self._generation[view] += 1
        return self._generation[view]

    def _is_stale(self, view: View, generation: int) -> bool:
        if generation != self._generation[view]:
            logger.debug("Discarding superseded %s refresh (#%d, latest #%d)", view, generation, self._generation[view])
            return True
        return False

    def _fill_history(self, orders: Iterable[Order]) -> tuple[Order, ...]:
        self._history = {}
        for order in orders:
            if not order.is_terminal:
                logger.warning("History returned non-terminal order %s (%s); ignored", order.id, order.status)
                continue
            self._active.pop(order.id, None)
            self._history[order.id] = order
        logger.info("Order history refreshed: %d", len(self._history))
        return self.history

    def _on_session_change(self, state: SessionState) -> None:
        if state.status == "signed_out":
            self.clear()


def _finished_at(order: Order) -> datetime:
    moment = order.completed_at or order.created_at
    # Naive backend timestamps are UTC.
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)
