"""
Order lifecycle state machine with optimistic local mutation.

Courier actions follow *optimistic-then-reconcile*:

1. validate the action against :data:`TRANSITIONS` using the cached status;
2. write the new status into the :class:`~courier_client.orders.OrderStore`
   straight away and emit ``applied``;
3. call the backend;
4. on success emit ``confirmed`` (stamping ``completed_at`` for deliveries and
   moving terminal orders to history);
5. on failure restore the previous status, emit ``rolled_back`` and re-raise.

Forward progress is shown immediately, but an order only reaches the history
view once the backend has accepted the terminal status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel

from courier_client.errors import InvalidTransition, TransitionInProgress, UnknownOrder
from courier_client.gateway import RemoteGateway
from courier_client.literals import OrderAction, OrderStatus, TransitionKind
from courier_client.models import GeoPoint, Order
from courier_client.orders import OrderStore
from courier_client.session import SessionManager
from courier_client.types import OrderId

__all__ = [
    "COURIER_ACTIONS",
    "TRANSITIONS",
    "OrderStateMachine",
    "TransitionEvent",
    "TransitionListener",
    "next_status",
]

logger = logging.getLogger(__name__)

TRANSITIONS: dict[tuple[OrderStatus, OrderAction], OrderStatus] = {
    ("pending", "accept"): "picked_up",
    ("picked_up", "start_delivery"): "in_transit",
    ("in_transit", "complete"): "delivered",
    ("pending", "cancel"): "cancelled",
    ("picked_up", "cancel"): "cancelled",
    ("in_transit", "cancel"): "cancelled",
}

# Cancellation is decided by the backend, never requested from this client.
COURIER_ACTIONS: frozenset[OrderAction] = frozenset({"accept", "start_delivery", "complete"})


def next_status(current: OrderStatus, action: OrderAction) -> OrderStatus:
    """Return the status *action* leads to from *current* or raise ``InvalidTransition``."""
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current, action) from None


class TransitionEvent(BaseModel, frozen=True):
    """One step of a transition attempt, published to subscribers in order."""

    kind: TransitionKind
    order_id: OrderId
    action: OrderAction
    from_status: OrderStatus
    to_status: OrderStatus
    error: str | None = None


type TransitionListener = Callable[[TransitionEvent], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OrderStateMachine:
    """Drives cached orders through the delivery lifecycle."""

    def __init__(
        self,
        gateway: RemoteGateway,
        session: SessionManager,
        store: OrderStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._store = store
        self._clock = clock or _utcnow
        self._in_flight: set[OrderId] = set()
        self._listeners: list[TransitionListener] = []

    def subscribe(self, listener: TransitionListener) -> Callable[[], None]:
        """Register *listener* for transition events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def in_flight(self, order_id: OrderId) -> bool:
        """True while a transition for *order_id* awaits the backend."""
        return order_id in self._in_flight

    # ------------------------------------------------------------------
    # Courier actions ---------------------------------------------------
    # ------------------------------------------------------------------

    async def accept(self, order_id: OrderId) -> Order:
        return await self.transition(order_id, "accept")

    async def start_delivery(self, order_id: OrderId, location: GeoPoint | None = None) -> Order:
        return await self.transition(order_id, "start_delivery", location=location)

    async def complete(
        self, order_id: OrderId, location: GeoPoint | None = None, signature: str | None = None
    ) -> Order:
        return await self.transition(order_id, "complete", location=location, signature=signature)

    async def transition(
        self,
        order_id: OrderId,
        action: OrderAction,
        *,
        location: GeoPoint | None = None,
        signature: str | None = None,
    ) -> Order:
        """
        Run one courier action through the optimistic protocol.

        Raises
        ------
        UnknownOrder
            *order_id* is not in the local cache.
        TransitionInProgress
            Another transition for this order has not settled yet.
        InvalidTransition
            *action* is not legal from the cached status (nothing is changed).
        NetworkError, RemoteRejected, SessionExpired
            The backend call failed; the order has already been rolled back.

        """
        self._session.require_signed_in()
        if order_id in self._in_flight:
            raise TransitionInProgress(order_id)
        order = self._require(order_id)
        if action not in COURIER_ACTIONS:
            raise InvalidTransition(order.status, action, "only the backend can do that")
        previous = order.status
        target = next_status(previous, action)

        self._in_flight.add(order_id)
        try:
            optimistic = order.model_copy(update={"status": target})
            self._store.replace(optimistic)
            logger.info("Order %s: %s -> %s (optimistic)", order_id, previous, target)
            self._emit(self._event("applied", order_id, action, previous, target))

            try:
                await self._session.call(self._send, order_id, action, location, signature)
            except (Exception, asyncio.CancelledError) as exc:
                self._rollback(optimistic, previous)
                error = str(exc) or type(exc).__name__
                self._emit(self._event("rolled_back", order_id, action, previous, target, error))
                raise

            confirmed = self._confirm(order, target)
            self._emit(self._event("confirmed", order_id, action, previous, target))
            return confirmed
        finally:
            self._in_flight.discard(order_id)

    # ------------------------------------------------------------------
    # Backend-driven changes --------------------------------------------
    # ------------------------------------------------------------------

    def apply_remote(self, order_id: OrderId, action: OrderAction) -> Order:
        """
        Apply a transition the backend has already decided (e.g. a cancellation).

        Validated against the same table but applied authoritatively: no
        optimistic phase and no backend call.
        """
        self._session.require_signed_in()
        if order_id in self._in_flight:
            raise TransitionInProgress(order_id)
        order = self._require(order_id)
        previous = order.status
        target = next_status(previous, action)
        updated = order.model_copy(update={"status": target})
        self._store.put(updated)
        logger.info("Order %s: %s -> %s (backend)", order_id, previous, target)
        self._emit(self._event("confirmed", order_id, action, previous, target))
        return updated

    # ------------------------------------------------------------------
    # Internals ---------------------------------------------------------
    # ------------------------------------------------------------------

    def _require(self, order_id: OrderId) -> Order:
        order = self._store.get(order_id)
        if order is None:
            raise UnknownOrder(order_id)
        return order

    async def _send(
        self, order_id: OrderId, action: OrderAction, location: GeoPoint | None, signature: str | None
    ) -> None:
        match action:
            case "accept":
                await self._gateway.accept_order(order_id)
            case "start_delivery":
                await self._gateway.update_order_status(order_id, "in_transit", location)
            case "complete":
                await self._gateway.complete_delivery(order_id, location, signature)
            case _:
                raise InvalidTransition(self._require(order_id).status, action)

    def _rollback(self, optimistic: Order, previous: OrderStatus) -> None:
        order_id = optimistic.id
        # Only undo our own write; a refresh may have replaced it with fresher backend data.
        if self._store.get(order_id) is optimistic:
            self._store.replace(optimistic.model_copy(update={"status": previous}))
            logger.info("Order %s: rolled back to %s", order_id, previous)
        else:
            logger.info("Order %s: superseded while in flight; keeping the newer copy", order_id)

    def _confirm(self, snapshot: Order, target: OrderStatus) -> Order:
        order_id = snapshot.id
        current = self._store.get(order_id)
        update: dict[str, object] = {"status": target}
        if target == "delivered":
            update["completed_at"] = self._clock()
        # The cached copy may have been dropped by a refresh (or a sign-out) while in flight.
        confirmed = (current or snapshot).model_copy(update=update)
        if self._session.is_signed_in:
            # Files terminal orders under history: the only place that happens for courier actions.
            self._store.put(confirmed)
        logger.info("Order %s: %s confirmed", order_id, target)
        return confirmed

    @staticmethod
    def _event(
        kind: TransitionKind,
        order_id: OrderId,
        action: OrderAction,
        previous: OrderStatus,
        target: OrderStatus,
        error: str | None = None,
    ) -> TransitionEvent:
        return TransitionEvent(
            kind=kind, order_id=order_id, action=action, from_status=previous, to_status=target, error=error
        )

    def _emit(self, event: TransitionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Transition listener %r failed", listener)
