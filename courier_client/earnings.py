"""
Earnings roll-ups for the courier.

:func:`summarize` is the local, pure aggregation over delivered orders.
:class:`EarningsService` adds the session-gated views: the same summary over
the cached orders, and the backend's own figures and payout history.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel

from courier_client.gateway import RemoteGateway
from courier_client.literals import Period
from courier_client.models import EarningsHistoryEntry, Order, RemoteEarnings
from courier_client.orders import OrderStore
from courier_client.session import SessionManager

__all__ = [
    "EarningsService",
    "EarningsSummary",
    "period_start",
    "summarize",
]

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class EarningsSummary(BaseModel, frozen=True):
    """Totals for one period window."""

    period: Period
    total_earnings: Decimal = Decimal(0)
    deliveries_count: int = 0
    avg_per_delivery: Decimal = Decimal(0)


def _aware(moment: datetime, *, assume_utc: bool) -> datetime:
    if moment.tzinfo is not None:
        return moment
    # Naive backend timestamps are UTC; a naive "now" is local wall-clock time.
    return moment.replace(tzinfo=UTC) if assume_utc else moment.astimezone()


def period_start(period: Period, now: datetime) -> datetime:
    """
    Return the inclusive start of *period* relative to *now*.

    ``today`` is *now*'s calendar day, ``week`` the last seven days and
    ``month`` *now*'s calendar month, all in *now*'s timezone.
    """
    now = _aware(now, assume_utc=False)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    match period:
        case "today":
            return midnight
        case "week":
            return now - timedelta(days=7)
        case "month":
            return midnight.replace(day=1)
    raise ValueError(f"unknown period {period!r}")


def summarize(orders: Iterable[Order], period: Period, now: datetime | None = None) -> EarningsSummary:
    """
    Aggregate delivered orders completed inside *period*.

    Earnings are the courier's delivery fees, not the order amounts.  The
    average is rounded half-up to cents and is zero when nothing was delivered.
    """
    now = _aware(now or datetime.now().astimezone(), assume_utc=False)
    start = period_start(period, now)

    fees = [
        order.delivery_fee
        for order in orders
        if order.status == "delivered"
        and order.completed_at is not None
        and start <= _aware(order.completed_at, assume_utc=True) <= now
    ]
    total = sum(fees, Decimal(0))
    count = len(fees)
    average = (total / count).quantize(_CENT, rounding=ROUND_HALF_UP) if count else Decimal(0)
    return EarningsSummary(period=period, total_earnings=total, deliveries_count=count, avg_per_delivery=average)


class EarningsService:
    """Session-gated access to earnings, local and remote."""

    def __init__(
        self,
        gateway: RemoteGateway,
        session: SessionManager,
        store: OrderStore,
        *,
        history_limit: int = 10,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._store = store
        self.history_limit = history_limit

    def local_summary(self, period: Period, now: datetime | None = None) -> EarningsSummary:
        """Summarize the orders currently cached in the store."""
        self._session.require_signed_in()
        return summarize((*self._store.history, *self._store.active), period, now)

    async def collect_summary(self, period: Period, now: datetime | None = None) -> EarningsSummary:
        """Page order history back to the start of *period*, then summarize locally."""
        now = _aware(now or datetime.now().astimezone(), assume_utc=False)
        await self._store.refresh_history_since(period_start(period, now))
        return self.local_summary(period, now)

    async def fetch_summary(self, period: Period = "week") -> RemoteEarnings:
        """Return the backend's own roll-up for *period*."""
        earnings = await self._session.call(self._gateway.get_earnings, period)
        logger.info("Earnings (%s): %s over %d deliveries", period, earnings.total_earnings, earnings.deliveries_count)
        return earnings

    async def fetch_history(self, limit: int | None = None) -> tuple[EarningsHistoryEntry, ...]:
        """Return the most recent payouts."""
        return await self._session.call(self._gateway.get_earnings_history, limit or self.history_limit)
