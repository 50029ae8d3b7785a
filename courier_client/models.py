"""Pydantic data models for everything that crosses the backend boundary."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from courier_client.literals import TERMINAL_STATUSES, OrderStatus
from courier_client.types import OrderId


class WireModel(BaseModel):
    """Immutable model parsed from / dumped to the backend's camelCase JSON."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


# Courier profile
class Profile(WireModel):
    """
    The signed-in courier as returned under ``user`` by login / OTP verify.

    Fields the client does not know about are kept (``extra="allow"``) so a
    cached profile is written back to disk exactly as it was received.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    phone_number: str | None = None
    email: str | None = None
    vehicle_type: str | None = None
    vehicle_number: str | None = None
    rating: float | None = None
    total_deliveries: int = 0
    is_available: bool = False


# Order models
class Customer(WireModel):
    """Delivery recipient."""

    name: str
    phone: str
    address: str


class OrderItem(WireModel):
    """Single line of an order."""

    name: str
    quantity: int = Field(..., ge=1)
    price: Decimal


class Order(WireModel):
    """
    One delivery job.

    ``amount`` is what the customer pays and must equal ``subtotal +
    delivery_fee``; the client never recomputes it, it only refuses payloads
    where the backend got it wrong.
    """

    id: OrderId
    order_id: str = Field(..., description="Human-facing order number, e.g. 'ORD-1042'.")
    status: OrderStatus
    customer: Customer
    items: tuple[OrderItem, ...] = ()
    subtotal: Decimal
    delivery_fee: Decimal
    amount: Decimal
    created_at: datetime
    completed_at: datetime | None = None

    @model_validator(mode="after")
    def _check_amount(self) -> Order:
        if self.amount != self.subtotal + self.delivery_fee:
            raise ValueError(
                f"order {self.id}: amount {self.amount} != subtotal {self.subtotal} + delivery fee {self.delivery_fee}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        """True once the order is delivered or cancelled."""
        return self.status in TERMINAL_STATUSES


class GeoPoint(WireModel):
    """Courier position attached to status updates."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# Response envelopes
class Envelope(WireModel):
    """Fields every backend response may carry."""

    success: bool = True
    message: str | None = None


class AuthResponse(Envelope):
    """Answer to ``login`` and ``verify-otp``."""

    token: str | None = None
    user: Profile | None = None


class OrdersPage(Envelope):
    """List of orders (active or history)."""

    orders: tuple[Order, ...] = ()


class OrderEnvelope(Envelope):
    """Single order wrapper returned by the details endpoint."""

    order: Order


class ProfileEnvelope(Envelope):
    """Profile wrapper returned by ``GET /delivery/profile``."""

    profile: Profile


class RemoteEarnings(Envelope):
    """Server-side earnings roll-up; absent numbers read as zero."""

    total_earnings: Decimal = Decimal(0)
    deliveries_count: int = 0
    weekly_count: int = 0
    avg_per_delivery: Decimal = Decimal(0)

    @field_validator("total_earnings", "deliveries_count", "weekly_count", "avg_per_delivery", mode="before")
    @classmethod
    def _zero_if_missing(cls, value: Any) -> Any:
        return 0 if value is None else value


class EarningsHistoryEntry(WireModel):
    """One paid-out delivery."""

    order_id: str
    amount: Decimal
    completed_at: datetime


class EarningsHistoryPage(Envelope):
    """Recent payouts, newest first."""

    history: tuple[EarningsHistoryEntry, ...] = ()


__all__ = [
    "AuthResponse",
    "Customer",
    "EarningsHistoryEntry",
    "EarningsHistoryPage",
    "Envelope",
    "GeoPoint",
    "Order",
    "OrderEnvelope",
    "OrderItem",
    "OrdersPage",
    "Profile",
    "ProfileEnvelope",
    "RemoteEarnings",
    "WireModel",
]
