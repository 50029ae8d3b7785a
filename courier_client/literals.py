"""Canonical token literals used throughout the project (wire-format spellings)."""

from typing import Literal

OrderStatus = Literal[
    "pending",
    "picked_up",
    "in_transit",
    "delivered",
    "cancelled",
]

# Courier-facing verbs plus the server-driven ``cancel``.
OrderAction = Literal[
    "accept",
    "start_delivery",
    "complete",
    "cancel",
]

SessionStatus = Literal["signed_out", "authenticating", "signed_in"]

Period = Literal["today", "week", "month"]

TransitionKind = Literal["applied", "confirmed", "rolled_back"]

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({"delivered", "cancelled"})

# Credential store keys (kept identical to the mobile app's storage keys).
TOKEN_KEY = "authToken"
PROFILE_KEY = "userData"

# Input lengths enforced before any network call.
PHONE_DIGITS = 10
PIN_DIGITS = 6
OTP_DIGITS = 6

__all__ = [
    "OrderStatus",
    "OrderAction",
    "SessionStatus",
    "Period",
    "TransitionKind",
    "TERMINAL_STATUSES",
    "TOKEN_KEY",
    "PROFILE_KEY",
    "PHONE_DIGITS",
    "PIN_DIGITS",
    "OTP_DIGITS",
]
