"""Exception hierarchy shared by every component of the courier client."""

from __future__ import annotations

from courier_client.literals import OrderAction, OrderStatus

__all__ = [
    "CourierError",
    "ValidationError",
    "AuthRejected",
    "SessionExpired",
    "NotSignedIn",
    "InvalidTransition",
    "TransitionInProgress",
    "UnknownOrder",
    "NetworkError",
    "RemoteRejected",
]


class CourierError(Exception):
    """Base class for every error raised by ``courier_client``."""


class ValidationError(CourierError):
    """Malformed phone number, PIN or OTP; raised before any I/O."""


class AuthRejected(CourierError):
    """The backend declined the supplied credentials."""


class SessionExpired(CourierError):
    """An authenticated request came back 401; the session is gone."""


class NotSignedIn(CourierError):
    """A gated operation was attempted without an active session."""


class InvalidTransition(CourierError):
    """Requested action is not legal from the order's current status."""

    def __init__(self, current: OrderStatus, action: OrderAction, reason: str | None = None) -> None:
        self.current = current
        self.action = action
        message = f"cannot {action} an order that is {current}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TransitionInProgress(CourierError):
    """Another mutation for the same entity is still awaiting the backend."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"a transition for {key} is already in flight")


class UnknownOrder(CourierError, LookupError):
    """The order is not in the local cache; refresh the order list first."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"unknown order {order_id}; refresh the order list first")


class NetworkError(CourierError):
    """Timeout or connectivity failure; safe for the caller to retry."""


class RemoteRejected(CourierError):
    """
    The backend refused a well-formed request or answered with garbage.

    Callers should re-fetch the affected data rather than retry blindly.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
