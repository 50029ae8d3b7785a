"""On/off-duty flag mirrored to the backend with optimistic rollback."""

from __future__ import annotations

import asyncio
import logging

from courier_client.errors import TransitionInProgress
from courier_client.gateway import RemoteGateway
from courier_client.session import SessionManager, SessionState

__all__ = ["AvailabilityToggle"]

logger = logging.getLogger(__name__)


class AvailabilityToggle:
    """
    Whether the courier is accepting new orders.

    Changes are shown immediately and rolled back if the backend call fails.
    Only one change may be pending at a time; this is independent of order
    transitions.
    """

    def __init__(self, gateway: RemoteGateway, session: SessionManager) -> None:
        self._gateway = gateway
        self._session = session
        self._pending = False
        self._value = self._initial(session.state)
        self._last_status = session.status
        session.subscribe(self._on_session_change)

    @property
    def is_available(self) -> bool:
        return self._value

    @property
    def pending(self) -> bool:
        return self._pending

    async def set(self, is_available: bool) -> bool:
        """Apply *is_available* locally, then confirm with the backend or roll back."""
        self._session.require_signed_in()
        if self._pending:
            raise TransitionInProgress("availability")
        previous = self._value
        token = self._session.state.token
        self._pending = True
        self._value = is_available
        try:
            await self._session.call(self._gateway.set_availability, is_available)
        except (Exception, asyncio.CancelledError):
            # A sign-out (e.g. on SessionExpired) or a new session has already reseeded the flag.
            if self._session.state.token == token:
                self._value = previous
                logger.warning("Availability change to %s failed; reverted to %s", is_available, previous)
            raise
        finally:
            self._pending = False
        logger.info("Courier is now %s", "available" if is_available else "offline")
        return self._value

    @staticmethod
    def _initial(state: SessionState) -> bool:
        return bool(state.profile and state.profile.is_available)

    def _on_session_change(self, state: SessionState) -> None:
        # Seed from the profile on sign-in only; later profile edits keep the live value.
        if state.status == "signed_in" and self._last_status != "signed_in":
            self._value = self._initial(state)
        elif state.status == "signed_out":
            self._value = False
        self._last_status = state.status
