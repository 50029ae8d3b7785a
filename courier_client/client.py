"""Composition root wiring session, orders, earnings and availability together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from types import TracebackType

from pydantic import BaseModel

from courier_client.availability import AvailabilityToggle
from courier_client.config import ClientConfig
from courier_client.earnings import EarningsService
from courier_client.gateway import HttpGateway, RemoteGateway
from courier_client.machine import OrderStateMachine
from courier_client.orders import OrderStore
from courier_client.session import SessionManager
from courier_client.store import CredentialStore, FileCredentialStore

__all__ = ["CourierClient", "DashboardStats"]

logger = logging.getLogger(__name__)


class DashboardStats(BaseModel, frozen=True):
    """Headline numbers for the courier's home screen."""

    today_deliveries: int
    today_earnings: Decimal
    active_orders: int
    weekly_deliveries: int


class CourierClient:
    """
    One courier's view of the backend.

    All components share a single ``SessionManager``; constructing two clients
    gives two fully isolated sessions.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        credentials: CredentialStore,
        *,
        config: ClientConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.gateway = gateway
        self.credentials = credentials
        self.session = SessionManager(gateway, credentials)
        self.orders = OrderStore(gateway, self.session, history_page_size=self.config.history_page_size)
        self.machine = OrderStateMachine(gateway, self.session, self.orders, clock=clock)
        self.earnings = EarningsService(
            gateway, self.session, self.orders, history_limit=self.config.earnings_history_limit
        )
        self.availability = AvailabilityToggle(gateway, self.session)
        self._owned_gateway: HttpGateway | None = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> CourierClient:
        """Build a client backed by the HTTP gateway and a credentials file."""
        credentials = FileCredentialStore(config.credentials_path)
        gateway = HttpGateway(credentials, base_url=config.base_url, timeout_s=config.timeout_s)
        client = cls(gateway, credentials, config=config)
        logger.debug("Backend %s, credentials in %s", config.base_url, credentials.path)
        client._owned_gateway = gateway
        return client

    async def dashboard(self) -> DashboardStats:
        """Refresh active orders and fetch today's earnings concurrently."""
        active, today = await asyncio.gather(
            self.orders.refresh_active(),
            self.earnings.fetch_summary("today"),
        )
        return DashboardStats(
            today_deliveries=today.deliveries_count,
            today_earnings=today.total_earnings,
            active_orders=len(active),
            weekly_deliveries=today.weekly_count,
        )

    async def aclose(self) -> None:
        """Close the HTTP gateway if this client created it."""
        if self._owned_gateway is not None:
            await self._owned_gateway.aclose()
            self._owned_gateway = None

    async def __aenter__(self) -> CourierClient:
        await self.session.restore()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
