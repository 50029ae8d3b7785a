"""Courier-client public package namespace."""

from courier_client.availability import AvailabilityToggle
from courier_client.client import CourierClient, DashboardStats
from courier_client.config import ClientConfig
from courier_client.earnings import EarningsService, EarningsSummary, summarize
from courier_client.gateway import HttpGateway, RemoteGateway
from courier_client.machine import OrderStateMachine, TransitionEvent, next_status
from courier_client.models import Customer, GeoPoint, Order, OrderItem, Profile
from courier_client.orders import OrderStore
from courier_client.session import AuthResult, SessionManager, SessionState
from courier_client.store import CredentialStore, FileCredentialStore, MemoryCredentialStore

__all__: list[str] = [
    "AuthResult",
    "AvailabilityToggle",
    "ClientConfig",
    "CourierClient",
    "CredentialStore",
    "Customer",
    "DashboardStats",
    "EarningsService",
    "EarningsSummary",
    "FileCredentialStore",
    "GeoPoint",
    "HttpGateway",
    "MemoryCredentialStore",
    "Order",
    "OrderItem",
    "OrderStateMachine",
    "OrderStore",
    "Profile",
    "RemoteGateway",
    "SessionManager",
    "SessionState",
    "TransitionEvent",
    "next_status",
    "summarize",
]
