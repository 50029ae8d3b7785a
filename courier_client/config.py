"""Runtime configuration for the courier client."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from courier_client.gateway import DEFAULT_BASE_URL

__all__ = ["ClientConfig", "DEFAULT_CREDENTIALS_PATH"]

DEFAULT_CREDENTIALS_PATH = Path("~/.courier_client/credentials.json")


class ClientConfig(BaseModel):
    """Immutable settings shared by the gateway, stores and CLI."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(DEFAULT_BASE_URL, description="API root, e.g. 'https://api.example.com/api/v1'.")
    timeout_s: float = Field(10.0, gt=0, description="Per-request HTTP timeout in seconds.")
    credentials_path: Path = Field(DEFAULT_CREDENTIALS_PATH, description="JSON file holding token and profile.")
    history_page_size: int = Field(20, ge=1, description="Orders fetched per history refresh.")
    earnings_history_limit: int = Field(10, ge=1, description="Payouts fetched per earnings history call.")
