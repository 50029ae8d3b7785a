"""Canonical type aliases used throughout the project."""

from __future__ import annotations

OrderId = str  # backend primary key, e.g. "64f0c2..."
Token = str  # opaque bearer token
PhoneNumber = str  # 10 national digits, no country code
