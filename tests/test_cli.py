"""Offline tests for the ``courier`` command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner, Result
from conftest import PHONE

from courier_client.cli import cli
from courier_client.literals import PROFILE_KEY, TOKEN_KEY


def _invoke(credentials: Path, *args: str) -> Result:
    return CliRunner().invoke(cli, ["--credentials", str(credentials), *args])


def test_whoami_reads_saved_session(tmp_path: Path) -> None:
    """whoami works offline from the saved credentials file."""
    credentials = tmp_path / "credentials.json"
    profile = {"id": "c-1", "name": "Ravi Kumar", "phoneNumber": PHONE}
    credentials.write_text(json.dumps({TOKEN_KEY: "T1", PROFILE_KEY: json.dumps(profile)}))

    result = _invoke(credentials, "whoami")

    assert result.exit_code == 0, result.output
    assert result.output.strip() == f"Ravi Kumar ({PHONE})"


def test_whoami_when_signed_out(tmp_path: Path) -> None:
    """Without a saved session whoami fails with a clear message."""
    result = _invoke(tmp_path / "missing.json", "whoami")

    assert result.exit_code == 1
    assert "Not signed in." in result.output


def test_login_validates_before_network(tmp_path: Path) -> None:
    """A malformed phone number is rejected locally and nothing is written."""
    credentials = tmp_path / "credentials.json"

    result = _invoke(credentials, "login", "--phone", "98765", "--pin", "123456")

    assert result.exit_code == 1
    assert "Please enter a valid 10-digit phone number" in result.output
    assert not credentials.exists()


def test_orders_requires_session(tmp_path: Path) -> None:
    """Gated commands report the missing session instead of a traceback."""
    result = _invoke(tmp_path / "missing.json", "orders")

    assert result.exit_code == 1
    assert "signed-in courier" in result.output


def test_logout_clears_credentials_file(tmp_path: Path) -> None:
    """logout empties the credentials file."""
    credentials = tmp_path / "credentials.json"
    profile = {"id": "c-1", "name": "Ravi Kumar"}
    credentials.write_text(json.dumps({TOKEN_KEY: "T1", PROFILE_KEY: json.dumps(profile)}))

    result = _invoke(credentials, "logout")

    assert result.exit_code == 0, result.output
    assert json.loads(credentials.read_text()) == {}


def test_logout_repairs_garbage_credentials(tmp_path: Path) -> None:
    """Starting from an unreadable credentials file, logout succeeds and leaves a clean file."""
    credentials = tmp_path / "credentials.json"
    credentials.write_text("not json{")

    result = _invoke(credentials, "logout")

    assert result.exit_code == 0, result.output
    assert json.loads(credentials.read_text()) == {}
