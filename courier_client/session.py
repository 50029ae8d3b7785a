"""
Session lifecycle for the signed-in courier.

``SessionManager`` owns the ``signed_out -> authenticating -> signed_in`` state
machine, mirrors the token and profile into a ``CredentialStore`` and is the
gate every other component goes through before touching the backend
(:meth:`SessionManager.call`).  State changes are pushed to subscribers in the
order they happen.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel, model_validator

from courier_client.errors import (
    AuthRejected,
    NetworkError,
    NotSignedIn,
    RemoteRejected,
    SessionExpired,
    ValidationError,
)
from courier_client.gateway import RemoteGateway
from courier_client.literals import OTP_DIGITS, PHONE_DIGITS, PIN_DIGITS, PROFILE_KEY, TOKEN_KEY, SessionStatus
from courier_client.models import AuthResponse, Profile
from courier_client.store import CredentialStore
from courier_client.types import PhoneNumber, Token

__all__ = [
    "AuthResult",
    "SessionListener",
    "SessionManager",
    "SessionState",
    "validate_otp",
    "validate_phone",
    "validate_pin",
]

logger = logging.getLogger(__name__)

type SessionListener = Callable[[SessionState], None]

FailureReason = Literal["invalid_input", "rejected", "network", "busy", "storage", "cancelled", "error"]


# ---------------------------------------------------------------------------
# DTOs -----------------------------------------------------------------------
# ---------------------------------------------------------------------------


class SessionState(BaseModel, frozen=True):
    """Snapshot of the session; ``signed_in`` exactly when token and profile are set."""

    status: SessionStatus = "signed_out"
    token: Token | None = None
    profile: Profile | None = None

    @model_validator(mode="after")
    def _signed_in_iff_credentials(self) -> SessionState:
        has_credentials = bool(self.token) and self.profile is not None
        if (self.status == "signed_in") != has_credentials:
            raise ValueError(f"status {self.status!r} inconsistent with credentials present={has_credentials}")
        return self


class AuthResult(BaseModel, frozen=True):
    """Outcome of a login / OTP call; failures carry a displayable message."""

    ok: bool
    message: str | None = None
    reason: FailureReason | None = None

    @classmethod
    def failure(cls, reason: FailureReason, message: str) -> AuthResult:
        return cls(ok=False, reason=reason, message=message)


# ---------------------------------------------------------------------------
# Input validation -----------------------------------------------------------
# ---------------------------------------------------------------------------


def _require_digits(value: str, length: int, label: str) -> str:
    if not isinstance(value, str) or not re.fullmatch(rf"[0-9]{{{length}}}", value):
        raise ValidationError(f"Please enter a valid {length}-digit {label}")
    return value


def validate_phone(phone_number: str) -> PhoneNumber:
    """Return *phone_number* if it is exactly ten ASCII digits."""
    return _require_digits(phone_number, PHONE_DIGITS, "phone number")


def validate_pin(pin: str) -> str:
    """Return *pin* if it is exactly six ASCII digits."""
    return _require_digits(pin, PIN_DIGITS, "PIN")


def validate_otp(code: str) -> str:
    """Return *code* if it is exactly six ASCII digits."""
    return _require_digits(code, OTP_DIGITS, "OTP")


# ---------------------------------------------------------------------------
# Manager --------------------------------------------------------------------
# ---------------------------------------------------------------------------


class SessionManager:
    """Injectable owner of the courier's session."""

    def __init__(self, gateway: RemoteGateway, credentials: CredentialStore) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._state = SessionState()
        self._listeners: list[SessionListener] = []
        # Bumped by every logout; a sign-in that started under an older epoch is void.
        self._epoch = 0

    # ------------------------------------------------------------------
    # Observation -------------------------------------------------------
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def profile(self) -> Profile | None:
        return self._state.profile

    @property
    def is_signed_in(self) -> bool:
        return self._state.status == "signed_in"

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* for every future state change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle ---------------------------------------------------------
    # ------------------------------------------------------------------

    async def restore(self) -> SessionState:
        """
        Rebuild the session from the credential store without contacting the backend.

        The token is trusted until the first authenticated request says
        otherwise.  Any read or parse problem leaves the session signed out;
        this method never raises.
        """
        try:
            token = await self._credentials.get(TOKEN_KEY)
            raw_profile = await self._credentials.get(PROFILE_KEY)
            if token and raw_profile:
                profile = Profile.model_validate(json.loads(raw_profile))
                self._set(SessionState(status="signed_in", token=token, profile=profile))
                logger.info("Restored session for courier %s", profile.id)
                return self._state
        except Exception:
            logger.warning("Stored credentials unreadable; starting signed out", exc_info=True)
        if self._state.status != "signed_out":
            self._set(SessionState())
        return self._state

    async def login_with_pin(self, phone_number: str, pin: str) -> AuthResult:
        """Sign in with phone number and six-digit PIN.  Never raises."""
        try:
            validate_phone(phone_number)
            validate_pin(pin)
        except ValidationError as exc:
            return AuthResult.failure("invalid_input", str(exc))
        return await self._authenticate(lambda: self._gateway.login(phone_number, pin))

    async def request_otp(self, phone_number: str) -> AuthResult:
        """
        Ask the backend to text a one-time code.

        Calling it again simply resends; the session state is never touched.
        """
        try:
            validate_phone(phone_number)
            await self._gateway.request_otp(phone_number)
        except ValidationError as exc:
            return AuthResult.failure("invalid_input", str(exc))
        except NetworkError as exc:
            return AuthResult.failure("network", str(exc))
        except (AuthRejected, RemoteRejected) as exc:
            return AuthResult.failure("rejected", str(exc))
        return AuthResult(ok=True)

    async def verify_otp(self, phone_number: str, code: str) -> AuthResult:
        """Complete the OTP flow; success is equivalent to a PIN login.  Never raises."""
        try:
            validate_phone(phone_number)
            validate_otp(code)
        except ValidationError as exc:
            return AuthResult.failure("invalid_input", str(exc))
        return await self._authenticate(lambda: self._gateway.verify_otp(phone_number, code))

    async def logout(self) -> None:
        """
        Sign out unconditionally.

        Memory is cleared (and subscribers told) before the store is touched;
        store failures are logged, never raised.  A sign-in still awaiting the
        backend is voided and will not sign the courier back in.
        """
        self._epoch += 1
        if self._state.status != "signed_out":
            self._set(SessionState())
        await self._forget_credentials()
        logger.info("Signed out")

    async def update_profile(self, profile: Profile) -> None:
        """Replace and persist the cached profile.  Local only: no backend call."""
        self.require_signed_in()
        await self._credentials.set(PROFILE_KEY, _dump_profile(profile))
        self._set(self._state.model_copy(update={"profile": profile}))

    # ------------------------------------------------------------------
    # Gate --------------------------------------------------------------
    # ------------------------------------------------------------------

    def require_signed_in(self) -> None:
        """Raise ``NotSignedIn`` unless a session is active."""
        if not self.is_signed_in:
            raise NotSignedIn(f"operation requires a signed-in courier (session is {self._state.status})")

    async def call[**P, T](self, fn: Callable[P, Awaitable[T]], /, *args: P.args, **kwargs: P.kwargs) -> T:
        """
        Await ``fn(*args, **kwargs)`` on behalf of the signed-in courier.

        A ``SessionExpired`` from the backend signs the courier out before it
        propagates to the caller.
        """
        self.require_signed_in()
        token = self._state.token
        try:
            return await fn(*args, **kwargs)
        except SessionExpired:
            # Only tear down the session the request was made with.
            if self._state.token == token:
                logger.warning("Backend rejected the session token; signing out")
                await self.logout()
            raise

    # ------------------------------------------------------------------
    # Internals ---------------------------------------------------------
    # ------------------------------------------------------------------

    async def _authenticate(self, attempt: Callable[[], Awaitable[AuthResponse]]) -> AuthResult:
        if self._state.status == "authenticating":
            return AuthResult.failure("busy", "Sign-in already in progress")
        if self._state.status == "signed_in":
            # Re-login replaces the session outright; the old token must not outlive a failed attempt.
            await self.logout()
            if self._state.status == "authenticating":
                return AuthResult.failure("busy", "Sign-in already in progress")

        epoch = self._epoch
        self._set(SessionState(status="authenticating"))
        try:
            response = await attempt()
            if epoch != self._epoch:
                logger.info("Sign-in answered after a logout; discarding it")
                return AuthResult.failure("cancelled", "Sign-in was cancelled")
            token, profile = response.token, response.user
            if not token or profile is None:
                raise RemoteRejected("auth response is missing token or user")
            try:
                await self._credentials.set(TOKEN_KEY, token)
                await self._credentials.set(PROFILE_KEY, _dump_profile(profile))
            except Exception as exc:
                logger.error("Could not persist credentials: %s", exc)
                await self.logout()
                return AuthResult.failure("storage", "Could not save your session on this device")
            if epoch != self._epoch:
                await self._forget_credentials()
                return AuthResult.failure("cancelled", "Sign-in was cancelled")
            self._set(SessionState(status="signed_in", token=token, profile=profile))
            logger.info("Signed in as courier %s", profile.id)
            return AuthResult(ok=True)
        except (AuthRejected, RemoteRejected) as exc:
            logger.info("Sign-in rejected: %s", exc)
            return AuthResult.failure("rejected", str(exc))
        except NetworkError as exc:
            logger.info("Sign-in failed: %s", exc)
            return AuthResult.failure("network", str(exc))
        except Exception as exc:
            logger.exception("Unexpected sign-in failure")
            return AuthResult.failure("error", str(exc) or "Login failed. Please try again.")
        finally:
            # A sign-in started after a logout owns the authenticating state now.
            if epoch == self._epoch and self._state.status == "authenticating":
                self._set(SessionState())

    async def _forget_credentials(self) -> None:
        for key in (TOKEN_KEY, PROFILE_KEY):
            try:
                await self._credentials.remove(key)
            except Exception:
                logger.warning("Could not remove %s from credential store", key, exc_info=True)

    def _set(self, state: SessionState) -> None:
        previous, self._state = self._state, state
        if previous.status != state.status:
            logger.debug("Session %s -> %s", previous.status, state.status)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener %r failed", listener)


def _dump_profile(profile: Profile) -> str:
    return json.dumps(profile.model_dump(mode="json", by_alias=True), sort_keys=True)
