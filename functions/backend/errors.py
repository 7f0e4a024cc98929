"""
Tagged error type shared by every data-access operation.

Each error carries an explicit `ErrorKind` set where the error is produced,
so callers branch on the kind instead of probing codes or message text.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional


class ErrorKind(StrEnum):
    # Identity
    INVALID_CREDENTIALS = "invalid-credentials"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    INVALID_EMAIL = "invalid-email"
    EMAIL_NOT_VERIFIED = "email-not-verified"
    RATE_LIMITED = "rate-limited"
    ACCOUNT_EXISTS = "account-exists"
    WEAK_PASSWORD = "weak-password"
    INVALID_CODE = "invalid-code"
    AUTH_EXPIRED = "auth-expired"
    UNAUTHENTICATED = "unauthenticated"

    # Connectivity
    TIMEOUT = "timeout"
    NETWORK = "network"
    OFFLINE = "offline"
    UNAVAILABLE = "unavailable"
    FAILED_PRECONDITION = "failed-precondition"

    VALIDATION = "validation"
    NOT_FOUND = "not-found"
    PERMISSION_DENIED = "permission-denied"
    INVALID_STATE = "invalid-state"
    STORAGE = "storage"
    UNKNOWN = "unknown"


CONNECTIVITY_KINDS = frozenset(
    {
        ErrorKind.TIMEOUT,
        ErrorKind.NETWORK,
        ErrorKind.OFFLINE,
        ErrorKind.UNAVAILABLE,
        ErrorKind.FAILED_PRECONDITION,
    }
)

IDENTITY_KINDS = frozenset(
    {
        ErrorKind.INVALID_CREDENTIALS,
        ErrorKind.USER_NOT_FOUND,
        ErrorKind.WRONG_PASSWORD,
        ErrorKind.INVALID_EMAIL,
        ErrorKind.EMAIL_NOT_VERIFIED,
        ErrorKind.RATE_LIMITED,
        ErrorKind.ACCOUNT_EXISTS,
        ErrorKind.WEAK_PASSWORD,
        ErrorKind.INVALID_CODE,
        ErrorKind.AUTH_EXPIRED,
        ErrorKind.UNAUTHENTICATED,
    }
)


class TimeBankError(Exception):
    """An error raised by the time bank data-access layer."""

    def __init__(
        self, kind: ErrorKind, message: str, *, field: Optional[str] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field

    @property
    def is_connectivity(self) -> bool:
        return self.kind in CONNECTIVITY_KINDS

    def __repr__(self) -> str:
        return f"TimeBankError({self.kind.value!r}, {self.message!r})"


def validation_error(message: str, field: Optional[str] = None) -> TimeBankError:
    return TimeBankError(ErrorKind.VALIDATION, message, field=field)


def is_connectivity_error(error: BaseException) -> bool:
    return isinstance(error, TimeBankError) and error.is_connectivity


_USER_MESSAGES = {
    ErrorKind.INVALID_CREDENTIALS: (
        "Invalid email or password. Please check your credentials and try again."
    ),
    ErrorKind.USER_NOT_FOUND: (
        "No account exists with this email. Please check your email or sign up "
        "for a new account."
    ),
    ErrorKind.WRONG_PASSWORD: (
        'Incorrect password. Please try again or use the "Forgot your password" link.'
    ),
    ErrorKind.INVALID_EMAIL: "Please enter a valid email address.",
    ErrorKind.EMAIL_NOT_VERIFIED: (
        "Email not verified. Please check your email for verification link."
    ),
    ErrorKind.RATE_LIMITED: (
        "Too many failed login attempts. Please try again later or reset your password."
    ),
    ErrorKind.ACCOUNT_EXISTS: (
        "An account with this email already exists. Please sign in instead."
    ),
    ErrorKind.AUTH_EXPIRED: "Authentication error: Please sign in again.",
    ErrorKind.UNAUTHENTICATED: "You must be logged in to continue.",
    ErrorKind.NETWORK: (
        "Network error. Please check your internet connection and try again."
    ),
    ErrorKind.OFFLINE: (
        "Unable to connect to the database. Please check your internet "
        "connection and try again."
    ),
    ErrorKind.UNAVAILABLE: (
        "Unable to connect to the database. Please check your internet "
        "connection and try again."
    ),
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}

# Kinds whose own message is already written for the user.
_PASSTHROUGH_KINDS = frozenset(
    {
        ErrorKind.VALIDATION,
        ErrorKind.TIMEOUT,
        ErrorKind.NOT_FOUND,
        ErrorKind.PERMISSION_DENIED,
        ErrorKind.INVALID_STATE,
        ErrorKind.STORAGE,
        ErrorKind.WEAK_PASSWORD,
        ErrorKind.INVALID_CODE,
        ErrorKind.FAILED_PRECONDITION,
    }
)


def user_message(error: BaseException) -> str:
    """Maps an error to the human-readable text shown to the member."""
    if not isinstance(error, TimeBankError):
        return _USER_MESSAGES[ErrorKind.UNKNOWN]
    if error.kind in _PASSTHROUGH_KINDS and error.message:
        return error.message
    return _USER_MESSAGES.get(error.kind, error.message)
