"""
Identity provider abstraction: Firebase Authentication and an in-memory
implementation for development and tests.
"""

from __future__ import annotations

import logging
import re
import secrets
import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol

import requests
from firebase_admin import auth as admin_auth
from firebase_admin import exceptions as firebase_exceptions

from backend.errors import ErrorKind, TimeBankError
from shared.constants import MIN_PASSWORD_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    """A signed-in identity, as the identity provider reports it."""

    uid: str
    email: Optional[str]
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False
    id_token: Optional[str] = None


class IdentityClient(Protocol):
    """Email/password identity with verification codes."""

    def create_account(self, email: str, password: str) -> AuthUser:
        ...

    def update_profile(self, user: AuthUser, *, display_name: str) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> AuthUser:
        ...

    def sign_out(self, user: AuthUser) -> None:
        ...

    def lookup(self, id_token: str) -> AuthUser:
        ...

    def send_verification_email(self, user: AuthUser, redirect_url: str) -> None:
        ...

    def send_password_reset_email(self, email: str) -> None:
        ...

    def apply_verification_code(self, code: str) -> AuthUser:
        ...

    def delete_account(self, user: AuthUser) -> None:
        ...


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class _Account:
    uid: str
    email: str
    password: str
    display_name: Optional[str] = None
    email_verified: bool = False


@dataclass
class SentEmail:
    kind: str
    email: str
    code: str
    continue_url: Optional[str] = None


class InMemoryIdentityClient:
    """Identity double that keeps accounts, sessions and sent emails in memory."""

    def __init__(self):
        self.accounts: dict[str, _Account] = {}
        self.sessions: dict[str, str] = {}
        self.outbox: list[SentEmail] = []
        self._codes: dict[str, str] = {}
        self._lock = threading.Lock()

    def _to_user(self, account: _Account, id_token: Optional[str]) -> AuthUser:
        return AuthUser(
            uid=account.uid,
            email=account.email,
            display_name=account.display_name,
            email_verified=account.email_verified,
            id_token=id_token,
        )

    def _account_for_token(self, id_token: Optional[str]) -> _Account:
        uid = self.sessions.get(id_token or "")
        for account in self.accounts.values():
            if account.uid == uid:
                return account
        raise TimeBankError(ErrorKind.AUTH_EXPIRED, "INVALID_ID_TOKEN")

    def _new_session(self, account: _Account) -> str:
        token = secrets.token_urlsafe(24)
        self.sessions[token] = account.uid
        return token

    def create_account(self, email: str, password: str) -> AuthUser:
        email = email.strip().lower()
        if not _EMAIL_PATTERN.match(email):
            raise TimeBankError(ErrorKind.INVALID_EMAIL, "INVALID_EMAIL")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise TimeBankError(
                ErrorKind.WEAK_PASSWORD,
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters",
            )
        with self._lock:
            if email in self.accounts:
                raise TimeBankError(ErrorKind.ACCOUNT_EXISTS, "EMAIL_EXISTS")
            account = _Account(uid=uuid.uuid4().hex[:28], email=email, password=password)
            self.accounts[email] = account
            return self._to_user(account, self._new_session(account))

    def update_profile(self, user: AuthUser, *, display_name: str) -> AuthUser:
        with self._lock:
            account = self._account_for_token(user.id_token)
            account.display_name = display_name
            return replace(user, display_name=display_name)

    def sign_in(self, email: str, password: str) -> AuthUser:
        with self._lock:
            account = self.accounts.get(email.strip().lower())
            if account is None:
                raise TimeBankError(ErrorKind.USER_NOT_FOUND, "EMAIL_NOT_FOUND")
            if account.password != password:
                raise TimeBankError(ErrorKind.WRONG_PASSWORD, "INVALID_PASSWORD")
            return self._to_user(account, self._new_session(account))

    def sign_out(self, user: AuthUser) -> None:
        with self._lock:
            for token, uid in list(self.sessions.items()):
                if uid == user.uid:
                    del self.sessions[token]

    def lookup(self, id_token: str) -> AuthUser:
        with self._lock:
            return self._to_user(self._account_for_token(id_token), id_token)

    def send_verification_email(self, user: AuthUser, redirect_url: str) -> None:
        with self._lock:
            account = self._account_for_token(user.id_token)
            code = secrets.token_urlsafe(12)
            self._codes[code] = account.email
            self.outbox.append(SentEmail("VERIFY_EMAIL", account.email, code, redirect_url))

    def send_password_reset_email(self, email: str) -> None:
        with self._lock:
            account = self.accounts.get(email.strip().lower())
            if account is None:
                raise TimeBankError(ErrorKind.USER_NOT_FOUND, "EMAIL_NOT_FOUND")
            self.outbox.append(
                SentEmail("PASSWORD_RESET", account.email, secrets.token_urlsafe(12))
            )

    def apply_verification_code(self, code: str) -> AuthUser:
        with self._lock:
            email = self._codes.pop(code, None)
            if email is None or email not in self.accounts:
                raise TimeBankError(ErrorKind.INVALID_CODE, "INVALID_OOB_CODE")
            account = self.accounts[email]
            account.email_verified = True
            return self._to_user(account, None)

    def delete_account(self, user: AuthUser) -> None:
        with self._lock:
            for email, account in list(self.accounts.items()):
                if account.uid == user.uid:
                    del self.accounts[email]
            for token, uid in list(self.sessions.items()):
                if uid == user.uid:
                    del self.sessions[token]

    def latest_code(self, email: str, kind: str = "VERIFY_EMAIL") -> Optional[str]:
        """Returns the most recent code mailed to `email` (useful in tests)."""
        for sent in reversed(self.outbox):
            if sent.email == email.strip().lower() and sent.kind == kind:
                return sent.code
        return None


# Identity Toolkit error codes, see
# https://firebase.google.com/docs/reference/rest/auth#section-error-format
_REST_ERROR_KINDS = {
    "EMAIL_EXISTS": ErrorKind.ACCOUNT_EXISTS,
    "EMAIL_NOT_FOUND": ErrorKind.USER_NOT_FOUND,
    "USER_NOT_FOUND": ErrorKind.USER_NOT_FOUND,
    "INVALID_PASSWORD": ErrorKind.WRONG_PASSWORD,
    "INVALID_LOGIN_CREDENTIALS": ErrorKind.INVALID_CREDENTIALS,
    "USER_DISABLED": ErrorKind.PERMISSION_DENIED,
    "TOO_MANY_ATTEMPTS_TRY_LATER": ErrorKind.RATE_LIMITED,
    "INVALID_EMAIL": ErrorKind.INVALID_EMAIL,
    "MISSING_EMAIL": ErrorKind.INVALID_EMAIL,
    "WEAK_PASSWORD": ErrorKind.WEAK_PASSWORD,
    "INVALID_OOB_CODE": ErrorKind.INVALID_CODE,
    "EXPIRED_OOB_CODE": ErrorKind.INVALID_CODE,
    "INVALID_ID_TOKEN": ErrorKind.AUTH_EXPIRED,
    "TOKEN_EXPIRED": ErrorKind.AUTH_EXPIRED,
    "USER_TOKEN_EXPIRED": ErrorKind.AUTH_EXPIRED,
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": ErrorKind.AUTH_EXPIRED,
}


def classify_rest_error(message: str) -> ErrorKind:
    # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters".
    code = message.split(":", 1)[0].strip()
    return _REST_ERROR_KINDS.get(code, ErrorKind.UNKNOWN)


def _classify_admin_error(error: firebase_exceptions.FirebaseError) -> ErrorKind:
    if isinstance(error, admin_auth.UserNotFoundError):
        return ErrorKind.USER_NOT_FOUND
    if isinstance(error, (admin_auth.InvalidIdTokenError, firebase_exceptions.UnauthenticatedError)):
        return ErrorKind.AUTH_EXPIRED
    if isinstance(error, firebase_exceptions.UnavailableError):
        return ErrorKind.UNAVAILABLE
    if isinstance(error, firebase_exceptions.DeadlineExceededError):
        return ErrorKind.TIMEOUT
    if isinstance(error, firebase_exceptions.PermissionDeniedError):
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.UNKNOWN


@dataclass
class FirebaseIdentityClient:
    """
    Firebase Authentication client.

    Password and email-code flows go through the Identity Toolkit REST API
    (the same endpoints the web SDK calls); token verification, sign-out
    (refresh-token revocation) and account deletion use the Admin SDK.
    """

    api_key: str
    base_url: str = "https://identitytoolkit.googleapis.com/v1"
    timeout: float = 20.0
    app: object = None
    session: requests.Session = field(default_factory=requests.Session)

    def _post(self, endpoint: str, payload: dict) -> dict:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            response = self.session.post(
                url, params={"key": self.api_key}, json=payload, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise TimeBankError(
                ErrorKind.TIMEOUT, "The sign-in service took too long to respond."
            ) from e
        except requests.RequestException as e:
            raise TimeBankError(ErrorKind.NETWORK, f"Network request failed: {e}") from e

        if response.ok:
            return response.json()

        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            message = f"HTTP {response.status_code}"
        kind = classify_rest_error(message)
        logger.info("Identity Toolkit %s failed: %s", endpoint, message)
        raise TimeBankError(kind, message)

    def _admin_call(self, action: str, call):
        try:
            return call()
        except firebase_exceptions.FirebaseError as e:
            kind = _classify_admin_error(e)
            logger.warning("Firebase Auth %s failed (%s): %s", action, kind.value, e)
            raise TimeBankError(kind, str(e)) from e

    def create_account(self, email: str, password: str) -> AuthUser:
        data = self._post(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        return AuthUser(
            uid=data["localId"],
            email=data.get("email", email),
            id_token=data.get("idToken"),
        )

    def update_profile(self, user: AuthUser, *, display_name: str) -> AuthUser:
        self._post(
            "update",
            {"idToken": user.id_token, "displayName": display_name, "returnSecureToken": False},
        )
        return replace(user, display_name=display_name)

    def sign_in(self, email: str, password: str) -> AuthUser:
        data = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        # The sign-in response does not carry the verified flag.
        return self.lookup(data["idToken"])

    def sign_out(self, user: AuthUser) -> None:
        self._admin_call(
            "sign-out", lambda: admin_auth.revoke_refresh_tokens(user.uid, app=self.app)
        )

    def lookup(self, id_token: str) -> AuthUser:
        def _lookup():
            claims = admin_auth.verify_id_token(id_token, app=self.app, check_revoked=True)
            return admin_auth.get_user(claims["uid"], app=self.app)

        record = self._admin_call("token verification", _lookup)
        return AuthUser(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            photo_url=record.photo_url,
            email_verified=bool(record.email_verified),
            id_token=id_token,
        )

    def send_verification_email(self, user: AuthUser, redirect_url: str) -> None:
        self._post(
            "sendOobCode",
            {
                "requestType": "VERIFY_EMAIL",
                "idToken": user.id_token,
                "continueUrl": redirect_url,
                "canHandleCodeInApp": False,
            },
        )

    def send_password_reset_email(self, email: str) -> None:
        self._post("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    def apply_verification_code(self, code: str) -> AuthUser:
        data = self._post("update", {"oobCode": code})
        return AuthUser(
            uid=data.get("localId", ""),
            email=data.get("email"),
            email_verified=True,
        )

    def delete_account(self, user: AuthUser) -> None:
        self._admin_call("account deletion", lambda: admin_auth.delete_user(user.uid, app=self.app))
