"""
Account flows built on the identity provider and the user records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backend.errors import ErrorKind, TimeBankError
from backend.identity import AuthUser, IdentityClient
from backend.services import TimeBankService
from backend.validation import SigninForm, SignupForm, validate_form

logger = logging.getLogger(__name__)

VERIFY_EMAIL_PATH = "/auth/verify-email"


@dataclass
class SignupResult:
    user: AuthUser
    verification_sent: bool


class AccountService:
    def __init__(self, identity: IdentityClient, data: TimeBankService, app_origin: str):
        self.identity = identity
        self.data = data
        self.app_origin = app_origin.rstrip("/")

    @property
    def verification_redirect(self) -> str:
        return f"{self.app_origin}{VERIFY_EMAIL_PATH}"

    def signup(
        self, email: str, password: str, confirm_password: str, display_name: str
    ) -> SignupResult:
        """
        Registers a member, creates their user record with the initial credit
        grant, mails a verification link and signs them out again.

        The form is validated before the identity provider is contacted.
        """
        form = validate_form(
            SignupForm,
            email=email,
            password=password,
            confirm_password=confirm_password,
            display_name=display_name,
        )
        user = self.identity.create_account(form.email.strip(), form.password)
        user = self.identity.update_profile(user, display_name=form.display_name.strip())
        self.data.create_user_record(TimeBankService.default_user_record(user))

        verification_sent = True
        try:
            self.identity.send_verification_email(user, self.verification_redirect)
        except TimeBankError as e:
            # The account exists either way; the member can ask for a resend.
            logger.error("Error sending verification email to %s: %s", user.email, e)
            verification_sent = False

        self.identity.sign_out(user)
        logger.info("Created account %s", user.uid)
        return SignupResult(user=user, verification_sent=verification_sent)

    def signin(self, email: str, password: str) -> AuthUser:
        """
        Signs a member in. Unverified accounts are signed straight back out.

        Raises:
            TimeBankError: EMAIL_NOT_VERIFIED for unverified accounts, or the
                identity kind reported by the provider.
        """
        form = validate_form(SigninForm, email=email, password=password)
        user = self.identity.sign_in(form.email.strip(), form.password)
        if not user.email_verified:
            self.identity.sign_out(user)
            raise TimeBankError(
                ErrorKind.EMAIL_NOT_VERIFIED,
                "Email not verified. Please check your email for verification link.",
            )
        try:
            self.data.update_email_verification_status(user.uid, True)
        except TimeBankError as e:
            logger.warning("Could not sync verification status for %s: %s", user.uid, e)
        return user

    def signout(self, user: AuthUser) -> None:
        self.identity.sign_out(user)

    def current_user(self, id_token: Optional[str]) -> AuthUser:
        if not id_token:
            raise TimeBankError(
                ErrorKind.UNAUTHENTICATED, "You must be logged in to continue."
            )
        return self.identity.lookup(id_token)

    def send_verification_email(
        self, user: AuthUser, redirect_url: Optional[str] = None
    ) -> None:
        if user.email_verified:
            raise TimeBankError(ErrorKind.INVALID_STATE, "Email is already verified")
        self.identity.send_verification_email(user, redirect_url or self.verification_redirect)

    def resend_verification(self, email: str, password: str) -> str:
        """
        Mails a new verification link to a member who cannot sign in yet.

        When the provider rate-limits verification mail, a password reset
        email is sent instead. Returns which email went out:
        "verification" or "password_reset".
        """
        form = validate_form(SigninForm, email=email, password=password)
        user = self.identity.sign_in(form.email.strip(), form.password)
        try:
            if user.email_verified:
                raise TimeBankError(
                    ErrorKind.INVALID_STATE,
                    "Your email is already verified. Please sign in.",
                )
            self.identity.send_verification_email(user, self.verification_redirect)
            return "verification"
        except TimeBankError as e:
            if e.kind != ErrorKind.RATE_LIMITED:
                raise
            logger.info("Verification mail rate limited for %s, sending reset", user.email)
            self.identity.send_password_reset_email(form.email.strip())
            return "password_reset"
        finally:
            self.identity.sign_out(user)

    def send_password_reset_email(self, email: str) -> None:
        if not email or not email.strip():
            raise TimeBankError(
                ErrorKind.VALIDATION, "Please enter your email address", field="email"
            )
        self.identity.send_password_reset_email(email.strip())

    def apply_verification_code(self, code: str) -> AuthUser:
        if not code:
            raise TimeBankError(ErrorKind.INVALID_CODE, "Invalid verification link")
        user = self.identity.apply_verification_code(code)
        try:
            self.data.update_email_verification_status(user.uid, True)
        except TimeBankError as e:
            logger.warning("Could not sync verification status for %s: %s", user.uid, e)
        return user

    def check_email_verified(self, user: AuthUser) -> bool:
        """Re-reads the verified flag from the provider; False when that fails."""
        if not user.id_token:
            return False
        try:
            refreshed = self.identity.lookup(user.id_token)
        except TimeBankError as e:
            logger.error("Error checking email verification: %s", e)
            return False
        if refreshed.email_verified:
            try:
                self.data.update_email_verification_status(refreshed.uid, True)
            except TimeBankError as e:
                logger.warning("Could not sync verification status for %s: %s", refreshed.uid, e)
        return refreshed.email_verified

    def delete_account(self, user: AuthUser) -> None:
        """Deletes the member's user record, then their identity."""
        self.data.delete_user_record(user.uid)
        self.identity.delete_account(user)
        logger.info("Deleted account %s", user.uid)
