import unittest
from unittest.mock import MagicMock, patch

from backend.accounts import AccountService
from backend.errors import ErrorKind, TimeBankError
from backend.identity import InMemoryIdentityClient
from backend.tests.fakes import FlakyStore, make_service


class AccountServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = FlakyStore()
        self.identity = InMemoryIdentityClient()
        self.data = make_service(self.store)
        self.accounts = AccountService(self.identity, self.data, "https://timebank.test/")

    def signup(self, email="alice@example.com", password="secret1"):
        return self.accounts.signup(email, password, password, "Alice")

    def verify(self, email="alice@example.com"):
        return self.accounts.apply_verification_code(self.identity.latest_code(email))

    def test_signup_creates_record_and_sends_verification(self):
        result = self.signup()

        self.assertTrue(result.verification_sent)
        self.assertEqual(result.user.display_name, "Alice")
        record = self.store.get("users", result.user.uid).data
        self.assertEqual(record["timeCredits"], 10)
        self.assertEqual(record["displayName"], "Alice")
        self.assertFalse(record["emailVerified"])
        sent = self.identity.outbox[-1]
        self.assertEqual(sent.kind, "VERIFY_EMAIL")
        self.assertEqual(sent.continue_url, "https://timebank.test/auth/verify-email")
        self.assertEqual(self.identity.sessions, {})

    def test_signup_validation_precedes_remote_calls(self):
        identity = MagicMock()
        accounts = AccountService(identity, self.data, "https://timebank.test")
        cases = [
            (("a@example.com", "secret1", "secret2", "Alice"), "Passwords do not match"),
            (("a@example.com", "abc", "abc", "Alice"), "Password must be at least 6 characters"),
            (("not-an-email", "secret1", "secret1", "Alice"), "Please enter a valid email address."),
            (("a@example.com", "secret1", "secret1", " "), "Display name is required"),
        ]
        for args, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(TimeBankError) as ctx:
                    accounts.signup(*args)
                self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
                self.assertEqual(ctx.exception.message, message)
        identity.create_account.assert_not_called()
        self.assertEqual(sum(self.store.calls.values()), 0)

    def test_mismatch_reported_before_length(self):
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.signup("a@example.com", "abc", "abd", "Alice")
        self.assertEqual(ctx.exception.message, "Passwords do not match")

    def test_duplicate_signup(self):
        self.signup()
        with self.assertRaises(TimeBankError) as ctx:
            self.signup()
        self.assertEqual(ctx.exception.kind, ErrorKind.ACCOUNT_EXISTS)

    def test_signup_survives_verification_mail_failure(self):
        with patch.object(
            self.identity,
            "send_verification_email",
            side_effect=TimeBankError(ErrorKind.RATE_LIMITED, "TOO_MANY_ATTEMPTS_TRY_LATER"),
        ):
            result = self.signup()
        self.assertFalse(result.verification_sent)
        self.assertIsNotNone(self.store.get("users", result.user.uid))

    def test_unverified_signin_is_refused_without_session(self):
        self.signup()
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.signin("alice@example.com", "secret1")
        self.assertEqual(ctx.exception.kind, ErrorKind.EMAIL_NOT_VERIFIED)
        self.assertEqual(self.identity.sessions, {})

    def test_verified_signin_syncs_record(self):
        result = self.signup()
        verified = self.verify()
        self.assertTrue(verified.email_verified)
        self.assertTrue(self.store.get("users", result.user.uid).data["emailVerified"])

        user = self.accounts.signin("alice@example.com", "secret1")
        self.assertTrue(user.email_verified)
        self.assertEqual(self.accounts.current_user(user.id_token).uid, result.user.uid)

        self.accounts.signout(user)
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.current_user(user.id_token)
        self.assertEqual(ctx.exception.kind, ErrorKind.AUTH_EXPIRED)

    def test_wrong_password_and_unknown_email(self):
        self.signup()
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.signin("alice@example.com", "wrong-password")
        self.assertEqual(ctx.exception.kind, ErrorKind.WRONG_PASSWORD)
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.signin("nobody@example.com", "secret1")
        self.assertEqual(ctx.exception.kind, ErrorKind.USER_NOT_FOUND)

    def test_missing_token(self):
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.current_user(None)
        self.assertEqual(ctx.exception.kind, ErrorKind.UNAUTHENTICATED)

    def test_invalid_code(self):
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.apply_verification_code("bogus")
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_CODE)

    def test_resend_verification(self):
        self.signup()
        self.assertEqual(self.accounts.resend_verification("alice@example.com", "secret1"), "verification")
        self.assertEqual(
            [sent.kind for sent in self.identity.outbox], ["VERIFY_EMAIL", "VERIFY_EMAIL"]
        )
        self.assertEqual(self.identity.sessions, {})

    def test_resend_falls_back_to_password_reset_when_rate_limited(self):
        self.signup()
        with patch.object(
            self.identity,
            "send_verification_email",
            side_effect=TimeBankError(ErrorKind.RATE_LIMITED, "TOO_MANY_ATTEMPTS_TRY_LATER"),
        ):
            sent = self.accounts.resend_verification("alice@example.com", "secret1")
        self.assertEqual(sent, "password_reset")
        self.assertEqual(self.identity.outbox[-1].kind, "PASSWORD_RESET")
        self.assertEqual(self.identity.sessions, {})

    def test_resend_for_verified_account(self):
        self.signup()
        self.verify()
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.resend_verification("alice@example.com", "secret1")
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)

    def test_password_reset(self):
        self.signup()
        self.accounts.send_password_reset_email(" alice@example.com ")
        self.assertEqual(self.identity.outbox[-1].kind, "PASSWORD_RESET")
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.send_password_reset_email("")
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    def test_check_email_verified(self):
        self.signup()
        self.verify()
        user = self.accounts.signin("alice@example.com", "secret1")
        self.assertTrue(self.accounts.check_email_verified(user))

        with patch.object(
            self.identity, "lookup", side_effect=TimeBankError(ErrorKind.NETWORK, "down")
        ):
            self.assertFalse(self.accounts.check_email_verified(user))

    def test_delete_account(self):
        result = self.signup()
        self.verify()
        user = self.accounts.signin("alice@example.com", "secret1")
        self.accounts.delete_account(user)

        self.assertIsNone(self.store.get("users", result.user.uid))
        with self.assertRaises(TimeBankError) as ctx:
            self.accounts.signin("alice@example.com", "secret1")
        self.assertEqual(ctx.exception.kind, ErrorKind.USER_NOT_FOUND)


if __name__ == "__main__":
    unittest.main()
