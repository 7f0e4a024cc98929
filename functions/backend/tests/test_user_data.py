import unittest

from backend.errors import ErrorKind, TimeBankError
from backend.tests.fakes import FakeClock, FlakyStore, make_service, member, seed_user
from shared.constants import INITIAL_TIME_CREDITS


class UserDataTests(unittest.TestCase):
    def setUp(self):
        self.store = FlakyStore()
        self.clock = FakeClock()
        self.data = make_service(self.store, clock=self.clock)
        seed_user(self.store, "bob", time_credits=14, bio="Plays guitar")

    def test_reads_through_cache(self):
        record = self.data.get_user_data("bob")
        self.assertEqual(record.time_credits, 14)
        self.assertEqual(record.bio, "Plays guitar")
        self.data.get_user_data("bob")
        self.assertEqual(self.store.calls["get"], 1)

        self.clock.advance(301)
        self.data.get_user_data("bob")
        self.assertEqual(self.store.calls["get"], 2)

    def test_stale_record_on_connectivity_failure(self):
        self.data.get_user_data("bob")
        self.clock.advance(600)
        self.store.fail(TimeBankError(ErrorKind.NETWORK, "down"))
        self.assertEqual(self.data.get_user_data("bob").time_credits, 14)

    def test_defaults_for_signed_in_member_when_unreachable(self):
        self.store.fail(TimeBankError(ErrorKind.TIMEOUT, "slow"))
        alice = member("alice")
        record = self.data.get_user_data("alice", current_user=alice)
        self.assertEqual(record.uid, "alice")
        self.assertEqual(record.time_credits, INITIAL_TIME_CREDITS)
        self.assertEqual(record.display_name, "Alice")

        self.assertIsNone(self.data.get_user_data("carol", current_user=alice))

    def test_missing_record_created_for_signed_in_member(self):
        record = self.data.get_user_data("alice", current_user=member("alice"))
        self.assertEqual(record.time_credits, INITIAL_TIME_CREDITS)
        stored = self.store.get("users", "alice").data
        self.assertEqual(stored["timeCredits"], INITIAL_TIME_CREDITS)
        self.assertTrue(stored["emailVerified"])
        self.assertIn("createdAt", stored)

    def test_missing_record_for_someone_else(self):
        self.assertIsNone(self.data.get_user_data("ghost"))
        self.assertIsNone(self.store.get("users", "ghost"))

    def test_other_errors_propagate(self):
        self.store.fail(TimeBankError(ErrorKind.PERMISSION_DENIED, "rules"))
        with self.assertRaises(TimeBankError) as ctx:
            self.data.get_user_data("bob")
        self.assertEqual(ctx.exception.kind, ErrorKind.PERMISSION_DENIED)

    def test_verification_flag_and_deletion(self):
        self.data.get_user_data("bob")
        self.data.update_email_verification_status("bob", True)
        record = self.data.get_user_data("bob")
        self.assertTrue(record.email_verified)
        self.assertEqual(record.time_credits, 14)

        self.data.delete_user_record("bob")
        self.assertIsNone(self.data.get_user_data("bob"))


if __name__ == "__main__":
    unittest.main()
