import unittest

from google.api_core import exceptions as google_exceptions

from backend.db import (
    DeleteWrite,
    Guard,
    Increment,
    InMemoryDocumentStore,
    UpdateWrite,
    classify_google_error,
)
from backend.errors import ErrorKind, TimeBankError


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_create_get_and_increment(self):
        doc_id = self.store.create("users", {"timeCredits": 10})
        self.store.update("users", doc_id, {"timeCredits": Increment(2.5)})
        self.assertEqual(self.store.get("users", doc_id).data["timeCredits"], 12.5)

    def test_increment_on_missing_field_starts_at_zero(self):
        self.store.set("users", "u1", {"email": "a@example.com"})
        self.store.update("users", "u1", {"servicesOffered": Increment(1)})
        self.assertEqual(self.store.get("users", "u1").data["servicesOffered"], 1)

    def test_set_merge(self):
        self.store.set("users", "u1", {"email": "a@example.com", "timeCredits": 10})
        self.store.set("users", "u1", {"emailVerified": True}, merge=True)
        data = self.store.get("users", "u1").data
        self.assertEqual(data["timeCredits"], 10)
        self.assertTrue(data["emailVerified"])

        self.store.set("users", "u1", {"emailVerified": False})
        self.assertEqual(self.store.get("users", "u1").data, {"emailVerified": False})

    def test_update_missing_document(self):
        with self.assertRaises(TimeBankError) as ctx:
            self.store.update("users", "ghost", {"a": 1})
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_returned_data_is_a_copy(self):
        self.store.set("services", "s1", {"photos": ["a.png"]})
        self.store.get("services", "s1").data["photos"].append("b.png")
        self.assertEqual(self.store.get("services", "s1").data["photos"], ["a.png"])

    def test_query_filters_orders_and_limits(self):
        self.store.set("services", "a", {"status": "available", "createdAt": "2026-01-01"})
        self.store.set("services", "b", {"status": "available", "createdAt": "2026-01-03"})
        self.store.set("services", "c", {"status": "booked", "createdAt": "2026-01-02"})
        self.store.set("services", "d", {"status": "available"})

        results = self.store.query(
            "services",
            filters=[("status", "available")],
            order_by="createdAt",
            descending=True,
            limit=5,
        )
        self.assertEqual([snap.id for snap in results], ["b", "a"])
        self.assertEqual(len(self.store.query("services", limit=1)), 1)

    def test_commit_if_applies_all_writes_when_guard_holds(self):
        self.store.set("serviceRequests", "r1", {"status": "accepted"})
        self.store.set("users", "u1", {"timeCredits": 10})
        guard = Guard("serviceRequests", "r1", "status", frozenset({"pending", "accepted"}))
        writes = [
            UpdateWrite("serviceRequests", "r1", {"status": "completed"}),
            UpdateWrite("users", "u1", {"timeCredits": Increment(-2)}),
        ]

        self.assertTrue(self.store.commit_if(guard, writes))
        self.assertFalse(self.store.commit_if(guard, writes))
        self.assertEqual(self.store.get("users", "u1").data["timeCredits"], 8)

    def test_commit_if_writes_nothing_when_a_target_is_missing(self):
        self.store.set("serviceRequests", "r1", {"status": "pending"})
        guard = Guard("serviceRequests", "r1", "status", frozenset({"pending"}))
        writes = [
            UpdateWrite("serviceRequests", "r1", {"status": "completed"}),
            UpdateWrite("users", "ghost", {"timeCredits": Increment(1)}),
        ]
        with self.assertRaises(TimeBankError):
            self.store.commit_if(guard, writes)
        self.assertEqual(self.store.get("serviceRequests", "r1").data["status"], "pending")

    def test_commit_if_deletes_only_when_guard_holds(self):
        self.store.set("services", "s1", {"status": "booked"})
        guard = Guard("services", "s1", "status", frozenset({"available"}))
        writes = [DeleteWrite("services", "s1")]

        self.assertFalse(self.store.commit_if(guard, writes))
        self.assertIsNotNone(self.store.get("services", "s1"))

        self.store.update("services", "s1", {"status": "available"})
        self.assertTrue(self.store.commit_if(guard, writes))
        self.assertIsNone(self.store.get("services", "s1"))


class ClassifyGoogleErrorTests(unittest.TestCase):
    def test_connectivity_errors(self):
        self.assertEqual(
            classify_google_error(google_exceptions.DeadlineExceeded("slow")), ErrorKind.TIMEOUT
        )
        self.assertEqual(
            classify_google_error(google_exceptions.ServiceUnavailable("down")),
            ErrorKind.UNAVAILABLE,
        )
        self.assertEqual(
            classify_google_error(google_exceptions.FailedPrecondition("index")),
            ErrorKind.FAILED_PRECONDITION,
        )
        self.assertEqual(classify_google_error(ConnectionError("reset")), ErrorKind.NETWORK)

    def test_other_errors(self):
        self.assertEqual(
            classify_google_error(google_exceptions.PermissionDenied("rules")),
            ErrorKind.PERMISSION_DENIED,
        )
        self.assertEqual(
            classify_google_error(google_exceptions.Unauthenticated("token")),
            ErrorKind.AUTH_EXPIRED,
        )
        self.assertEqual(classify_google_error(ValueError("x")), ErrorKind.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
