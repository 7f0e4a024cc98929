import unittest

from fastapi.testclient import TestClient

from backend.accounts import AccountService
from backend.app import create_app
from backend.dependencies import get_accounts, get_data_access
from backend.identity import InMemoryIdentityClient
from backend.tests.fakes import FlakyStore, make_service


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.store = FlakyStore()
        self.identity = InMemoryIdentityClient()
        self.data = make_service(self.store)
        self.accounts = AccountService(self.identity, self.data, "http://localhost:3000")

        app = create_app()
        app.dependency_overrides[get_data_access] = lambda: self.data
        app.dependency_overrides[get_accounts] = lambda: self.accounts
        self.client = TestClient(app)

    def sign_up_and_in(self, email="alice@example.com", name="Alice"):
        response = self.client.post(
            "/api/auth/signup",
            json={
                "email": email,
                "password": "secret1",
                "confirm_password": "secret1",
                "display_name": name,
            },
        )
        self.assertEqual(response.status_code, 201)
        code = self.identity.latest_code(email)
        self.assertEqual(
            self.client.post("/api/auth/verify-email", json={"code": code}).status_code, 200
        )
        response = self.client.post(
            "/api/auth/signin", json={"email": email, "password": "secret1"}
        )
        self.assertEqual(response.status_code, 200)
        return response.json()

    def auth(self, user):
        return {"Authorization": f"Bearer {user['id_token']}"}

    def create_service(self, user, **fields):
        payload = {
            "title": "Guitar lessons",
            "description": "Beginner guitar lessons, chords and strumming patterns.",
            "category": "education",
            "hours_required": 2,
        }
        payload.update(fields)
        return self.client.post("/api/services", json=payload, headers=self.auth(user))

    def test_signup_requires_verification_before_signin(self):
        response = self.client.post(
            "/api/auth/signup",
            json={
                "email": "bob@example.com",
                "password": "secret1",
                "confirm_password": "secret1",
                "display_name": "Bob",
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["verification_sent"])
        self.assertIsNone(response.json()["user"]["id_token"])

        response = self.client.post(
            "/api/auth/signin", json={"email": "bob@example.com", "password": "secret1"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["kind"], "email-not-verified")

    def test_signup_validation_error(self):
        response = self.client.post(
            "/api/auth/signup",
            json={
                "email": "bob@example.com",
                "password": "secret1",
                "confirm_password": "secret2",
                "display_name": "Bob",
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Passwords do not match")

    def test_me_requires_token(self):
        response = self.client.get("/api/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["kind"], "unauthenticated")

    def test_create_and_list_services(self):
        alice = self.sign_up_and_in()
        created = self.create_service(alice)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["provider_id"], alice["uid"])
        self.assertEqual(created.json()["status"], "available")

        listed = self.client.get("/api/services").json()["services"]
        self.assertEqual([s["id"] for s in listed], [created.json()["id"]])
        self.assertEqual(
            self.client.get("/api/services", params={"category": "cooking"}).json()["services"],
            [],
        )
        profile = self.client.get(f"/api/users/{alice['uid']}").json()
        self.assertEqual(profile["services_offered"], 1)
        self.assertEqual(profile["time_credits"], 10)

    def test_service_validation_message(self):
        alice = self.sign_up_and_in()
        response = self.create_service(alice, hours_required=0.25)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Minimum 0.5 hours")
        self.assertEqual(response.json()["field"], "hours_required")

    def test_service_status_cannot_be_patched(self):
        alice = self.sign_up_and_in()
        service_id = self.create_service(alice).json()["id"]

        response = self.client.patch(
            f"/api/services/{service_id}",
            json={"status": "completed"},
            headers=self.auth(alice),
        )
        self.assertEqual(response.status_code, 422)
        response = self.client.patch(
            f"/api/services/{service_id}",
            json={"title": "Bass lessons"},
            headers=self.auth(alice),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "available")

    def test_offline_service_creation(self):
        alice = self.sign_up_and_in()
        self.data.probe.network.online = False

        response = self.create_service(alice)
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["id"].startswith("offline_"))
        self.assertTrue(response.json()["created_offline"])
        offline = self.client.get("/api/services/offline").json()["services"]
        self.assertEqual(len(offline), 1)

    def test_request_complete_and_review(self):
        alice = self.sign_up_and_in()
        bob = self.sign_up_and_in("bob@example.com", "Bob")
        service_id = self.create_service(bob).json()["id"]

        request = self.client.post(
            "/api/requests",
            json={"service_id": service_id, "message": "Saturday?"},
            headers=self.auth(alice),
        )
        self.assertEqual(request.status_code, 201)
        request_id = request.json()["id"]

        response = self.client.patch(
            f"/api/requests/{request_id}",
            json={"status": "accepted"},
            headers=self.auth(alice),
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.patch(
            f"/api/requests/{request_id}",
            json={"status": "accepted"},
            headers=self.auth(bob),
        )
        self.assertEqual(response.json()["status"], "accepted")

        response = self.client.post(
            f"/api/requests/{request_id}/complete", headers=self.auth(alice)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "completed")
        self.assertEqual(
            self.client.get(f"/api/users/{bob['uid']}").json()["time_credits"], 12
        )
        self.assertEqual(
            self.client.get(f"/api/users/{alice['uid']}").json()["time_credits"], 8
        )

        review = self.client.post(
            "/api/reviews",
            json={"service_id": service_id, "rating": 5, "comment": "Great"},
            headers=self.auth(alice),
        )
        self.assertEqual(review.status_code, 201)
        reviews = self.client.get(f"/api/users/{bob['uid']}/reviews").json()["reviews"]
        self.assertEqual([r["rating"] for r in reviews], [5])

        mine = self.client.get(
            f"/api/users/{alice['uid']}/requests", headers=self.auth(alice)
        ).json()["requests"]
        self.assertEqual([r["role"] for r in mine], ["requester"])
        response = self.client.get(
            f"/api/users/{alice['uid']}/requests", headers=self.auth(bob)
        )
        self.assertEqual(response.status_code, 403)

    def test_unknown_user_is_404(self):
        response = self.client.get("/api/users/ghost")
        self.assertEqual(response.status_code, 404)

    def test_connectivity_report(self):
        self.assertEqual(
            self.client.get("/api/connectivity").json(),
            {"network_online": True, "database_reachable": True},
        )
        self.data.probe.network.online = False
        self.assertEqual(
            self.client.get("/api/connectivity").json(),
            {"network_online": False, "database_reachable": False},
        )


if __name__ == "__main__":
    unittest.main()
