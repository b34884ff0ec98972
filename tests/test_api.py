"""End-to-end tests for the user directory HTTP API."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from userbase.api import create_app
from userbase.config import Settings
from userbase.database import Database


class UserApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "database.db"
        self.database = Database(db_path)
        self.database.initialize()
        self.database.seed_sample_users()
        self.app = create_app(database=self.database)

    def tearDown(self) -> None:
        self.database.close()
        self._tempdir.cleanup()

    def _create(self, client: TestClient, **fields: object):
        return client.post("/api/users", json=fields)

    def test_list_returns_seeded_users_newest_first(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/api/users")

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(
            [user["name"] for user in payload],
            ["Alice Johnson", "Bob Wilson", "Jane Smith", "John Doe"],
        )
        self.assertEqual(
            set(payload[0].keys()),
            {"id", "name", "email", "age", "gender", "bio", "created_at"},
        )
        bob = payload[1]
        self.assertIsNone(bob["age"])
        self.assertIsNone(bob["bio"])

    def test_create_then_fetch(self) -> None:
        with TestClient(self.app) as client:
            created = self._create(
                client,
                name="Grace Hopper",
                email="grace@example.com",
                age=85,
                gender="Female",
                bio="Compiler pioneer",
            )
            self.assertEqual(created.status_code, 201, created.text)
            body = created.json()
            self.assertEqual(body["message"], "User created successfully")
            self.assertEqual(body["name"], "Grace Hopper")
            self.assertEqual(body["email"], "grace@example.com")

            fetched = client.get(f"/api/users/{body['id']}")
            self.assertEqual(fetched.status_code, 200, fetched.text)
            user = fetched.json()
            self.assertEqual(user["age"], 85)
            self.assertEqual(user["gender"], "Female")
            self.assertEqual(user["bio"], "Compiler pioneer")

            listing = client.get("/api/users").json()
            self.assertEqual(listing[0]["id"], body["id"])

    def test_create_validation_errors(self) -> None:
        with TestClient(self.app) as client:
            missing = self._create(client, name="", email="x@example.com")
            self.assertEqual(missing.status_code, 400)
            self.assertEqual(missing.json(), {"error": "Name and email are required"})

            no_body = client.post("/api/users")
            self.assertEqual(no_body.status_code, 400)
            self.assertEqual(no_body.json(), {"error": "Name and email are required"})

            bad_email = self._create(client, name="X", email="user@nodot")
            self.assertEqual(bad_email.status_code, 400)
            self.assertEqual(bad_email.json(), {"error": "Invalid email format"})

            bad_age = self._create(client, name="X", email="x@example.com", age="old")
            self.assertEqual(bad_age.status_code, 400)
            self.assertEqual(bad_age.json(), {"error": "Invalid request body"})

        self.assertEqual(self.database.count_users(), 4)

    def test_create_duplicate_email(self) -> None:
        with TestClient(self.app) as client:
            response = self._create(client, name="Another John", email="john@example.com")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json(), {"error": "Email already exists"})

            different_case = self._create(client, name="Loud John", email="JOHN@example.com")
            self.assertEqual(different_case.status_code, 201, different_case.text)

    def test_get_missing_user(self) -> None:
        with TestClient(self.app) as client:
            for path in ("/api/users/9999", "/api/users/abc"):
                response = client.get(path)
                self.assertEqual(response.status_code, 404)
                self.assertEqual(response.json(), {"error": "User not found"})

    def test_update_user(self) -> None:
        john = self.database.search_users("john@example.com")[0]
        with TestClient(self.app) as client:
            response = client.put(
                f"/api/users/{john.id}",
                json={"name": "Johnny Doe", "email": "johnny@example.com", "age": 26},
            )
            self.assertEqual(response.status_code, 200, response.text)
            self.assertEqual(response.json(), {"id": john.id, "message": "User updated successfully"})

            user = client.get(f"/api/users/{john.id}").json()

        self.assertEqual(user["name"], "Johnny Doe")
        self.assertEqual(user["age"], 26)
        self.assertIsNone(user["gender"])
        self.assertIsNone(user["bio"])

    def test_update_does_not_validate_email_shape(self) -> None:
        # Update intentionally skips the checks create performs.
        jane = self.database.search_users("jane@example.com")[0]
        with TestClient(self.app) as client:
            response = client.put(f"/api/users/{jane.id}", json={"name": "Jane", "email": "nope"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(self.database.get_user(jane.id).email, "nope")

    def test_update_with_mistyped_body_is_rejected(self) -> None:
        jane = self.database.search_users("jane@example.com")[0]
        with TestClient(self.app) as client:
            existing = client.put(f"/api/users/{jane.id}", json={"name": "Jane", "email": "j@example.com", "age": "old"})
            self.assertEqual(existing.status_code, 400)
            self.assertEqual(existing.json(), {"error": "Invalid request body"})

            # Body validation runs before the id is looked up.
            missing = client.put("/api/users/9999", json={"age": "old"})
            self.assertEqual(missing.status_code, 400)
            self.assertEqual(missing.json(), {"error": "Invalid request body"})

        self.assertEqual(self.database.get_user(jane.id).email, "jane@example.com")

    def test_ids_beyond_integer_range_are_not_found(self) -> None:
        huge = "99999999999999999999"
        with TestClient(self.app) as client:
            for method, body in (("GET", None), ("PUT", {"name": "X", "email": "x@example.com"}), ("DELETE", None)):
                response = client.request(method, f"/api/users/{huge}", json=body)
                self.assertEqual(response.status_code, 404, method)
                self.assertEqual(response.json(), {"error": "User not found"})

    def test_age_beyond_integer_range_is_a_storage_failure(self) -> None:
        jane = self.database.search_users("jane@example.com")[0]
        with TestClient(self.app) as client:
            created = self._create(client, name="Old", email="old@example.com", age=10**20)
            self.assertEqual(created.status_code, 500)
            self.assertEqual(created.json(), {"error": "Failed to create user"})

            updated = client.put(
                f"/api/users/{jane.id}", json={"name": "Jane", "email": "jane@example.com", "age": 10**20}
            )
            self.assertEqual(updated.status_code, 500)
            self.assertEqual(updated.json(), {"error": "Failed to update user"})

        self.assertEqual(self.database.count_users(), 4)
        self.assertEqual(self.database.get_user(jane.id).age, 30)

    def test_update_errors(self) -> None:
        jane = self.database.search_users("jane@example.com")[0]
        with TestClient(self.app) as client:
            missing = client.put("/api/users/9999", json={"name": "Ghost", "email": "ghost@example.com"})
            self.assertEqual(missing.status_code, 404)
            self.assertEqual(missing.json(), {"error": "User not found"})

            duplicate = client.put(
                f"/api/users/{jane.id}", json={"name": "Jane", "email": "bob@example.com"}
            )
            self.assertEqual(duplicate.status_code, 400)
            self.assertEqual(duplicate.json(), {"error": "Email already exists"})

            nameless = client.put(f"/api/users/{jane.id}", json={})
            self.assertEqual(nameless.status_code, 500)
            self.assertEqual(nameless.json(), {"error": "Failed to update user"})

        self.assertEqual(self.database.get_user(jane.id).email, "jane@example.com")

    def test_delete_user_twice(self) -> None:
        bob = self.database.search_users("bob@example.com")[0]
        with TestClient(self.app) as client:
            first = client.delete(f"/api/users/{bob.id}")
            self.assertEqual(first.status_code, 200, first.text)
            self.assertEqual(first.json(), {"message": "User deleted successfully"})

            second = client.delete(f"/api/users/{bob.id}")
            self.assertEqual(second.status_code, 404)
            self.assertEqual(second.json(), {"error": "User not found"})

        self.assertEqual(self.database.count_users(), 3)

    def test_search(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/api/users/search/oe")
            self.assertEqual(response.status_code, 200, response.text)
            self.assertEqual([user["name"] for user in response.json()], ["John Doe"])

            by_bio = client.get("/api/users/search/SCIENTIST")
            self.assertEqual([user["name"] for user in by_bio.json()], ["Jane Smith"])

            everyone = client.get("/api/users/search/example.com")
            self.assertEqual(len(everyone.json()), 4)

    def test_stats_over_seeded_data(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/api/stats")

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["totalUsers"], 4)
        self.assertEqual(payload["averageAge"], 28)
        self.assertCountEqual(
            payload["genderDistribution"],
            [{"gender": "Male", "count": 2}, {"gender": "Female", "count": 2}],
        )

    def test_unknown_routes(self) -> None:
        with TestClient(self.app) as client:
            for method, path in (("GET", "/api/nothing"), ("GET", "/"), ("PATCH", "/api/users/1")):
                response = client.request(method, path)
                self.assertEqual(response.status_code, 404, f"{method} {path}")
                self.assertEqual(response.json(), {"error": "Endpoint not found"})

    def test_storage_failures_are_generic(self) -> None:
        with TestClient(self.app) as client:
            self.database.close()

            users = client.get("/api/users")
            self.assertEqual(users.status_code, 500)
            self.assertEqual(users.json(), {"error": "Failed to fetch users"})

            search = client.get("/api/users/search/a")
            self.assertEqual(search.json(), {"error": "Search failed"})

            stats = client.get("/api/stats")
            self.assertEqual(stats.status_code, 500)
            self.assertEqual(stats.json(), {"error": "Failed to fetch statistics"})

            created = self._create(client, name="X", email="x@example.com")
            self.assertEqual(created.status_code, 500)
            self.assertEqual(created.json(), {"error": "Failed to create user"})


class OwnedDatabaseTests(unittest.TestCase):
    def test_app_opens_seeds_and_closes_its_own_database(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            settings = Settings(database_path=Path(tempdir) / "owned.db")
            app = create_app(settings=settings)
            database = app.state.database

            with TestClient(app) as client:
                response = client.get("/api/stats")
                self.assertEqual(response.json()["totalUsers"], 4)

            self.assertFalse(database.is_open)

    def test_seeding_can_be_disabled(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            settings = Settings(database_path=Path(tempdir) / "empty.db", seed_sample_data=False)
            app = create_app(settings=settings)

            with TestClient(app) as client:
                self.assertEqual(client.get("/api/users").json(), [])
                stats = client.get("/api/stats").json()

            self.assertEqual(stats, {"totalUsers": 0, "averageAge": 0, "genderDistribution": []})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
