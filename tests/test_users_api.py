"""HTTP tests for the admin user-management routes and the role guard."""

import unittest
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from support import add_user, auth_headers, expired_token_for, make_app, make_client, token_for

ADMIN_DENIED = {"msg": "Access denied. Admin privileges required."}


class UsersApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = make_app()
        self.client = make_client(self.app)
        self.admin_id = add_user(self.app, name="Admin", email="admin@x.com", password="adminpw", role="admin")
        self.admin_headers = auth_headers(token_for(self.app, self.admin_id, "admin"))
        self.user_id = add_user(self.app, name="Ann", email="ann@x.com", password="secret1")
        self.user_headers = auth_headers(token_for(self.app, self.user_id, "user"))

    def tearDown(self) -> None:
        self.client.close()
        self.app.state.engine.dispose()


class TestListUsers(UsersApiTestCase):
    def test_admin_lists_users_without_hashes(self) -> None:
        response = self.client.get("/api/users", headers=self.admin_headers)
        self.assertEqual(response.status_code, 200)
        users = response.json()
        self.assertEqual([u["id"] for u in users], [self.admin_id, self.user_id])
        for u in users:
            self.assertEqual(set(u), {"id", "name", "email", "role"})

    def test_pagination(self) -> None:
        response = self.client.get("/api/users?skip=1&limit=1", headers=self.admin_headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual([u["id"] for u in response.json()], [self.user_id])

    def test_bad_pagination_is_400(self) -> None:
        response = self.client.get("/api/users?limit=0", headers=self.admin_headers)
        self.assertEqual(response.status_code, 400)

    def test_no_token_is_401(self) -> None:
        response = self.client.get("/api/users")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"msg": "No token, authorization denied"})

    def test_user_role_is_403(self) -> None:
        response = self.client.get("/api/users", headers=self.user_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), ADMIN_DENIED)

    def test_expired_admin_token_is_401_not_403(self) -> None:
        headers = auth_headers(expired_token_for(self.admin_id, "admin"))
        response = self.client.get("/api/users", headers=headers)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"msg": "Token is not valid"})

    def test_token_role_claim_is_not_trusted(self) -> None:
        # Correctly signed token claiming admin for a user-role account.
        forged = auth_headers(token_for(self.app, self.user_id, "admin"))
        response = self.client.get("/api/users", headers=forged)
        self.assertEqual(response.status_code, 403)

    def test_deleted_admin_is_403(self) -> None:
        self.client.delete(f"/api/users/{self.admin_id}", headers=self.admin_headers)
        response = self.client.get("/api/users", headers=self.admin_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), ADMIN_DENIED)

    @patch("app.services.accounts.get_user")
    def test_guard_storage_failure_is_500(self, mock_get_user: MagicMock) -> None:
        mock_get_user.side_effect = OperationalError("SELECT", {}, Exception("Database error"))
        response = self.client.get("/api/users", headers=self.admin_headers)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"msg": "Server error"})


class TestUpdateUser(UsersApiTestCase):
    def test_partial_update(self) -> None:
        response = self.client.put(
            f"/api/users/{self.user_id}", json={"name": "Ann B."}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"id": self.user_id, "name": "Ann B.", "email": "ann@x.com", "role": "user"},
        )

    def test_promotion_takes_effect_for_existing_token(self) -> None:
        self.assertEqual(self.client.get("/api/users", headers=self.user_headers).status_code, 403)
        response = self.client.put(
            f"/api/users/{self.user_id}", json={"role": "admin"}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "admin")
        # Old token still says role "user"; the guard re-reads storage.
        self.assertEqual(self.client.get("/api/users", headers=self.user_headers).status_code, 200)
        login = self.client.post("/api/auth/login", json={"email": "ann@x.com", "password": "secret1"})
        new_headers = auth_headers(login.json()["token"])
        self.assertEqual(self.client.get("/api/users", headers=new_headers).status_code, 200)

    def test_demotion_revokes_admin_access(self) -> None:
        self.client.put(f"/api/users/{self.admin_id}", json={"role": "user"}, headers=self.admin_headers)
        response = self.client.get("/api/users", headers=self.admin_headers)
        self.assertEqual(response.status_code, 403)

    def test_invalid_role_is_400(self) -> None:
        response = self.client.put(
            f"/api/users/{self.user_id}", json={"role": "superuser"}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 400)

    def test_email_conflict_is_400(self) -> None:
        response = self.client.put(
            f"/api/users/{self.user_id}", json={"email": "admin@x.com"}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"msg": "User already exists"})

    def test_missing_user_is_404(self) -> None:
        response = self.client.put("/api/users/9999", json={"name": "Ghost"}, headers=self.admin_headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"msg": "User not found"})

    def test_non_admin_is_403(self) -> None:
        response = self.client.put(
            f"/api/users/{self.user_id}", json={"role": "admin"}, headers=self.user_headers
        )
        self.assertEqual(response.status_code, 403)


class TestDeleteUser(UsersApiTestCase):
    def test_delete_then_delete_again(self) -> None:
        first = self.client.delete(f"/api/users/{self.user_id}", headers=self.admin_headers)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), {"msg": "User removed"})
        for _ in range(2):
            again = self.client.delete(f"/api/users/{self.user_id}", headers=self.admin_headers)
            self.assertEqual(again.status_code, 404)
            self.assertEqual(again.json(), {"msg": "User not found"})

    def test_deleted_user_token_no_longer_resolves(self) -> None:
        self.client.delete(f"/api/users/{self.user_id}", headers=self.admin_headers)
        response = self.client.get("/api/auth/user", headers=self.user_headers)
        self.assertEqual(response.status_code, 404)

    def test_non_admin_is_403(self) -> None:
        response = self.client.delete(f"/api/users/{self.admin_id}", headers=self.user_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), ADMIN_DENIED)

    def test_non_integer_id_is_400(self) -> None:
        response = self.client.delete("/api/users/abc", headers=self.admin_headers)
        self.assertEqual(response.status_code, 400)


class TestOutOfRangeIds(UsersApiTestCase):
    """Ids past the 64-bit column range cannot exist and read as not found."""

    HUGE_ID = 99999999999999999999

    def test_delete_huge_id_is_404(self) -> None:
        response = self.client.delete(f"/api/users/{self.HUGE_ID}", headers=self.admin_headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"msg": "User not found"})

    def test_put_huge_id_is_404(self) -> None:
        response = self.client.put(
            f"/api/users/{self.HUGE_ID}", json={"name": "Ghost"}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"msg": "User not found"})

    def test_zero_and_negative_ids_are_404(self) -> None:
        for user_id in (0, -1):
            response = self.client.delete(f"/api/users/{user_id}", headers=self.admin_headers)
            self.assertEqual(response.status_code, 404)
