"""
GDSC API - Account Management Tests

Tests for /users endpoints, the admin role check, and email verification.

Run with: pytest tests/test_users.py -v
"""

from uuid import UUID, uuid4

import pytest
from sqlmodel import Session

from gdsc_api.auth.models import User
from tests.conftest import (
    ADMIN_PASSWORD,
    USER_PASSWORD,
    auth_headers,
    count_sessions,
    count_users,
    login_user,
    use_refresh_cookie,
)


@pytest.fixture
def member_headers(client, test_user) -> dict:
    session = login_user(client, "member@test.edu", USER_PASSWORD)
    return auth_headers(session["access_token"])


@pytest.fixture
def admin_headers(client, test_admin) -> dict:
    session = login_user(client, "admin@test.edu", ADMIN_PASSWORD)
    return auth_headers(session["access_token"])


# =============================================================================
# PROFILE READ / UPDATE
# =============================================================================

class TestUserProfile:

    def test_get_user(self, client, member_headers, other_user):
        response = client.get(f"/users/{other_user.id}", headers=member_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "other@test.edu"

    def test_get_unknown_user(self, client, member_headers):
        response = client.get(f"/users/{uuid4()}", headers=member_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}

    def test_get_user_bad_id(self, client, member_headers):
        response = client.get("/users/not-a-uuid", headers=member_headers)

        assert response.status_code == 400

    def test_get_user_requires_auth(self, client, test_user):
        response = client.get(f"/users/{test_user.id}")

        assert response.status_code == 401

    def test_update_own_profile(self, client, member_headers, test_user):
        response = client.patch(
            f"/users/{test_user.id}",
            headers=member_headers,
            json={
                "first_name": "Ada",
                "last_name": "Lovelace",
                "bio": "Engines",
                "tags": ["math"],
                "position": 3,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Ada Lovelace"
        assert data["bio"] == "Engines"
        assert data["tags"] == ["math"]
        assert data["position"] == 3

    def test_partial_update_keeps_other_fields(self, client, member_headers, test_user):
        client.patch(f"/users/{test_user.id}", headers=member_headers, json={"bio": "first"})

        response = client.patch(f"/users/{test_user.id}", headers=member_headers, json={"website": "https://a.dev"})

        assert response.json()["bio"] == "first"
        assert response.json()["website"] == "https://a.dev"

    def test_cannot_update_someone_else(self, client, member_headers, other_user):
        response = client.patch(f"/users/{other_user.id}", headers=member_headers, json={"bio": "hacked"})

        assert response.status_code == 403
        assert response.json() == {"error": "Not authorized to modify this user"}

    def test_admin_cannot_update_someone_else(self, client, admin_headers, test_user):
        response = client.patch(f"/users/{test_user.id}", headers=admin_headers, json={"bio": "x"})

        assert response.status_code == 403

    def test_role_is_not_updatable(self, client, member_headers, test_user):
        response = client.patch(f"/users/{test_user.id}", headers=member_headers, json={"role": "ADMIN"})

        assert response.status_code == 200
        assert response.json()["role"] == "USER"


# =============================================================================
# ACCOUNT DELETION
# =============================================================================

class TestDeleteUser:

    def test_delete_own_account_removes_sessions(self, client, test_user, test_engine):
        user_id = test_user.id
        first = login_user(client, "member@test.edu", USER_PASSWORD)
        login_user(client, "member@test.edu", USER_PASSWORD)

        response = client.delete(f"/users/{user_id}", headers=auth_headers(first["access_token"]))

        assert response.status_code == 200
        assert response.json() == {"message": "User deleted successfully"}
        assert count_users(test_engine) == 0
        assert count_sessions(test_engine) == 0

        use_refresh_cookie(client, first["refresh_token"])
        assert client.patch("/auth/refresh").status_code == 401

    def test_cannot_delete_someone_else(self, client, member_headers, other_user, test_engine):
        response = client.delete(f"/users/{other_user.id}", headers=member_headers)

        assert response.status_code == 403
        assert count_users(test_engine) == 2

    def test_delete_twice(self, client, test_user):
        user_id = test_user.id
        headers = auth_headers(login_user(client, "member@test.edu", USER_PASSWORD)["access_token"])
        client.delete(f"/users/{user_id}", headers=headers)

        response = client.delete(f"/users/{user_id}", headers=headers)

        assert response.status_code == 404


# =============================================================================
# ADMIN LISTING
# =============================================================================

class TestAdminListing:

    def test_admin_lists_users(self, client, admin_headers, test_user, other_user):
        response = client.get("/users", headers=admin_headers, params={"page": 1, "limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["limit"] == 2
        assert len(data["users"]) == 2

    def test_member_cannot_list_users(self, client, member_headers):
        response = client.get("/users", headers=member_headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Requires role: ADMIN"}

    def test_listing_requires_auth(self, client):
        assert client.get("/users").status_code == 401

    def test_limit_is_bounded(self, client, admin_headers):
        response = client.get("/users", headers=admin_headers, params={"limit": 1000})

        assert response.status_code == 400


# =============================================================================
# EMAIL VERIFICATION
# =============================================================================

class TestEmailVerification:

    def test_verify_email(self, client, tokens, test_engine):
        registered = client.post("/auth/register", json={"email": "a@x.edu", "password": "Secret123!"}).json()
        token = tokens.issue_verification(registered["id"], "a@x.edu").token

        response = client.get("/auth/verify-email", params={"token": token})

        assert response.status_code == 200
        assert response.json() == {"message": "Email verified successfully"}
        with Session(test_engine) as s:
            assert s.get(User, UUID(registered["id"])).email_verified is True

    def test_verify_email_twice_is_fine(self, client, tokens, test_user):
        token = tokens.issue_verification(test_user.id, "member@test.edu").token

        assert client.get("/auth/verify-email", params={"token": token}).status_code == 200
        assert client.get("/auth/verify-email", params={"token": token}).status_code == 200

    def test_token_for_old_address_rejected(self, client, tokens, test_user):
        token = tokens.issue_verification(test_user.id, "previous@test.edu").token

        response = client.get("/auth/verify-email", params={"token": token})

        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/auth/verify-email")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_access_token_is_not_a_verification_token(self, client, tokens, test_user):
        token = tokens.issue_access(test_user.id, "USER").token

        assert client.get("/auth/verify-email", params={"token": token}).status_code == 401
