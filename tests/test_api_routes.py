"""
Tests for the Lockbox REST API.

Runs the real app on an in-memory user store through FastAPI's TestClient;
entering the client runs the lifespan, which opens and closes the store.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from lockbox.api.main import create_app
from lockbox.db import UserStore
from lockbox.exceptions import StorageError


@pytest.fixture
def app(cipher):
    return create_app(store=UserStore(":memory:"), cipher=cipher)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def _register_and_login(client, username="alice", password="password123"):
    assert client.post("/api/users", json={"username": username, "password": password}).status_code == 201
    resp = client.post("/api/session", json={"username": username, "password": password})
    assert resp.status_code == 200
    return {"X-Session-Token": resp.json()["token"]}


@pytest.fixture
def auth(client):
    return _register_and_login(client)


class TestLifecycle:

    def test_health_reports_open_store(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["store_open"] is True

    def test_store_closed_on_shutdown(self, app):
        with TestClient(app):
            assert app.state.store.is_open
        assert not app.state.store.is_open

    def test_storage_failure_maps_to_503(self, client, auth):
        with patch.object(client.app.state.store, "get_by_id", side_effect=StorageError("disk gone")):
            resp = client.get("/api/banks", headers=auth)
        assert resp.status_code == 503
        assert resp.json() == {"error": "Storage unavailable.", "code": "storage_error"}


class TestUsers:

    def test_register(self, client):
        resp = client.post("/api/users", json={"username": "alice", "password": "password123"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] == "User 'alice' created successfully! You can now log in."
        assert "masterPassword" not in body["user"]

    def test_register_duplicate_ignoring_case(self, client, auth):
        resp = client.post("/api/users", json={"username": "Alice", "password": "password123"})
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "username_taken"

    def test_register_invalid(self, client):
        resp = client.post("/api/users", json={"username": "al", "password": "password123"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"][0]["field"] == "username"

    def test_login_wrong_password(self, client, auth):
        resp = client.post("/api/session", json={"username": "alice", "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.json()["detail"]["error"] == "Invalid username or password."

    def test_login_returns_token_and_user(self, client, auth):
        resp = client.post("/api/session", json={"username": "ALICE", "password": "password123"})
        body = resp.json()
        assert body["success"] == "Login successful."
        assert body["token"]
        assert body["user"]["username"] == "alice"

    def test_logout_revokes_token(self, client, auth):
        assert client.delete("/api/session", headers=auth).status_code == 200
        assert client.get("/api/banks", headers=auth).status_code == 401

    def test_change_password(self, client, auth):
        other = {"X-Session-Token": client.post(
            "/api/session", json={"username": "alice", "password": "password123"},
        ).json()["token"]}

        resp = client.post("/api/users/me/password", headers=auth, json={
            "currentPassword": "password123",
            "newPassword": "new-password",
            "confirmPassword": "new-password",
        })
        assert resp.status_code == 200
        assert resp.json() == {"success": "Master password updated successfully."}

        # Calling session survives, other sessions are dropped
        assert client.get("/api/banks", headers=auth).status_code == 200
        assert client.get("/api/banks", headers=other).status_code == 401
        assert client.post(
            "/api/session", json={"username": "alice", "password": "new-password"},
        ).status_code == 200

    def test_change_password_wrong_current(self, client, auth):
        resp = client.post("/api/users/me/password", headers=auth, json={
            "currentPassword": "not-it",
            "newPassword": "new-password",
            "confirmPassword": "new-password",
        })
        assert resp.status_code == 401
        assert resp.json()["detail"]["code"] == "incorrect_password"

    def test_change_password_mismatch(self, client, auth):
        resp = client.post("/api/users/me/password", headers=auth, json={
            "currentPassword": "password123",
            "newPassword": "new-password",
            "confirmPassword": "new-passwort",
        })
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == [
            {"field": "confirmPassword", "message": "New passwords don't match"},
        ]


class TestAuth:

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/banks"),
        ("post", "/api/banks"),
        ("put", "/api/banks/b1"),
        ("delete", "/api/banks/b1"),
        ("get", "/api/banks/b1/reveal"),
        ("delete", "/api/session"),
        ("post", "/api/users/me/password"),
    ])
    def test_requires_session_token(self, client, method, path):
        kwargs = {"json": {}} if method in ("post", "put") else {}
        assert getattr(client, method)(path, **kwargs).status_code == 401

    def test_unknown_token(self, client):
        assert client.get("/api/banks", headers={"X-Session-Token": "forged"}).status_code == 401

    def test_users_only_see_their_own_banks(self, client, auth, bank_form):
        bank_id = client.post("/api/banks", headers=auth, json=bank_form).json()["bankId"]
        bob = _register_and_login(client, "bob", "password456")

        assert client.get("/api/banks", headers=bob).json() == {"banks": []}
        assert client.get(f"/api/banks/{bank_id}/reveal", headers=bob).status_code == 404


class TestBanks:

    def test_crud_flow(self, client, auth, bank_form):
        resp = client.post("/api/banks", headers=auth, json=bank_form)
        assert resp.status_code == 201
        assert resp.json()["success"] == "Bank added successfully."
        bank_id = resp.json()["bankId"]

        assert client.get("/api/banks", headers=auth).json() == {"banks": [
            {"id": bank_id, "bankName": "First National", "accountNumber": "1234567890"},
        ]}

        resp = client.put(f"/api/banks/{bank_id}", headers=auth, json={**bank_form, "atmPin": ""})
        assert resp.json() == {"success": "Bank updated successfully."}

        revealed = client.get(f"/api/banks/{bank_id}/reveal", headers=auth).json()["bank"]
        assert revealed["atmPin"] == "1234"
        assert revealed["netBankingPassword"] == "nb-secret-1"

        assert client.delete(f"/api/banks/{bank_id}", headers=auth).json() == \
            {"success": "Bank deleted successfully."}
        assert client.get("/api/banks", headers=auth).json() == {"banks": []}

    def test_invalid_form(self, client, auth, bank_form):
        resp = client.post("/api/banks", headers=auth, json={**bank_form, "accountNumber": "123"})
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["code"] == "validation_error"
        assert detail["error"].startswith("Invalid data provided.")
        assert detail["errors"][0]["field"] == "accountNumber"

    def test_non_object_body(self, client, auth):
        resp = client.post("/api/banks", headers=auth, json=["not", "a", "form"])
        assert resp.status_code in (400, 422)

    def test_unknown_bank(self, client, auth, bank_form):
        assert client.put("/api/banks/missing", headers=auth, json=bank_form).status_code == 404
        assert client.delete("/api/banks/missing", headers=auth).status_code == 404
        resp = client.get("/api/banks/missing/reveal", headers=auth)
        assert resp.status_code == 404
        assert resp.json()["detail"] == {"error": "Bank not found.", "code": "bank_not_found"}
