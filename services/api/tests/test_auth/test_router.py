"""Tests for the login, refresh and identity endpoints."""

from collections.abc import Callable

from fastapi.testclient import TestClient

from app.auth.jwt import JWTService

def _login(client: TestClient, login: str, password: str) -> dict:
    resp = client.post("/auth/login", json={"login": login, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_login_issues_token_pair_usable_for_me(
    client: TestClient, seeded: dict[str, int], admin_password: str
) -> None:
    tokens = _login(client, "admin", admin_password)
    assert tokens["token_type"] == "Bearer"
    assert tokens["expires_in"] == 15 * 60
    assert tokens["access_token"] != tokens["refresh_token"]

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert resp.status_code == 200
    me = resp.json()
    assert me["id"] == seeded["admin"]
    assert me["roles"] == ["admin"]
    assert "users:delete" in me["permissions"]


def test_login_by_email(client: TestClient, seeded: dict[str, int]) -> None:
    tokens = _login(client, "editor1@example.com", "password123")
    assert tokens["access_token"]


def test_login_wrong_password(client: TestClient, seeded: dict[str, int]) -> None:
    resp = client.post("/auth/login", json={"login": "admin", "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


def test_login_unknown_account_same_message(client: TestClient, seeded: dict[str, int]) -> None:
    resp = client.post("/auth/login", json={"login": "ghost", "password": "password123"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


def test_login_validation_error_envelope(client: TestClient) -> None:
    resp = client.post("/auth/login", json={"login": "admin"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert "password" in body["message"]


def test_refresh_issues_new_access_token(
    client: TestClient, seeded: dict[str, int], jwt_service: JWTService
) -> None:
    refresh_token = jwt_service.create_refresh_token(seeded["viewer"])
    resp = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert resp.status_code == 200
    access = resp.json()["access_token"]
    assert jwt_service.decode_access_token(access) == seeded["viewer"]


def test_refresh_rejects_access_token(
    client: TestClient, seeded: dict[str, int], jwt_service: JWTService
) -> None:
    resp = client.post("/auth/refresh", json={"refresh_token": jwt_service.create_access_token(seeded["viewer"])})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid or expired token"


def test_me_requires_token(client: TestClient) -> None:
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_me_rejects_refresh_token(
    client: TestClient, seeded: dict[str, int], jwt_service: JWTService
) -> None:
    token = jwt_service.create_refresh_token(seeded["viewer"])
    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_me_reports_viewer_scope(client: TestClient, auth_headers: Callable[[str], dict[str, str]]) -> None:
    resp = client.get("/auth/me", headers=auth_headers("viewer"))
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["viewer"]
    assert sorted(resp.json()["permissions"]) == ["posts:read", "users:read"]
