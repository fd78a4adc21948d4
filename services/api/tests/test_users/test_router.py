"""Tests for the user management endpoints."""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

Headers = Callable[[str], dict[str, str]]


@pytest.fixture
def admin(auth_headers: Headers) -> dict[str, str]:
    return auth_headers("admin")


def test_create_user_with_default_role(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post(
        "/users",
        json={"email": "new@example.com", "username": "newbie", "password": "password123"},
        headers=admin,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "active"
    assert body["roles"] == ["user"]
    assert "password" not in body and "password_hash" not in body


def test_create_user_validation(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post(
        "/users",
        json={"email": "not-an-email", "username": "ab", "password": "short"},
        headers=admin,
    )
    assert resp.status_code == 422
    message = resp.json()["message"]
    assert "email" in message and "username" in message and "password" in message


def test_create_user_conflict(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post(
        "/users",
        json={"email": "editor1@example.com", "username": "fresh", "password": "password123"},
        headers=admin,
    )
    assert resp.status_code == 409


def test_create_user_unknown_role(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post(
        "/users",
        json={"email": "x@example.com", "username": "xavier", "password": "password123", "roles": ["wizard"]},
        headers=admin,
    )
    assert resp.status_code == 404
    assert resp.json()["message"] == "Roles not found: wizard"


def test_create_user_requires_permission(client: TestClient, auth_headers: Headers) -> None:
    resp = client.post(
        "/users",
        json={"email": "x@example.com", "username": "xavier", "password": "password123"},
        headers=auth_headers("manager"),
    )
    assert resp.status_code == 403
    assert resp.json()["message"] == "Missing permission: users:create"


def test_list_users_filters(client: TestClient, auth_headers: Headers) -> None:
    headers = auth_headers("manager")
    resp = client.get("/users", params={"limit": 2}, headers=headers)
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 5
    assert page["limit"] == 2
    assert len(page["items"]) == 2

    resp = client.get("/users", params={"role": "editor"}, headers=headers)
    assert [u["username"] for u in resp.json()["items"]] == ["editor1"]

    resp = client.get("/users", params={"search": "VIEW"}, headers=headers)
    assert [u["username"] for u in resp.json()["items"]] == ["viewer1"]


def test_list_users_limit_bounds(client: TestClient, admin: dict[str, str]) -> None:
    assert client.get("/users", params={"limit": 0}, headers=admin).status_code == 422
    assert client.get("/users", params={"limit": 201}, headers=admin).status_code == 422


def test_stats(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.get("/users/stats", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["total"] == 5
    assert resp.json()["verified"] == 1


def test_ban_and_unban(client: TestClient, auth_headers: Headers, seeded: dict[str, int]) -> None:
    headers = auth_headers("manager")
    viewer_id = seeded["viewer"]

    resp = client.post(f"/users/{viewer_id}/ban", json={"reason": "spam"}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "banned"
    assert body["banned_reason"] == "spam"
    assert body["banned_by"] == seeded["manager"]

    # A banned account's token stops working.
    assert client.get("/auth/me", headers=auth_headers("viewer")).status_code == 401

    resp = client.post(f"/users/{viewer_id}/unban", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    assert resp.json()["banned_at"] is None


def test_disable_enable_and_status(client: TestClient, auth_headers: Headers, seeded: dict[str, int]) -> None:
    headers = auth_headers("manager")
    editor_id = seeded["editor"]

    assert client.post(f"/users/{editor_id}/disable", headers=headers).json()["status"] == "inactive"
    assert client.post(f"/users/{editor_id}/enable", headers=headers).json()["status"] == "active"
    resp = client.patch(f"/users/{editor_id}/status", json={"status": "suspended"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"


def test_admin_cannot_be_banned_or_deleted(
    client: TestClient, admin: dict[str, str], seeded: dict[str, int]
) -> None:
    resp = client.post(f"/users/{seeded['admin']}/ban", headers=admin)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Cannot disable or ban admin users"
    resp = client.delete(f"/users/{seeded['admin']}", headers=admin)
    assert resp.status_code == 403


def test_delete_user(client: TestClient, admin: dict[str, str], seeded: dict[str, int]) -> None:
    resp = client.delete(f"/users/{seeded['viewer']}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert client.get(f"/users/{seeded['viewer']}", headers=admin).status_code == 404


def test_get_missing_user(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.get("/users/99999", headers=admin)
    assert resp.status_code == 404
    assert resp.json()["message"] == "User not found"


def test_roles_and_permissions_views(client: TestClient, admin: dict[str, str], seeded: dict[str, int]) -> None:
    editor_id = seeded["editor"]

    resp = client.get(f"/users/{editor_id}/roles", headers=admin)
    assert resp.status_code == 200
    assert [r["name"] for r in resp.json()["roles"]] == ["editor"]

    resp = client.get(f"/users/{editor_id}/permissions", headers=admin)
    assert resp.json()["permissions"] == ["posts:create", "posts:read", "posts:update", "users:read"]

    resp = client.post(f"/users/{editor_id}/check-role/editor", headers=admin)
    assert resp.json() == {"user_id": editor_id, "subject": "editor", "granted": True}
    assert client.post(f"/users/{editor_id}/check-role/admin", headers=admin).json()["granted"] is False


def test_toggle_binding(client: TestClient, admin: dict[str, str], seeded: dict[str, int]) -> None:
    editor_id = seeded["editor"]
    role_id = seeded["role:editor"]

    resp = client.patch(f"/users/{editor_id}/roles/{role_id}", json={"is_active": False}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    assert client.get(f"/users/{editor_id}/permissions", headers=admin).json()["permissions"] == []
    assert client.get(f"/users/{editor_id}/roles", headers=admin).json()["roles"] == []

    resp = client.patch(f"/users/{editor_id}/roles/{seeded['role:viewer']}", json={"is_active": True}, headers=admin)
    assert resp.status_code == 404
