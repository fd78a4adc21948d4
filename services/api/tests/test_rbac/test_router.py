"""Tests for the role and permission endpoints."""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

Headers = Callable[[str], dict[str, str]]


@pytest.fixture
def admin(auth_headers: Headers) -> dict[str, str]:
    return auth_headers("admin")


def _permission_id(client: TestClient, headers: dict[str, str], name: str) -> int:
    resp = client.get("/permissions", headers=headers)
    assert resp.status_code == 200
    return next(p["id"] for p in resp.json() if p["name"] == name)


# --- Roles ---


def test_list_roles_newest_first(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.get("/roles", headers=admin)
    assert resp.status_code == 200
    names = [r["name"] for r in resp.json()]
    assert set(names) == {"admin", "manager", "editor", "user", "viewer"}
    admin_role = next(r for r in resp.json() if r["name"] == "admin")
    assert admin_role["is_protected"] is True
    assert len(admin_role["permissions"]) == 25


def test_list_roles_requires_roles_read(client: TestClient, auth_headers: Headers) -> None:
    resp = client.get("/roles", headers=auth_headers("manager"))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Missing permission: roles:read"


def test_get_missing_role(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.get("/roles/9999", headers=admin)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Role not found"


def test_create_role_duplicate_is_conflict(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post("/roles", json={"name": "editor"}, headers=admin)
    assert resp.status_code == 409


def test_protected_role_cannot_be_changed(
    client: TestClient, admin: dict[str, str], seeded: dict[str, int]
) -> None:
    role_id = seeded["role:admin"]
    assert client.patch(f"/roles/{role_id}", json={"name": "root"}, headers=admin).status_code == 403
    assert client.delete(f"/roles/{role_id}", headers=admin).status_code == 403
    resp = client.post(f"/roles/{role_id}/permissions", json={"permission_ids": [1]}, headers=admin)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Cannot modify the protected 'admin' role"


def test_delete_assigned_role_is_conflict(
    client: TestClient, admin: dict[str, str], seeded: dict[str, int]
) -> None:
    resp = client.delete(f"/roles/{seeded['role:viewer']}", headers=admin)
    assert resp.status_code == 409


def test_role_permissions_request_needs_ids(
    client: TestClient, admin: dict[str, str], seeded: dict[str, int]
) -> None:
    resp = client.post(f"/roles/{seeded['role:editor']}/permissions", json={"permission_ids": []}, headers=admin)
    assert resp.status_code == 422


def test_auditor_lifecycle(client: TestClient, admin: dict[str, str], seeded: dict[str, int]) -> None:
    """Create a role, grant it, observe the new access, then revoke and delete it."""
    reports_read = _permission_id(client, admin, "reports:read")
    viewer_id = seeded["viewer"]

    resp = client.post(
        "/roles",
        json={"name": "auditor", "description": "Reads reports", "permission_ids": [reports_read, 99999]},
        headers=admin,
    )
    assert resp.status_code == 201
    role = resp.json()
    assert [p["name"] for p in role["permissions"]] == ["reports:read"]

    check = f"/users/{viewer_id}/check-permission/reports/read"
    assert client.post(check, headers=admin).json()["granted"] is False

    resp = client.post("/roles/assign", json={"user_id": viewer_id, "role_id": role["id"]}, headers=admin)
    assert resp.status_code == 201
    assert resp.json()["is_active"] is True
    assert client.post(check, headers=admin).json() == {
        "user_id": viewer_id,
        "subject": "reports:read",
        "granted": True,
    }

    resp = client.post("/roles/assign", json={"user_id": viewer_id, "role_id": role["id"]}, headers=admin)
    assert resp.status_code == 409

    assert client.delete(f"/roles/{role['id']}", headers=admin).status_code == 409
    assert client.delete(f"/roles/{role['id']}/users/{viewer_id}", headers=admin).status_code == 200
    assert client.post(check, headers=admin).json()["granted"] is False
    assert client.delete(f"/roles/{role['id']}", headers=admin).status_code == 200
    assert client.get(f"/roles/{role['id']}", headers=admin).status_code == 404


def test_update_and_remove_permissions(
    client: TestClient, admin: dict[str, str], seeded: dict[str, int]
) -> None:
    resp = client.post("/roles", json={"name": "helper"}, headers=admin)
    role_id = resp.json()["id"]
    posts_read = _permission_id(client, admin, "posts:read")
    posts_create = _permission_id(client, admin, "posts:create")

    resp = client.patch(
        f"/roles/{role_id}",
        json={"description": "Helps", "permission_ids": [posts_read, posts_create]},
        headers=admin,
    )
    assert resp.status_code == 200
    assert resp.json()["description"] == "Helps"
    assert len(resp.json()["permissions"]) == 2

    resp = client.request(
        "DELETE", f"/roles/{role_id}/permissions", json={"permission_ids": [posts_create]}, headers=admin
    )
    assert resp.status_code == 200
    assert [p["name"] for p in resp.json()["permissions"]] == ["posts:read"]


# --- Permissions ---


def test_permission_crud(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post(
        "/permissions", json={"resource": "invoices", "action": "approve", "description": "Approve"}, headers=admin
    )
    assert resp.status_code == 201
    permission = resp.json()
    assert permission["name"] == "invoices:approve"

    assert client.post(
        "/permissions", json={"resource": "invoices", "action": "approve"}, headers=admin
    ).status_code == 409

    resp = client.patch(f"/permissions/{permission['id']}", json={"action": "reject"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["name"] == "invoices:reject"
    assert resp.json()["description"] == "Approve"

    assert client.delete(f"/permissions/{permission['id']}", headers=admin).status_code == 200
    assert client.get(f"/permissions/{permission['id']}", headers=admin).status_code == 404


def test_permission_with_colon_rejected(client: TestClient, admin: dict[str, str]) -> None:
    resp = client.post("/permissions", json={"resource": "a:b", "action": "read"}, headers=admin)
    assert resp.status_code == 422


def test_permission_mutation_requires_admin(client: TestClient, auth_headers: Headers) -> None:
    resp = client.post("/permissions", json={"resource": "x", "action": "y"}, headers=auth_headers("manager"))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Required roles: admin"
