"""Tests for the operation -> requirement registry and its enforcement."""

from collections.abc import Callable

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from app.auth.guard import PUBLIC, AccessGuard, admin_only, can_read, owner_or_admin, require_roles
from app.auth.policy import AccessPolicy, access_policy
from app.main import app


class TestRegistry:
    def test_register_and_lookup(self) -> None:
        policy = AccessPolicy(AccessGuard())
        policy.register("reports.read", can_read("reports"))
        assert policy.requirement_for("reports.read") == can_read("reports")

    def test_same_requirement_can_be_registered_twice(self) -> None:
        policy = AccessPolicy(AccessGuard())
        policy.register("reports.read", can_read("reports"))
        policy.register("reports.read", can_read("reports"))
        assert len(policy.requirements) == 1

    def test_conflicting_registration_rejected(self) -> None:
        policy = AccessPolicy(AccessGuard())
        policy.register("reports.read", can_read("reports"))
        with pytest.raises(ValueError, match="reports.read"):
            policy.register("reports.read", require_roles("admin"))

    def test_unknown_operation(self) -> None:
        with pytest.raises(KeyError, match="nope"):
            AccessPolicy(AccessGuard()).requirement_for("nope")

    def test_requirements_is_a_copy(self) -> None:
        policy = AccessPolicy(AccessGuard())
        policy.register("a", PUBLIC)
        snapshot = policy.requirements
        policy.register("b", PUBLIC)
        assert "b" not in snapshot


class TestApplicationPolicy:
    def test_every_api_route_is_registered(self) -> None:
        registered = access_policy.requirements
        for route in app.routes:
            if not isinstance(route, APIRoute) or route.path in ("/", "/healthz"):
                continue
            assert route.name in registered, route.path

    @pytest.mark.parametrize(
        ("operation", "expected"),
        [
            ("auth.login", PUBLIC),
            ("roles.list", can_read("roles")),
            ("roles.create", admin_only()),
            ("permissions.delete", admin_only()),
            ("users.get", owner_or_admin()),
            ("users.delete", admin_only()),
        ],
    )
    def test_declared_requirements(self, operation: str, expected: object) -> None:
        assert access_policy.requirement_for(operation) == expected


class TestPublicRoutes:
    def test_public_route_never_reads_the_token(self) -> None:
        policy = AccessPolicy(AccessGuard())
        router = APIRouter()

        async def ping() -> dict[str, str]:
            return {"status": "ok"}

        policy.add_route(router, "/ping", ping, ["GET"], operation="ping", requirement=PUBLIC)
        small = FastAPI()
        small.include_router(router)

        resp = TestClient(small).get("/ping", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestEnforcement:
    def test_missing_token_is_401(self, client: TestClient, seeded: dict[str, int]) -> None:
        resp = client.get("/roles")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Authentication required"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token_is_401(self, client: TestClient, seeded: dict[str, int]) -> None:
        resp = client.get("/roles", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"

    def test_insufficient_role_is_403(
        self, client: TestClient, auth_headers: Callable[[str], dict[str, str]]
    ) -> None:
        resp = client.post("/roles", json={"name": "auditor"}, headers=auth_headers("viewer"))
        assert resp.status_code == 403
        body = resp.json()
        assert body["success"] is False
        assert body["statusCode"] == 403
        assert body["path"] == "/roles"
        assert body["method"] == "POST"

    def test_owner_can_read_self_but_not_others(
        self, client: TestClient, seeded: dict[str, int], auth_headers: Callable[[str], dict[str, str]]
    ) -> None:
        headers = auth_headers("viewer")
        assert client.get(f"/users/{seeded['viewer']}", headers=headers).status_code == 200
        resp = client.get(f"/users/{seeded['editor']}", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["message"] == "You can only access your own resources"

    def test_admin_reads_any_user(
        self, client: TestClient, seeded: dict[str, int], auth_headers: Callable[[str], dict[str, str]]
    ) -> None:
        resp = client.get(f"/users/{seeded['viewer']}", headers=auth_headers("admin"))
        assert resp.status_code == 200
        assert resp.json()["username"] == "viewer1"
