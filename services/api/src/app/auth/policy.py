"""Operation -> access requirement registry and its FastAPI enforcement.

Routers register each endpoint through :meth:`AccessPolicy.add_route`, which
records the endpoint's :class:`AccessRequirement` under an operation name and
attaches a dependency that enforces it before the endpoint body runs::

    access_policy.add_route(
        router, "/", self.list_roles, ["GET"],
        operation="roles.list", requirement=can_read("roles"),
    )
"""

import logging
from collections.abc import Callable, Coroutine, Mapping
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_optional_identity
from app.auth.guard import AccessGuard, AccessRequirement
from app.auth.identity import AuthenticatedIdentity
from app.dependencies import db_manager
from app.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)


class AccessPolicy:
    """Holds the access requirement of every registered operation."""

    def __init__(self, guard: AccessGuard) -> None:
        self._guard = guard
        self._requirements: dict[str, AccessRequirement] = {}

    @property
    def guard(self) -> AccessGuard:
        return self._guard

    @property
    def requirements(self) -> Mapping[str, AccessRequirement]:
        return dict(self._requirements)

    def register(self, operation: str, requirement: AccessRequirement) -> None:
        existing = self._requirements.get(operation)
        if existing is not None and existing != requirement:
            raise ValueError(f"Operation '{operation}' is already registered with a different requirement")
        self._requirements[operation] = requirement

    def requirement_for(self, operation: str) -> AccessRequirement:
        try:
            return self._requirements[operation]
        except KeyError:
            raise KeyError(f"No access requirement registered for operation '{operation}'") from None

    def enforce(self, operation: str) -> Callable[..., Coroutine[Any, Any, AuthenticatedIdentity | None]]:
        """Return an async dependency enforcing the requirement of *operation*.

        Public operations never touch the Authorization header.
        """
        requirement = self.requirement_for(operation)

        if requirement.is_public:

            async def _public() -> None:
                return None

            return _public

        async def _dependency(
            request: Request,
            identity: Annotated[AuthenticatedIdentity | None, Depends(get_optional_identity)],
            session: Annotated[AsyncSession, Depends(db_manager.dependency)],
        ) -> AuthenticatedIdentity | None:
            await self._guard.check(identity, requirement, session)
            if requirement.owner_param is not None:
                await self._guard.check_owner_or_admin(
                    identity, self._owner_id(request, requirement.owner_param), session
                )
            return identity

        return _dependency

    def add_route(
        self,
        router: APIRouter,
        path: str,
        endpoint: Callable[..., Any],
        methods: list[str],
        *,
        operation: str,
        requirement: AccessRequirement,
        **kwargs: Any,
    ) -> None:
        """Register *requirement* for *operation* and mount the guarded endpoint."""
        self.register(operation, requirement)
        dependencies = [*kwargs.pop("dependencies", []), Depends(self.enforce(operation))]
        router.add_api_route(
            path,
            endpoint,
            methods=methods,
            name=operation,
            dependencies=dependencies,
            **kwargs,
        )

    @staticmethod
    def _owner_id(request: Request, param: str) -> int:
        try:
            return int(request.path_params[param])
        except (KeyError, ValueError) as exc:
            raise ValidationFailedError(f"Invalid path parameter '{param}'") from exc


access_policy = AccessPolicy(AccessGuard())
