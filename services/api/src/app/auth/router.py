"""Authentication HTTP endpoints, a class-based router delegating to AuthService."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentIdentity, get_jwt_service
from app.auth.guard import PUBLIC, AccessRequirement
from app.auth.jwt import JWTService
from app.auth.policy import AccessPolicy, access_policy
from app.auth.schemas import IdentityResponse, JWTTokenResponse, LoginRequest, RefreshTokenRequest, TokenPairResponse
from app.auth.service import AuthService
from app.dependencies import db_manager
from app.settings import AppSettings, get_settings
from shared.crypto import PasswordHasher

logger = logging.getLogger(__name__)


def get_auth_service(
    settings: Annotated[AppSettings, Depends(get_settings)],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
) -> AuthService:
    """FastAPI dependency that provides an AuthService instance."""
    return AuthService(jwt_service, PasswordHasher(rounds=settings.BCRYPT_ROUNDS))


class AuthRouter:
    """Class-based router for login, token refresh and the caller's identity."""

    def __init__(self, policy: AccessPolicy) -> None:
        self.router = APIRouter()
        policy.add_route(self.router, "/login", self.login, ["POST"], operation="auth.login", requirement=PUBLIC)
        policy.add_route(self.router, "/refresh", self.refresh, ["POST"], operation="auth.refresh", requirement=PUBLIC)
        # Any authenticated caller; the identity dependency enforces the bearer token.
        policy.add_route(self.router, "/me", self.me, ["GET"], operation="auth.me", requirement=AccessRequirement())

    async def login(
        self,
        body: LoginRequest,
        service: Annotated[AuthService, Depends(get_auth_service)],
        session: Annotated[AsyncSession, Depends(db_manager.dependency)],
    ) -> TokenPairResponse:
        """Exchange an email or username plus password for an access/refresh token pair."""
        return await service.login(body.login, body.password, session)

    async def refresh(
        self,
        body: RefreshTokenRequest,
        service: Annotated[AuthService, Depends(get_auth_service)],
        session: Annotated[AsyncSession, Depends(db_manager.dependency)],
    ) -> JWTTokenResponse:
        """Issue a fresh access token for a valid refresh token."""
        return await service.refresh(body.refresh_token, session)

    async def me(self, identity: CurrentIdentity) -> IdentityResponse:
        """Return the authenticated caller with roles and permissions."""
        return IdentityResponse(
            id=identity.id,
            email=identity.email,
            username=identity.username,
            roles=list(identity.roles),
            permissions=list(identity.permissions),
        )


_instance = AuthRouter(access_policy)
router = _instance.router
