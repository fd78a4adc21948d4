"""FastAPI dependencies for bearer-authenticated endpoints."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.identity import AuthenticatedIdentity, IdentityResolver
from app.auth.jwt import JWTService
from app.dependencies import db_manager
from app.exceptions import UnauthenticatedError
from app.settings import AppSettings, get_settings

_bearer = HTTPBearer(auto_error=False)


def get_jwt_service(settings: Annotated[AppSettings, Depends(get_settings)]) -> JWTService:
    """FastAPI dependency that provides a JWTService instance."""
    return JWTService(settings)


async def get_optional_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
    session: Annotated[AsyncSession, Depends(db_manager.dependency)],
) -> AuthenticatedIdentity | None:
    """Return the caller's identity, or ``None`` when no bearer token was sent.

    A token that is present but invalid still raises UnauthenticatedError.
    """
    if credentials is None:
        return None
    return await IdentityResolver(jwt_service).resolve(credentials.credentials, session)


async def get_current_identity(
    identity: Annotated[AuthenticatedIdentity | None, Depends(get_optional_identity)],
) -> AuthenticatedIdentity:
    """Require an authenticated caller."""
    if identity is None:
        raise UnauthenticatedError("Authentication required")
    return identity


# Type aliases for Annotated dependencies
CurrentIdentity = Annotated[AuthenticatedIdentity, Depends(get_current_identity)]
