"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Credentials for POST /auth/login; ``login`` is an email or a username."""

    login: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /auth/refresh."""

    refresh_token: str


class TokenPairResponse(BaseModel):
    """Access and refresh tokens issued at login."""

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class JWTTokenResponse(BaseModel):
    """Response for the token refresh endpoint."""

    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class IdentityResponse(BaseModel):
    """The authenticated caller as seen by the access guard."""

    id: int
    email: str
    username: str
    roles: list[str]
    permissions: list[str]
