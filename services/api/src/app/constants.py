"""Centralized constants for the API service."""

import enum
from dataclasses import dataclass

# --- Service identity ---


class ServiceName(enum.StrEnum):
    """Service names used for logging and identification."""

    API = "api"
    SEEDER = "seeder"


# --- Application metadata ---

APP_TITLE = "Access Control API"
APP_DESCRIPTION = "User management and role-based access control behind JWT authentication"
APP_VERSION = "0.1.0"


# --- Route configuration ---


@dataclass(frozen=True, slots=True)
class _Route:
    """A route prefix paired with its OpenAPI tag."""

    prefix: str
    tag: str


class Routes:
    """API route prefixes and tags."""

    AUTH = _Route("/auth", "auth")
    ROLES = _Route("/roles", "roles")
    PERMISSIONS = _Route("/permissions", "permissions")
    USERS = _Route("/users", "users")
    HEALTH = "/healthz"


# --- Auth ---

# Paths under Routes.AUTH that are rate limited per client IP.
RATE_LIMITED_AUTH_PATHS = ("/auth/login", "/auth/refresh")

# Single message for every identity failure so callers cannot probe accounts.
INVALID_TOKEN_MESSAGE = "Invalid or expired token"
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"

# --- Users ---

DEFAULT_USER_ROLE = "user"
DEFAULT_BAN_REASON = "No reason provided"
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 200
