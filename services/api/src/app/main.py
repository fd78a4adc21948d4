"""Main FastAPI application for the Access Control API."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.auth.router import router as auth_router
from app.constants import APP_DESCRIPTION, APP_TITLE, APP_VERSION, Routes, ServiceName
from app.dependencies import db_manager
from app.exception_handlers import register_exception_handlers
from app.logging import configure_logging
from app.middleware import (
    RateLimitMiddleware,
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
)
from app.rbac.router import permissions_router, roles_router
from app.rbac.seed_data import DEFAULT_DATASET
from app.rbac.seeder import AdminAccount, RBACSeeder
from app.settings import get_settings
from app.users.router import users_router
from shared.crypto import PasswordHasher

logger = logging.getLogger(__name__)


class AccessControlApp:
    """Application container that wires middleware, routers and exception handlers."""

    app: FastAPI

    def __init__(self) -> None:
        configure_logging(ServiceName.API, get_settings().LOG_LEVEL)
        self.app = FastAPI(
            title=APP_TITLE,
            description=APP_DESCRIPTION,
            version=APP_VERSION,
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._setup_routers()
        register_exception_handlers(self.app)

    @staticmethod
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Application lifespan: optionally seed RBAC data, dispose the engine on shutdown."""
        settings = get_settings()
        if settings.SEED_ON_STARTUP:
            seeder = RBACSeeder(PasswordHasher(rounds=settings.BCRYPT_ROUNDS))
            admin = AdminAccount(
                email=settings.SEED_ADMIN_EMAIL,
                username=settings.SEED_ADMIN_USERNAME,
                password=settings.SEED_ADMIN_PASSWORD,
            )
            async with db_manager.session() as session:
                await seeder.seed(DEFAULT_DATASET, session, admin=admin)
        try:
            yield
        finally:
            await db_manager.dispose()

    def _setup_middleware(self) -> None:
        settings = get_settings()

        # Rate limiting (innermost; sees the request ID assigned below)
        self.app.add_middleware(RateLimitMiddleware, auth_limit=settings.RATE_LIMIT_AUTH_PER_MINUTE)

        # Security headers
        self.app.add_middleware(SecurityHeadersMiddleware)

        # Request-ID (generates/propagates X-Request-ID)
        self.app.add_middleware(RequestIDMiddleware)

        # CORS
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routers(self) -> None:
        self.app.include_router(auth_router, prefix=Routes.AUTH.prefix, tags=[Routes.AUTH.tag])
        self.app.include_router(roles_router, prefix=Routes.ROLES.prefix, tags=[Routes.ROLES.tag])
        self.app.include_router(permissions_router, prefix=Routes.PERMISSIONS.prefix, tags=[Routes.PERMISSIONS.tag])
        self.app.include_router(users_router, prefix=Routes.USERS.prefix, tags=[Routes.USERS.tag])

        @self.app.get(Routes.HEALTH)
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "healthy"}

        @self.app.get("/")
        async def root() -> dict[str, str]:
            """Root endpoint."""
            return {"message": APP_TITLE, "version": APP_VERSION}


_application = AccessControlApp()
app: FastAPI = _application.app
