"""Shared fixtures: in-memory database, test settings and entity factories."""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator, Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.auth.jwt import JWTService
from app.dependencies import db_manager
from app.main import app
from app.middleware import RateLimitMiddleware
from app.rbac.seed_data import DEFAULT_DATASET
from app.rbac.seeder import AdminAccount, RBACSeeder
from app.settings import AppSettings, get_settings
from shared.crypto import PasswordHasher
from shared.db.base import Base
from shared.db.enums import UserStatus
from shared.db.models.rbac import Permission, Role, RolePermission, UserRole
from shared.db.models.user import User

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"

MakeUser = Callable[..., Awaitable[User]]
MakeRole = Callable[..., Awaitable[Role]]
MakePermission = Callable[..., Awaitable[Permission]]
Bind = Callable[..., Awaitable[UserRole]]


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(JWT_SECRET=TEST_JWT_SECRET, BCRYPT_ROUNDS=4, SEED_ADMIN_PASSWORD="")


@pytest.fixture
def jwt_service(settings: AppSettings) -> JWTService:
    return JWTService(settings)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as sess:
        yield sess
        # Tests that need data visible to other sessions commit explicitly.
        await sess.rollback()


@pytest.fixture
def make_user(session: AsyncSession, hasher: PasswordHasher) -> MakeUser:
    async def _make(
        username: str,
        *,
        password: str = "password123",
        email: str | None = None,
        status: UserStatus = UserStatus.ACTIVE,
        is_verified: bool = False,
    ) -> User:
        user = User(
            email=email or f"{username}@example.com",
            username=username,
            password_hash=hasher.hash(password),
            status=status,
            is_verified=is_verified,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_permission(session: AsyncSession) -> MakePermission:
    async def _make(resource: str, action: str, description: str | None = None) -> Permission:
        permission = Permission(description=description)
        permission.set_scope(resource, action)
        session.add(permission)
        await session.flush()
        return permission

    return _make


@pytest.fixture
def make_role(session: AsyncSession) -> MakeRole:
    async def _make(
        name: str,
        permissions: Iterable[Permission] = (),
        *,
        is_protected: bool = False,
        description: str | None = None,
    ) -> Role:
        role = Role(name=name, description=description, is_protected=is_protected)
        session.add(role)
        await session.flush()
        for permission in permissions:
            session.add(RolePermission(role_id=role.id, permission_id=permission.id))
        await session.flush()
        return role

    return _make


@pytest.fixture
def bind(session: AsyncSession) -> Bind:
    async def _bind(user: User, role: Role, *, is_active: bool = True) -> UserRole:
        binding = UserRole(user_id=user.id, role_id=role.id, is_active=is_active)
        session.add(binding)
        await session.flush()
        return binding

    return _bind


# --- API ---

ADMIN_PASSWORD = "admin-password-123"


def _reset_rate_limiter() -> None:
    current = app.middleware_stack
    while current is not None:
        if isinstance(current, RateLimitMiddleware):
            current._hits.clear()
            break
        current = getattr(current, "app", None)


@pytest.fixture
def admin_password() -> str:
    return ADMIN_PASSWORD


@pytest.fixture
def client(async_engine: AsyncEngine, settings: AppSettings) -> Generator[TestClient]:
    session_factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async def _override() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[db_manager.dependency] = _override
    app.dependency_overrides[get_settings] = lambda: settings
    _reset_rate_limiter()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
async def seeded(async_engine: AsyncEngine, hasher: PasswordHasher) -> dict[str, int]:
    """Seed the default roles, the admin account and one user per seeded role."""
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        admin = AdminAccount(email="admin@example.com", username="admin", password=ADMIN_PASSWORD)
        await RBACSeeder(hasher).seed(DEFAULT_DATASET, session, admin=admin)
        roles = {r.name: r for r in (await session.scalars(select(Role))).all()}

        ids: dict[str, int] = {}
        for name in ("manager", "editor", "user", "viewer"):
            user = User(
                email=f"{name}1@example.com",
                username=f"{name}1",
                password_hash=hasher.hash("password123"),
            )
            session.add(user)
            await session.flush()
            session.add(UserRole(user_id=user.id, role_id=roles[name].id))
            ids[name] = user.id
        admin_user = await session.scalar(select(User).where(User.username == "admin"))
        assert admin_user is not None
        ids["admin"] = admin_user.id
        for name, role in roles.items():
            ids[f"role:{name}"] = role.id
        await session.commit()
        return ids


@pytest.fixture
def auth_headers(jwt_service: JWTService, seeded: dict[str, int]) -> Callable[[str], dict[str, str]]:
    """Bearer headers for one of the seeded accounts, by role name."""

    def _headers(name: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {jwt_service.create_access_token(seeded[name])}"}

    return _headers
