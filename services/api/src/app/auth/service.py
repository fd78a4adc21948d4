"""Authentication service for credential login and token refresh."""

import logging

from anyio import to_thread
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import JWTError, JWTService
from app.auth.schemas import JWTTokenResponse, TokenPairResponse
from app.constants import INVALID_CREDENTIALS_MESSAGE, INVALID_TOKEN_MESSAGE
from app.exceptions import UnauthenticatedError
from shared.crypto import PasswordHasher
from shared.db.base import utc_now
from shared.db.operations import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Issues JWT token pairs for valid credentials of active accounts."""

    def __init__(
        self,
        jwt_service: JWTService,
        hasher: PasswordHasher,
        users: UserRepository | None = None,
    ) -> None:
        self._jwt = jwt_service
        self._hasher = hasher
        self._users = users or UserRepository()

    async def login(self, login: str, password: str, session: AsyncSession) -> TokenPairResponse:
        """Authenticate by email or username and issue an access/refresh pair.

        Raises:
            UnauthenticatedError: Unknown account, wrong password, or a
                non-active account. The message does not say which.
        """
        user = await self._users.get_by_login(login, session)
        verified = user is not None and await to_thread.run_sync(self._hasher.verify, password, user.password_hash)
        if user is None or not verified:
            logger.info("Failed login attempt for '%s'", login)
            raise UnauthenticatedError(INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            logger.info("Login refused for %s account", user.status.value, extra={"user_id": user.id})
            raise UnauthenticatedError(INVALID_CREDENTIALS_MESSAGE)

        user.last_login_at = utc_now()
        await self._users.save(session)

        access_token, refresh_token = self._jwt.create_token_pair(user.id)
        logger.info("User logged in", extra={"user_id": user.id})
        return TokenPairResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._jwt.access_expire_seconds,
        )

    async def refresh(self, refresh_token: str, session: AsyncSession) -> JWTTokenResponse:
        """Exchange a refresh token of an existing active user for a new access token."""
        try:
            user_id = self._jwt.decode_refresh_token(refresh_token)
        except JWTError as exc:
            logger.info("Rejected refresh token: %s", exc.detail)
            raise UnauthenticatedError(INVALID_TOKEN_MESSAGE) from exc

        user = await self._users.get_by_id(user_id, session)
        if user is None or not user.is_active:
            raise UnauthenticatedError(INVALID_TOKEN_MESSAGE)

        return JWTTokenResponse(
            access_token=self._jwt.create_access_token(user_id),
            expires_in=self._jwt.access_expire_seconds,
        )
