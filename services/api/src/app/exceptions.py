"""Domain exceptions shared by the auth, RBAC and user modules.

Each subclass carries the HTTP status it is rendered with by
``app.exception_handlers``; services raise them directly and never
translate them into ``HTTPException``.
"""


class AppError(Exception):
    """Base exception for errors with a client-facing message."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class UnauthenticatedError(AppError):
    """No valid identity could be established for the request."""

    status_code = 401

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class ForbiddenError(AppError):
    """The caller is authenticated but not allowed to perform the operation."""

    status_code = 403


class NotFoundError(AppError):
    """A referenced entity does not exist."""

    status_code = 404


class ConflictError(AppError):
    """The operation clashes with existing state (duplicate name, live binding)."""

    status_code = 409


class ValidationFailedError(AppError):
    """Input passed schema validation but violates a business rule."""

    status_code = 422
