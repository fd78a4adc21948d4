"""Pydantic schemas shared by several routers."""

from typing import Generic, NamedTuple, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResult(NamedTuple, Generic[T]):
    """Named return type for paginated service queries."""

    items: list[T]
    total: int


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper."""

    items: list[T]
    total: int
    limit: int
    offset: int


class ActionResponse(BaseModel):
    """Generic response for mutation actions."""

    success: bool
    message: str
