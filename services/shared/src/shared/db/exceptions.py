"""Errors raised by the persistence layer.

Lookups report a missing row by returning ``None``; these exceptions cover
the write path, where the database itself rejects a change.
"""


class StoreError(Exception):
    """Base exception for repository failures."""


class ConstraintViolationError(StoreError):
    """A unique or referential constraint rejected a write."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
