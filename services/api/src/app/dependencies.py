"""Shared FastAPI dependencies and service singletons."""

from shared.db.session import DatabaseManager

db_manager = DatabaseManager.from_env()
