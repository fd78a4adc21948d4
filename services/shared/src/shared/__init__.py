"""Shared persistence layer: configuration, ORM models, repositories and hashing."""
