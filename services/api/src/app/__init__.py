"""Access Control API service."""
