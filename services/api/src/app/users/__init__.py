"""User account management."""
