"""Authentication: JWT tokens, identity resolution and access enforcement."""
