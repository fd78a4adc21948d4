"""Password hashing with bcrypt."""

import bcrypt

# bcrypt only considers the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Hashes and verifies account passwords.

    Each call to :meth:`hash` generates a fresh salt, so the same password
    never produces the same stored value.
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage."""
        pw_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plain_password: str, hashed: str) -> bool:
        """Return ``True`` if *plain_password* matches the stored *hashed* value."""
        pw_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False
