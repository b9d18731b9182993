"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks. The work
factor defaults to 12 (~100ms per hash on modern hardware); tests turn
it down via TASKTRACK_BCRYPT_ROUNDS.

bcrypt.checkpw compares digests in constant time, so a wrong password
takes as long to reject as a right one takes to accept.
"""

import bcrypt

from tasktrack.config import settings


class PasswordHasher:
    """One-way hash + verify. Swap in another implementation for a different algorithm."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password with bcrypt.

        Passwords are truncated to 72 bytes (bcrypt's limit).
        """
        pw_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash. Malformed hashes never match."""
        try:
            pw_bytes = password.encode("utf-8")[:72]
            hash_bytes = password_hash.encode("utf-8")
            return bcrypt.checkpw(pw_bytes, hash_bytes)
        except (ValueError, TypeError):
            return False


def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)
