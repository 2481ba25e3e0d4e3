"""Password hashing and verification backed by Argon2."""

from __future__ import annotations

from argon2 import PasswordHasher, exceptions as argon_exc

from ..config import Settings, get_settings


class CredentialHasher:
    """Salted, deliberately slow one-way hashing of account passwords.

    Every call to :meth:`hash` embeds a fresh random salt, so hashing the same
    plaintext twice yields two different digests. Hashing failures raised by
    argon2 are never caught here, and neither are digests that fail to decode.
    """

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CredentialHasher":
        """Build a hasher using the cost parameters configured for the process."""
        settings = settings or get_settings()
        return cls(
            PasswordHasher(
                time_cost=settings.password_time_cost,
                memory_cost=settings.password_memory_cost,
                parallelism=settings.password_parallelism,
            )
        )

    def hash(self, plaintext: str) -> str:
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        """Return ``True`` when ``plaintext`` matches ``digest``."""
        try:
            return self._hasher.verify(digest, plaintext)
        except argon_exc.VerifyMismatchError:
            return False
