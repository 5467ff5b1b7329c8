"""
ClipSync Backend — Credential Engine
=====================================

What:  Salted password hashing, verification, and the legacy (unsalted) verifier.
Why:   Accounts created before per-user salts existed still carry plain bcrypt
       hashes. They must keep working, and are migrated to the salted scheme
       the first time the plaintext is available (a successful login).
How:
    Salted scheme:
        digest = sha256(password + salt).hexdigest()      # 64 ASCII bytes
        hash   = bcrypt(digest, gensalt(rounds))

        The SHA-256 step normalizes input length: bcrypt silently ignores
        (or, in recent releases, rejects) input beyond 72 bytes, so long
        passwords would otherwise collide on their first 72 bytes.

    Legacy scheme:
        hash = bcrypt(password, gensalt(rounds)), stored with an empty salt.

Constant-time comparison is delegated to bcrypt.checkpw in both schemes.
"""

import hashlib
import logging
import secrets
from typing import Optional

import bcrypt

from clipsync.config import settings
from clipsync.exceptions import HashingError

logger = logging.getLogger(__name__)

SALT_BYTES = 32


class CredentialService:
    """
    Stateless password hashing helpers.

    Args:
        rounds: bcrypt cost factor; defaults to settings.bcrypt_rounds
    """

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds if rounds is not None else settings.bcrypt_rounds

    # ── Salt ──────────────────────────────────────────────────────────────

    def generate_salt(self) -> str:
        """
        32 bytes from the OS CSPRNG, hex-encoded (64 lowercase hex chars).

        Raises:
            HashingError: the entropy source is unavailable
        """
        try:
            return secrets.token_bytes(SALT_BYTES).hex()
        except (OSError, NotImplementedError) as e:
            logger.error("Salt generation failed: %s", e)
            raise HashingError(
                message="failed to generate password salt",
                context={"error_type": type(e).__name__},
            ) from e

    # ── Salted scheme ─────────────────────────────────────────────────────

    @staticmethod
    def _prehash(password: str, salt: str) -> bytes:
        return hashlib.sha256((password + salt).encode("utf-8")).hexdigest().encode("ascii")

    def hash_with_salt(self, password: str, salt: str) -> str:
        """
        Hash `password` under `salt`.

        Raises:
            HashingError: bcrypt or the entropy source failed
        """
        try:
            hashed = bcrypt.hashpw(self._prehash(password, salt), bcrypt.gensalt(rounds=self.rounds))
        except (OSError, ValueError, NotImplementedError) as e:
            logger.error("Password hashing failed: %s", e)
            raise HashingError(context={"error_type": type(e).__name__}) from e
        return hashed.decode("utf-8")

    def verify_with_salt(self, password: str, salt: str, hashed: str) -> bool:
        """Returns False on mismatch or on a malformed stored hash; never raises."""
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(self._prehash(password, salt), hashed.encode("utf-8"))
        except ValueError:
            return False

    # ── Legacy scheme ─────────────────────────────────────────────────────

    def hash_legacy(self, password: str) -> str:
        """Pre-salt hash: bcrypt directly on the raw password. Kept for fixtures and tooling."""
        try:
            hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        except (OSError, ValueError, NotImplementedError) as e:
            raise HashingError(context={"error_type": type(e).__name__}) from e
        return hashed.decode("utf-8")

    def verify_legacy(self, password: str, hashed: str) -> bool:
        """
        Verify against a legacy hash.

        Passwords bcrypt cannot take (over 72 bytes) and malformed hashes
        verify as False.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    # ── Dispatch ──────────────────────────────────────────────────────────

    def verify_user_password(self, password: str, salt: str, hashed: str) -> bool:
        """Picks the salted or legacy verifier based on whether a salt is stored."""
        if salt:
            return self.verify_with_salt(password, salt, hashed)
        return self.verify_legacy(password, hashed)

    def new_credentials(self, password: str) -> tuple[str, str]:
        """Fresh (salt, hash) pair for registration, password change, or upgrade."""
        salt = self.generate_salt()
        return salt, self.hash_with_salt(password, salt)


credential_service = CredentialService()
