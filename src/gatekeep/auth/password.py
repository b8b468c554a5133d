"""Password hashing utilities.

bcrypt with a random per-record salt, so identical passwords never share
a stored digest. The plaintext is pre-hashed with SHA-256 before it
reaches bcrypt, so every byte of a long password counts. The work factor (rounds=12) takes ~100ms per hash on
modern hardware.

Legacy digests (base64 of an unsalted SHA-256) are still verified so
existing records can log in, and needs_upgrade() flags them for
re-hashing on the next successful login.
"""

import base64
import hashlib
import secrets
from typing import Optional

import bcrypt

BCRYPT_ROUNDS = 12


def _encode(password: str) -> bytes:
    # bcrypt ignores input past 72 bytes; hash it down to 44 first
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password with bcrypt.

    Produces a "$2b$..." string that embeds its own salt and work
    factor. The empty string is hashed like any other input.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its stored digest.

    Supports both bcrypt ($2b$...) and legacy base64 SHA-256 digests.
    Malformed digests verify as False rather than raising.
    """
    if not password_hash:
        return False
    if _is_legacy_hash(password_hash):
        return _verify_legacy(password, password_hash)
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_upgrade(password_hash: str) -> bool:
    """Check if a password hash should be upgraded to bcrypt."""
    return bool(password_hash) and _is_legacy_hash(password_hash)


def legacy_hash(password: str) -> str:
    """Digest format of records created before bcrypt. Verification only."""
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def _is_legacy_hash(password_hash: str) -> bool:
    return not password_hash.startswith("$2")


def _verify_legacy(password: str, password_hash: str) -> bool:
    return secrets.compare_digest(password_hash, legacy_hash(password))


class PasswordHasher:
    """hash/verify pair handed to the user directory.

    burn() spends one verification against a throwaway digest of the
    same work factor, so a lookup miss costs as much as a wrong password.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds
        self._dummy_hash: Optional[str] = None

    def hash(self, password: str) -> str:
        return hash_password(password, rounds=self.rounds)

    def verify(self, password: str, password_hash: str) -> bool:
        return verify_password(password, password_hash)

    def needs_upgrade(self, password_hash: str) -> bool:
        return needs_upgrade(password_hash)

    def burn(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password(secrets.token_urlsafe(16), self.rounds)
        verify_password(password, self._dummy_hash)
