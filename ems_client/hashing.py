"""
Client-side password pre-hashing. Obscures the plaintext in transit only; the API
bcrypt-hashes the digest again, so this is not a security boundary.
SHA-256 via cryptography, falling back to hashlib when the backend refuses the algorithm.
"""
import hashlib
import logging
from typing import Callable

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)

PASSWORD_PREFIX = "ems_"
PASSWORD_SUFFIX = "_salt"
USER_ID_PREFIX = "ems_user_"

Digest = Callable[[bytes], str]


def cryptography_sha256(data: bytes) -> str:
    h = hashes.Hash(hashes.SHA256())
    h.update(data)
    return h.finalize().hex()


def hashlib_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class PasswordHasher:
    """Hex SHA-256 digests through a primary implementation with a fallback."""

    def __init__(self, primary: Digest = cryptography_sha256, fallback: Digest = hashlib_sha256):
        self._primary = primary
        self._fallback = fallback

    def hash_string(self, data: str) -> str:
        raw = data.encode("utf-8")
        try:
            return self._primary(raw)
        except UnsupportedAlgorithm:
            logger.warning("Primary SHA-256 digest unavailable; using fallback")
            return self._fallback(raw)

    def hash_password(self, password: str) -> str:
        return self.hash_string(f"{PASSWORD_PREFIX}{password}{PASSWORD_SUFFIX}")

    def hash_user_id(self, user_id: str) -> str:
        return self.hash_string(f"{USER_ID_PREFIX}{user_id}")

    def hash_multiple(self, *values: str) -> str:
        return self.hash_string("|".join(values))


default_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return default_hasher.hash_password(password)
