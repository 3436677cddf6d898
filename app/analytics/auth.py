"""
Admin authentication for the analytics reset endpoint.

The server only ever holds a SHA-256 digest of the admin password. Callers
may send either the plaintext password (hashed here) or the digest itself.
"""

import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Any, Optional

from config_manager import is_hex_hash

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("password", "secret", "hash", "passwordHash")


def sha256_hex(value: str) -> str:
    """Return the lowercase hex SHA-256 digest of a string."""
    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()


def extract_secret(payload: Any) -> Optional[str]:
    """Pull the admin secret out of a request body."""
    if not isinstance(payload, Mapping):
        return None
    for field_name in SECRET_FIELDS:
        value = payload.get(field_name)
        if value:
            return value if isinstance(value, str) else str(value)
    return None


class AdminAuthenticator:
    """Verifies admin secrets against a configured password hash."""

    def __init__(self, password_hash: Optional[str] = None, password: Optional[str] = None):
        """Initialize the authenticator.

        Args:
            password_hash: Pre-computed SHA-256 hex digest; takes precedence
            password: Plaintext password, hashed immediately and discarded
        """
        if is_hex_hash(password_hash):
            self._expected_hash: Optional[str] = password_hash.lower()
        elif password:
            self._expected_hash = sha256_hex(password)
        else:
            self._expected_hash = None
            logger.warning("No admin password configured; analytics resets will be rejected")

    @property
    def configured(self) -> bool:
        return self._expected_hash is not None

    def verify(self, secret: Any) -> bool:
        """Check a plaintext password or hex digest in constant time."""
        if self._expected_hash is None or not secret:
            return False
        normalized = str(secret).strip()
        if not normalized:
            return False
        candidate = normalized.lower() if is_hex_hash(normalized) else sha256_hex(normalized)
        return hmac.compare_digest(candidate.encode("ascii"), self._expected_hash.encode("ascii"))
