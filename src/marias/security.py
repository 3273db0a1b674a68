"""Password hashing and bearer-token helpers."""

from __future__ import annotations

import hashlib
import logging
import secrets

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Bcrypt hash of a plaintext password (salted, ``$2b$...``)."""
    return pwd_context.hash(password)


def verify_password(password: str, encoded: str | None) -> bool:
    """Check a password against a value produced by hash_password()."""
    if not encoded:
        return False
    try:
        return pwd_context.verify(password, encoded)
    except (ValueError, TypeError):
        logger.warning("Stored password hash is not a recognised bcrypt hash")
        return False


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """SHA-256 of a bearer token; only this is stored."""
    return hashlib.sha256(token.encode()).hexdigest()
