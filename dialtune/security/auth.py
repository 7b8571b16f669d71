"""Authentication utilities for operator access."""

from __future__ import annotations

from typing import Any

import bcrypt

from dialtune.logging_config import get_logger

logger: Any = get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash.

    A malformed hash counts as a mismatch rather than an error.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        logger.exception("Password verification failed")
        return False
