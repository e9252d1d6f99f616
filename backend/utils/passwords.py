"""
utils/passwords.py — bcrypt password hashing via passlib.
"""

import logging

from passlib.context import CryptContext

log = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """False for a missing hash or a malformed one; never raises."""
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError as e:
        log.error(f"Password verification error: {e}")
        return False
