"""Credential hashing helpers."""
from __future__ import annotations

from passlib.context import CryptContext

from .errors import InvalidInputError

MIN_PASSWORD_LENGTH = 8

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    if not password:
        raise InvalidInputError("Password must not be empty")
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Return ``True`` if ``password`` matches the stored hash."""

    if not password or not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        # Unrecognised or corrupt hash.
        return False


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


__all__ = ["MIN_PASSWORD_LENGTH", "hash_password", "validate_password", "verify_password"]
