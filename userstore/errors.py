"""Exceptions raised by the user directory."""

from __future__ import annotations


class UserStoreError(Exception):
    """Base class for every error raised by this package."""


class MissingIdentifierError(UserStoreError, ValueError):
    """An operation that needs an id or email was given an empty one."""


class InvalidInputError(UserStoreError, ValueError):
    """A caller-supplied value failed validation."""


class NotFoundError(UserStoreError, LookupError):
    """The requested user does not exist."""


class DuplicateIdentityError(UserStoreError):
    """The id or email is already associated with another user."""


class InvalidCredentialsError(UserStoreError):
    """The supplied password does not match the stored credential."""


class TransportError(UserStoreError):
    """Any other failure reported by the backing store."""

    def __init__(self, operation: str, key: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed for {key}: {cause}")
        self.operation = operation
        self.key = key


__all__ = [
    "UserStoreError",
    "MissingIdentifierError",
    "InvalidInputError",
    "NotFoundError",
    "DuplicateIdentityError",
    "InvalidCredentialsError",
    "TransportError",
]
