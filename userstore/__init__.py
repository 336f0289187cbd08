"""User directory backed by a single DynamoDB table."""

from __future__ import annotations

from typing import Any

from .config import StoreConfig, load_config
from .errors import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    InvalidInputError,
    MissingIdentifierError,
    NotFoundError,
    TransportError,
    UserStoreError,
)
from .models import User
from .store import UserStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "DuplicateIdentityError",
    "InvalidCredentialsError",
    "InvalidInputError",
    "MissingIdentifierError",
    "NotFoundError",
    "StoreConfig",
    "TransportError",
    "User",
    "UserStore",
    "UserStoreError",
    "create_app",
    "load_config",
]
