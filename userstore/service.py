"""Account operations layered on top of :class:`~userstore.store.UserStore`."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .errors import InvalidCredentialsError, InvalidInputError
from .models import User
from .security import hash_password, validate_password, verify_password
from .store import UserStore

logger = logging.getLogger("userstore.service")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _normalize_name(name: Optional[str]) -> str:
    normalized = (name or "").strip()
    if not normalized:
        raise InvalidInputError("Name must not be empty")
    return normalized


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _generate_user_id() -> str:
    return uuid.uuid4().hex


class AccountService:
    """Registration, login and profile management for directory users."""

    def __init__(self, store: UserStore) -> None:
        self._store = store

    @property
    def store(self) -> UserStore:
        return self._store

    def register(self, name: str, email: str, password: str) -> User:
        """Create a new account and return the stored user."""

        normalized_email = normalize_email(email)
        if not normalized_email:
            raise InvalidInputError("Email must not be empty")
        validate_password(password)

        user = User(
            id=_generate_user_id(),
            email=normalized_email,
            name=_normalize_name(name),
            credential=hash_password(password),
        )
        self._store.create(user)
        logger.info("Registered user %s", user.id)
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Verify the credentials and record the login time."""

        user = self._store.get_by_email(normalize_email(email))
        if not verify_password(password, user.credential):
            logger.warning("Failed login attempt for user %s", user.id)
            raise InvalidCredentialsError("Incorrect password")

        refreshed = user.with_changes(last_login=_current_timestamp())
        self._store.put(refreshed)
        logger.info("User %s signed in", user.id)
        return refreshed

    def update_profile(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """Apply name, email and password changes to a user with a single write."""

        current = self._store.get_by_id(user_id)

        changes: Dict[str, object] = {}
        if name is not None:
            changes["name"] = _normalize_name(name)
        if email is not None:
            normalized_email = normalize_email(email)
            if not normalized_email:
                raise InvalidInputError("Email must not be empty")
            changes["email"] = normalized_email
        if password is not None:
            validate_password(password)
            changes["credential"] = hash_password(password)

        if not changes:
            return current

        updated = current.with_changes(**changes)
        self._store.put(updated)
        return updated

    def change_password(self, user_id: str, password: str) -> User:
        updated = self.update_profile(user_id, password=password)
        logger.info("Password changed for user %s", user_id)
        return updated

    def get(self, user_id: str) -> User:
        return self._store.get_by_id(user_id)

    def get_by_email(self, email: str) -> User:
        return self._store.get_by_email(normalize_email(email))

    def list(self) -> List[User]:
        return self._store.list()

    def delete(self, user_id: str) -> None:
        self._store.delete(user_id)
        logger.info("Removed user %s", user_id)


__all__ = ["AccountService", "normalize_email"]
