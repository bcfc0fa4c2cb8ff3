"""Service that resolves users by email, creating them on first login."""

from __future__ import annotations

import logging
from uuid import uuid4

from quizhub.core.errors import NotFound, ValidationFailed
from quizhub.core.models import User, UserRole
from quizhub.core.store import USER_COLLECTION, CollectionStore

logger = logging.getLogger(__name__)


class IdentityService:
    """Looks up users in the user directory collection."""

    def __init__(self, store: CollectionStore) -> None:
        self._store = store

    def login(self, email: str, role: UserRole, display_name: str) -> User:
        """Return the user registered under ``email``, creating one if needed.

        An existing user keeps the role and name they first registered with.
        """
        normalized_email = email.strip().lower()
        if not normalized_email or "@" not in normalized_email:
            raise ValidationFailed("A valid email address is required.")

        records = self._store.read_all(USER_COLLECTION)
        for record in records:
            if record["email"] == normalized_email:
                return User.from_record(record)

        name = display_name.strip() or normalized_email.split("@", 1)[0]
        user = User(id=uuid4().hex, name=name, email=normalized_email, role=role)
        records.append(user.to_record())
        self._store.write_all(USER_COLLECTION, records)
        logger.info("Registered %s user %s", role.value, user.id)
        return user

    def get_user(self, user_id: str) -> User:
        for record in self._store.read_all(USER_COLLECTION):
            if record["id"] == user_id:
                return User.from_record(record)
        raise NotFound(f"User {user_id} does not exist.")

    def list_users(self, role: UserRole | None = None) -> list[User]:
        users = [User.from_record(record) for record in self._store.read_all(USER_COLLECTION)]
        if role is None:
            return users
        return [user for user in users if user.role is role]
