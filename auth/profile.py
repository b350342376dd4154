"""
auth/profile.py -- Read and update of a user's own profile.

Only fields in PROFILE_FIELDS can be written through this path. Email,
password, role and activation changes are not profile edits and are dropped
here no matter what the request contains.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from auth.service import storage_errors
from core.errors import NotFoundError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("authgate.profile")

PROFILE_FIELDS: frozenset[str] = frozenset({"full_name"})


class ProfileService:
    def __init__(self, users: UserStore) -> None:
        self.users = users

    def get_profile(self, user_id: str) -> User:
        with storage_errors("get_profile"):
            user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def update_profile(self, user_id: str, updates: dict[str, Any]) -> User:
        """Apply the permitted, non-empty subset of updates.

        String values are stripped; empty or whitespace-only values are
        dropped. If nothing permitted remains the current profile is returned
        and the store's write path is never called.
        """
        permitted: dict[str, Any] = {}
        for key, value in updates.items():
            if key not in PROFILE_FIELDS or value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value:
                    continue
            permitted[key] = value

        if not permitted:
            return self.get_profile(user_id)

        with storage_errors("update_profile"):
            user = self.users.update(user_id, **permitted)
        if user is None:
            raise NotFoundError()
        logger.info("Profile updated for user %s (%s)", user_id, ", ".join(sorted(permitted)))
        return user
