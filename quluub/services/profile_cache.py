"""
quluub/services/profile_cache.py

Purpose: Short-lived cache of user display identities

- Explicit TTL, owned by the service container
- Used for names shown next to messages and matches only;
  compliance checks always read the user directory directly
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from quluub.core.logging import get_logger
from quluub.models.user import User
from quluub.stores.base import UserDirectory

logger = get_logger(__name__)


@dataclass
class _Entry:
    user: User
    expires_at: float


class ProfileCache:

    def __init__(self, users: UserDirectory, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._users = users
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}

    def _fresh(self, user_id: str) -> Optional[User]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[user_id]
            return None
        return entry.user

    def _put(self, user: User) -> None:
        self._entries[user.id] = _Entry(user=user, expires_at=self._clock() + self._ttl)

    async def get(self, user_id: str) -> Optional[User]:
        user = self._fresh(user_id)
        if user is not None:
            return user
        user = await self._users.find_by_id(user_id)
        if user is not None:
            self._put(user)
        return user

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """
        Resolves several ids with at most one directory query for the misses.
        """
        found: Dict[str, User] = {}
        missing = []
        for user_id in dict.fromkeys(user_ids):
            user = self._fresh(user_id)
            if user is None:
                missing.append(user_id)
            else:
                found[user_id] = user

        if missing:
            for user in await self._users.find_many(missing):
                self._put(user)
                found[user.id] = user
            logger.debug(f"Profile cache loaded {len(missing)} profiles")

        return found

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
