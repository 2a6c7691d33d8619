"""
quluub/services/account_purge.py

Purpose: Account deletion without dangling references

- Deletes every document referencing the user in one transaction
- Pulls the user out of other users' blocked/favorite/viewed lists
- Retries transient transaction failures from scratch; anything else aborts
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from quluub.core.exceptions import PurgeFailedError, ResourceNotFoundError
from quluub.core.logging import LogContext, get_logger
from quluub.services.profile_cache import ProfileCache
from quluub.stores.base import Collections, Storage, StorageError, TransientStorageError

logger = get_logger(__name__)

# Collection -> fields that may hold the purged user's id
PURGE_REFERENCES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (Collections.RELATIONSHIPS, ("followerUserId", "followedUserId")),
    (Collections.CHATS, ("senderId", "receiverId")),
    (Collections.NOTIFICATIONS, ("userId", "senderId")),
    (Collections.PAYMENTS, ("userId",)),
    (Collections.SUBSCRIPTIONS, ("userId",)),
    (Collections.ACTIVITY_LOGS, ("userId", "receiverId")),
    (Collections.WALI_CONTACTS, ("subjectUserId", "contactedByUserId")),
    (Collections.PUSH_NOTIFICATIONS, ("userId",)),
    (Collections.THREAD_MILESTONES, ("userIds",)),
)

USER_ARRAY_FIELDS: Tuple[str, ...] = ("blockedUsers", "favoriteUsers", "viewedBy")


@dataclass
class PurgeReport:
    user_id: str
    deleted: Dict[str, int] = field(default_factory=dict)
    references_pulled: int = 0
    attempts: int = 1

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())


class AccountPurgeCoordinator:

    def __init__(self, storage: Storage, profiles: ProfileCache, max_attempts: int = 3):
        self.storage = storage
        self.profiles = profiles
        self.max_attempts = max(1, max_attempts)

    async def purge_account(self, user_id: str) -> PurgeReport:
        """
        Removes a user and everything that references them, atomically.

        Args:
            user_id: Account to delete

        Returns:
            PurgeReport with per-collection deletion counts

        Raises:
            ResourceNotFoundError: No such user
            PurgeFailedError: Nothing was deleted; safe to retry later
        """
        with LogContext(user_id=user_id, operation="purge_account"):
            if await self.storage.users.find_by_id(user_id) is None:
                raise ResourceNotFoundError("User not found")

            for attempt in range(1, self.max_attempts + 1):
                try:
                    async with self.storage.transaction() as session:
                        report = await self._purge(user_id, session)
                    report.attempts = attempt
                    break

                except TransientStorageError as e:
                    logger.warning(f"Transient failure purging account (attempt {attempt}/{self.max_attempts}): {e}")
                    if attempt == self.max_attempts:
                        raise PurgeFailedError(details={"attempts": attempt}) from e

                except StorageError as e:
                    logger.error(f"Account purge aborted: {str(e)}")
                    raise PurgeFailedError(details={"attempts": attempt}) from e

                except Exception as e:
                    logger.error(f"Unexpected error purging account: {str(e)}", exc_info=True)
                    raise PurgeFailedError(details={"attempts": attempt}) from e

            self.profiles.invalidate(user_id)
            logger.info(
                f"Account purged: {report.total_deleted} documents deleted, "
                f"{report.references_pulled} profiles updated"
            )
            return report

    async def _purge(self, user_id: str, session: Any) -> PurgeReport:
        report = PurgeReport(user_id=user_id)

        for collection, fields in PURGE_REFERENCES:
            report.deleted[collection] = await self.storage.delete_referencing(
                collection, fields, user_id, session=session
            )

        report.references_pulled = await self.storage.users.pull_references(
            user_id, USER_ARRAY_FIELDS, session=session
        )

        if not await self.storage.users.delete(user_id, session=session):
            raise StorageError("User document disappeared during purge")
        report.deleted[Collections.USERS] = 1
        return report

    async def remaining_references(self, user_id: str) -> Dict[str, int]:
        """
        Counts documents still referencing `user_id`. Empty when the purge is complete.
        """
        remaining: Dict[str, int] = {}
        for collection, fields in PURGE_REFERENCES + ((Collections.USERS, USER_ARRAY_FIELDS),):
            count = await self.storage.count_referencing(collection, fields, user_id)
            if count:
                remaining[collection] = count
        if await self.storage.users.find_by_id(user_id) is not None:
            remaining["user"] = 1
        return remaining
