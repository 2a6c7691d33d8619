"""
quluub/stores/base.py

Purpose: Storage interfaces for the core

- One repository per collection the core owns or reads
- Storage-level error types (duplicate key, transient, generic)
- A Storage bundle that also owns multi-document transactions

Methods used by account deletion take an optional `session` so they can
join a transaction opened with `Storage.transaction()`.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, Iterable, List, Optional, Sequence

from quluub.models.activity import ActivityLog, Notification, ThreadMilestone
from quluub.models.chat import ChatMessage
from quluub.models.relationship import Relationship
from quluub.models.user import User, WaliDetails
from quluub.models.wali_contact import WaliContactRecord


class Collections:
    USERS = "users"
    RELATIONSHIPS = "relationships"
    CHATS = "chats"
    WALI_CONTACTS = "wali_contacts"
    ACTIVITY_LOGS = "activity_logs"
    NOTIFICATIONS = "notifications"
    PUSH_NOTIFICATIONS = "push_notifications"
    PAYMENTS = "payments"
    SUBSCRIPTIONS = "subscriptions"
    THREAD_MILESTONES = "thread_milestones"


class StorageError(Exception):
    """Base class for persistence failures."""


class DuplicateKeyConflict(StorageError):
    """A unique index rejected the write."""


class TransientStorageError(StorageError):
    """The operation may succeed if retried from scratch."""


class RelationshipStore(ABC):

    @abstractmethod
    async def insert(self, relationship: Relationship) -> Relationship:
        """Raises DuplicateKeyConflict when the pair already has a relationship."""

    @abstractmethod
    async def get(self, relationship_id: str) -> Optional[Relationship]:
        ...

    @abstractmethod
    async def find_between(self, user_a: str, user_b: str) -> Optional[Relationship]:
        """Relationship for the unordered pair, in either direction."""

    @abstractmethod
    async def transition(self, relationship_id: str, from_status: str, to_status: str) -> Optional[Relationship]:
        """
        Compare-and-set on status. Returns the updated relationship, or None
        when the stored status was no longer `from_status`.
        """

    @abstractmethod
    async def delete_if_status(self, relationship_id: str, status: str) -> bool:
        ...

    @abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        status: str,
        as_follower: bool = True,
        as_followed: bool = True,
    ) -> List[Relationship]:
        ...


class ChatStore(ABC):

    @abstractmethod
    async def insert(self, message: ChatMessage) -> ChatMessage:
        ...

    @abstractmethod
    async def count_sent(self, sender_id: str, receiver_id: str) -> int:
        """Messages sent in one direction only."""

    @abstractmethod
    async def count_thread(self, user_a: str, user_b: str) -> int:
        """Messages in both directions."""

    @abstractmethod
    async def list_thread(self, user_a: str, user_b: str) -> List[ChatMessage]:
        """Both directions, oldest first."""

    @abstractmethod
    async def mark_read(self, message_ids: Sequence[str], receiver_id: Optional[str] = None) -> int:
        """UNREAD -> READ for the given ids. Returns the number changed."""

    @abstractmethod
    async def mark_thread_read(self, reader_id: str, other_id: str) -> int:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[ChatMessage]:
        """Every message the user sent or received, newest first."""


class WaliContactStore(ABC):

    @abstractmethod
    async def insert(self, record: WaliContactRecord) -> WaliContactRecord:
        ...

    @abstractmethod
    async def list_for_subject(self, subject_user_id: str) -> List[WaliContactRecord]:
        ...


class ActivityStore(ABC):
    """Activity logs and in-app notifications."""

    @abstractmethod
    async def log(self, entry: ActivityLog) -> ActivityLog:
        ...

    @abstractmethod
    async def notify(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    async def list_notifications(self, user_id: str) -> List[Notification]:
        ...


class MilestoneStore(ABC):

    @abstractmethod
    async def claim(self, milestone: ThreadMilestone) -> bool:
        """True if this call claimed the milestone, False if it was already claimed."""

    @abstractmethod
    async def release(self, pair_key: str, milestone: int) -> None:
        """Drops a claim whose report could not be built."""


class UserDirectory(ABC):

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_many(self, user_ids: Iterable[str]) -> List[User]:
        ...

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def insert(self, user: User) -> User:
        ...

    @abstractmethod
    async def update_wali_details(self, user_id: str, details: Optional[WaliDetails]) -> bool:
        ...

    @abstractmethod
    async def pull_references(self, user_id: str, fields: Sequence[str], session: Any = None) -> int:
        """Removes `user_id` from the given array fields of every other user."""

    @abstractmethod
    async def delete(self, user_id: str, session: Any = None) -> bool:
        ...


class Storage(ABC):
    """
    Bundle of repositories over one database.
    """

    relationships: RelationshipStore
    chats: ChatStore
    wali_contacts: WaliContactStore
    activity: ActivityStore
    milestones: MilestoneStore
    users: UserDirectory

    @abstractmethod
    def transaction(self) -> AsyncContextManager[Any]:
        """
        Async context manager yielding a session handle. All writes made with
        that handle commit together or not at all.
        """

    @abstractmethod
    async def delete_referencing(
        self,
        collection: str,
        fields: Sequence[str],
        user_id: str,
        session: Any = None,
    ) -> int:
        """Deletes documents in `collection` whose `fields` reference `user_id`."""

    @abstractmethod
    async def count_referencing(self, collection: str, fields: Sequence[str], user_id: str) -> int:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def reference_filter(fields: Sequence[str], user_id: str) -> Dict[str, Any]:
    """Mongo filter matching documents that reference `user_id` in any of `fields`."""
    clauses = [{field: user_id} for field in fields]
    return clauses[0] if len(clauses) == 1 else {"$or": clauses}

