"""
quluub/stores/memory.py

Purpose: In-process storage for development and tests

- Same repository interfaces as the Mongo backend
- Enforces the unique pair key and unique report milestones
- Transactions snapshot every collection and restore it on error
"""

import asyncio
import copy
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from quluub.models.activity import ActivityLog, Notification, ThreadMilestone
from quluub.models.chat import ChatMessage, MessageStatus
from quluub.models.relationship import Relationship, make_pair_key
from quluub.models.user import User, WaliDetails
from quluub.models.wali_contact import WaliContactRecord
from quluub.stores.base import (
    ActivityStore,
    ChatStore,
    Collections,
    DuplicateKeyConflict,
    MilestoneStore,
    RelationshipStore,
    Storage,
    UserDirectory,
    WaliContactStore,
)

Doc = Dict[str, Any]


def field_matches(doc: Doc, field: str, value: Any) -> bool:
    """Mongo-style equality: array fields match when they contain the value."""
    stored = doc.get(field)
    if isinstance(stored, list):
        return value in stored
    return stored == value


def references(doc: Doc, fields: Sequence[str], user_id: str) -> bool:
    return any(field_matches(doc, field, user_id) for field in fields)


def in_thread(doc: Doc, user_a: str, user_b: str) -> bool:
    return (doc["senderId"], doc["receiverId"]) in ((user_a, user_b), (user_b, user_a))


class _MemoryCollection:
    """Base for repositories reading one named collection of the shared storage."""

    name: str = ""

    def __init__(self, storage: "MemoryStorage"):
        self.storage = storage

    @property
    def docs(self) -> List[Doc]:
        return self.storage.collections[self.name]

    def find_one(self, **match: Any) -> Optional[Doc]:
        for doc in self.docs:
            if all(doc.get(k) == v for k, v in match.items()):
                return doc
        return None


class MemoryRelationshipStore(_MemoryCollection, RelationshipStore):
    name = Collections.RELATIONSHIPS

    async def insert(self, relationship: Relationship) -> Relationship:
        if self.find_one(pairKey=relationship.pair_key) is not None:
            raise DuplicateKeyConflict(f"duplicate pairKey {relationship.pair_key}")
        self.docs.append(relationship.to_document())
        return relationship

    async def get(self, relationship_id: str) -> Optional[Relationship]:
        doc = self.find_one(_id=relationship_id)
        return Relationship.from_document(doc) if doc else None

    async def find_between(self, user_a: str, user_b: str) -> Optional[Relationship]:
        doc = self.find_one(pairKey=make_pair_key(user_a, user_b))
        return Relationship.from_document(doc) if doc else None

    async def transition(self, relationship_id: str, from_status: str, to_status: str) -> Optional[Relationship]:
        doc = self.find_one(_id=relationship_id, status=from_status)
        if doc is None:
            return None
        doc["status"] = to_status
        return Relationship.from_document(doc)

    async def delete_if_status(self, relationship_id: str, status: str) -> bool:
        doc = self.find_one(_id=relationship_id, status=status)
        if doc is None:
            return False
        self.docs.remove(doc)
        return True

    async def list_for_user(
        self,
        user_id: str,
        status: str,
        as_follower: bool = True,
        as_followed: bool = True,
    ) -> List[Relationship]:
        found = [
            doc for doc in self.docs
            if doc["status"] == status and (
                (as_follower and doc["followerUserId"] == user_id)
                or (as_followed and doc["followedUserId"] == user_id)
            )
        ]
        found.sort(key=lambda doc: doc["createdAt"], reverse=True)
        return [Relationship.from_document(doc) for doc in found]


class MemoryChatStore(_MemoryCollection, ChatStore):
    name = Collections.CHATS

    async def insert(self, message: ChatMessage) -> ChatMessage:
        self.docs.append(message.to_document())
        return message

    async def count_sent(self, sender_id: str, receiver_id: str) -> int:
        return sum(1 for doc in self.docs if doc["senderId"] == sender_id and doc["receiverId"] == receiver_id)

    async def count_thread(self, user_a: str, user_b: str) -> int:
        return sum(1 for doc in self.docs if in_thread(doc, user_a, user_b))

    async def list_thread(self, user_a: str, user_b: str) -> List[ChatMessage]:
        found = sorted(
            (doc for doc in self.docs if in_thread(doc, user_a, user_b)),
            key=lambda doc: doc["createdAt"],
        )
        return [ChatMessage.from_document(doc) for doc in found]

    async def mark_read(self, message_ids: Sequence[str], receiver_id: Optional[str] = None) -> int:
        wanted = set(message_ids)
        changed = 0
        for doc in self.docs:
            if doc["_id"] not in wanted or doc["status"] != MessageStatus.UNREAD.value:
                continue
            if receiver_id is not None and doc["receiverId"] != receiver_id:
                continue
            doc["status"] = MessageStatus.READ.value
            changed += 1
        return changed

    async def mark_thread_read(self, reader_id: str, other_id: str) -> int:
        changed = 0
        for doc in self.docs:
            if (
                doc["senderId"] == other_id
                and doc["receiverId"] == reader_id
                and doc["status"] == MessageStatus.UNREAD.value
            ):
                doc["status"] = MessageStatus.READ.value
                changed += 1
        return changed

    async def list_for_user(self, user_id: str) -> List[ChatMessage]:
        found = [doc for doc in self.docs if user_id in (doc["senderId"], doc["receiverId"])]
        # ascending then reversed, so ties keep the latest insert first
        found.sort(key=lambda doc: doc["createdAt"])
        found.reverse()
        return [ChatMessage.from_document(doc) for doc in found]


class MemoryWaliContactStore(_MemoryCollection, WaliContactStore):
    name = Collections.WALI_CONTACTS

    async def insert(self, record: WaliContactRecord) -> WaliContactRecord:
        self.docs.append(record.to_document())
        return record

    async def list_for_subject(self, subject_user_id: str) -> List[WaliContactRecord]:
        found = [doc for doc in self.docs if doc["subjectUserId"] == subject_user_id]
        found.sort(key=lambda doc: doc["createdAt"], reverse=True)
        return [WaliContactRecord.from_document(doc) for doc in found]


class MemoryActivityStore(ActivityStore):

    def __init__(self, storage: "MemoryStorage"):
        self.storage = storage

    async def log(self, entry: ActivityLog) -> ActivityLog:
        self.storage.collections[Collections.ACTIVITY_LOGS].append(entry.to_document())
        return entry

    async def notify(self, notification: Notification) -> Notification:
        self.storage.collections[Collections.NOTIFICATIONS].append(notification.to_document())
        return notification

    async def list_notifications(self, user_id: str) -> List[Notification]:
        found = [doc for doc in self.storage.collections[Collections.NOTIFICATIONS] if doc["userId"] == user_id]
        found.sort(key=lambda doc: doc["createdAt"], reverse=True)
        return [Notification.from_document(doc) for doc in found]

    def activity_for(self, user_id: str) -> List[ActivityLog]:
        return [
            ActivityLog.from_document(doc)
            for doc in self.storage.collections[Collections.ACTIVITY_LOGS]
            if doc["userId"] == user_id
        ]


class MemoryMilestoneStore(_MemoryCollection, MilestoneStore):
    name = Collections.THREAD_MILESTONES

    async def claim(self, milestone: ThreadMilestone) -> bool:
        if self.find_one(pairKey=milestone.pair_key, milestone=milestone.milestone) is not None:
            return False
        self.docs.append(milestone.to_document())
        return True

    async def release(self, pair_key: str, milestone: int) -> None:
        doc = self.find_one(pairKey=pair_key, milestone=milestone)
        if doc is not None:
            self.docs.remove(doc)


class MemoryUserDirectory(_MemoryCollection, UserDirectory):
    name = Collections.USERS

    async def find_by_id(self, user_id: str) -> Optional[User]:
        doc = self.find_one(_id=user_id)
        return User.model_validate(doc) if doc else None

    async def find_many(self, user_ids: Iterable[str]) -> List[User]:
        wanted = set(user_ids)
        return [User.model_validate(doc) for doc in self.docs if doc["_id"] in wanted]

    async def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for doc in self.docs:
            if (doc.get("email") or "").lower() == email:
                return User.model_validate(doc)
        return None

    async def find_by_username(self, username: str) -> Optional[User]:
        doc = self.find_one(username=username)
        return User.model_validate(doc) if doc else None

    async def insert(self, user: User) -> User:
        if self.find_one(_id=user.id) is not None:
            raise DuplicateKeyConflict(f"duplicate user id {user.id}")
        self.docs.append(user.to_document())
        return user

    async def update_wali_details(self, user_id: str, details: Optional[WaliDetails]) -> bool:
        doc = self.find_one(_id=user_id)
        if doc is None:
            return False
        doc["waliDetails"] = details.model_dump() if details is not None else None
        return True

    async def pull_references(self, user_id: str, fields: Sequence[str], session: Any = None) -> int:
        changed = 0
        for doc in self.docs:
            touched = False
            for field in fields:
                values = doc.get(field)
                if isinstance(values, list) and user_id in values:
                    doc[field] = [value for value in values if value != user_id]
                    touched = True
            changed += touched
        return changed

    async def delete(self, user_id: str, session: Any = None) -> bool:
        doc = self.find_one(_id=user_id)
        if doc is None:
            return False
        self.docs.remove(doc)
        return True


class MemoryStorage(Storage):
    """
    Dict-of-lists storage. Every repository call runs without awaiting,
    so each one is atomic with respect to other tasks on the loop.
    """

    def __init__(self):
        self.collections: Dict[str, List[Doc]] = defaultdict(list)
        self._transaction_lock = asyncio.Lock()
        self.relationships = MemoryRelationshipStore(self)
        self.chats = MemoryChatStore(self)
        self.wali_contacts = MemoryWaliContactStore(self)
        self.activity = MemoryActivityStore(self)
        self.milestones = MemoryMilestoneStore(self)
        self.users = MemoryUserDirectory(self)

    def seed_users(self, users: Iterable[Union[User, Doc]]) -> None:
        """
        Loads raw user documents (or models) without validation, so legacy
        shapes such as JSON-string waliDetails are stored as given.
        """
        for user in users:
            doc = user.to_document() if isinstance(user, User) else copy.deepcopy(user)
            self.collections[Collections.USERS].append(doc)

    def insert_raw(self, collection: str, document: Doc) -> None:
        self.collections[collection].append(copy.deepcopy(document))

    @asynccontextmanager
    async def transaction(self):
        async with self._transaction_lock:
            snapshot = copy.deepcopy(dict(self.collections))
            try:
                yield self
            except BaseException:
                self.collections.clear()
                self.collections.update(snapshot)
                raise

    async def delete_referencing(
        self,
        collection: str,
        fields: Sequence[str],
        user_id: str,
        session: Any = None,
    ) -> int:
        docs = self.collections[collection]
        kept = [doc for doc in docs if not references(doc, fields, user_id)]
        deleted = len(docs) - len(kept)
        docs[:] = kept
        return deleted

    async def count_referencing(self, collection: str, fields: Sequence[str], user_id: str) -> int:
        return sum(1 for doc in self.collections[collection] if references(doc, fields, user_id))
