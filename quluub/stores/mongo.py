"""
quluub/stores/mongo.py

Purpose: Motor-backed storage

- Repository implementations over AsyncIOMotorDatabase
- PyMongo errors translated into StorageError / DuplicateKeyConflict / TransientStorageError
- Multi-document transactions through client sessions (replica set required)
"""

from contextlib import asynccontextmanager, contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from quluub.db.mongo import MongoConnection
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
    StorageError,
    TransientStorageError,
    UserDirectory,
    WaliContactStore,
    reference_filter,
)


@contextmanager
def translate_errors():
    """
    Re-raises PyMongo errors as storage errors.
    """
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateKeyConflict(str(e)) from e
    except PyMongoError as e:
        if e.has_error_label("TransientTransactionError") or isinstance(e, ConnectionFailure):
            raise TransientStorageError(str(e)) from e
        raise StorageError(str(e)) from e


def thread_filter(user_a: str, user_b: str) -> Dict[str, Any]:
    return {
        "$or": [
            {"senderId": user_a, "receiverId": user_b},
            {"senderId": user_b, "receiverId": user_a},
        ]
    }


def user_id_filter(user_id: str) -> Dict[str, Any]:
    """
    Users created by the legacy backend carry ObjectId keys; match either form.
    """
    if ObjectId.is_valid(user_id):
        return {"_id": {"$in": [user_id, ObjectId(user_id)]}}
    return {"_id": user_id}


class MongoRelationshipStore(RelationshipStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[Collections.RELATIONSHIPS]

    async def insert(self, relationship: Relationship) -> Relationship:
        with translate_errors():
            await self.collection.insert_one(relationship.to_document())
        return relationship

    async def get(self, relationship_id: str) -> Optional[Relationship]:
        with translate_errors():
            doc = await self.collection.find_one({"_id": relationship_id})
        return Relationship.from_document(doc) if doc else None

    async def find_between(self, user_a: str, user_b: str) -> Optional[Relationship]:
        with translate_errors():
            doc = await self.collection.find_one({"pairKey": make_pair_key(user_a, user_b)})
        return Relationship.from_document(doc) if doc else None

    async def transition(self, relationship_id: str, from_status: str, to_status: str) -> Optional[Relationship]:
        with translate_errors():
            doc = await self.collection.find_one_and_update(
                {"_id": relationship_id, "status": from_status},
                {"$set": {"status": to_status}},
                return_document=ReturnDocument.AFTER,
            )
        return Relationship.from_document(doc) if doc else None

    async def delete_if_status(self, relationship_id: str, status: str) -> bool:
        with translate_errors():
            result = await self.collection.delete_one({"_id": relationship_id, "status": status})
        return result.deleted_count > 0

    async def list_for_user(
        self,
        user_id: str,
        status: str,
        as_follower: bool = True,
        as_followed: bool = True,
    ) -> List[Relationship]:
        clauses = []
        if as_follower:
            clauses.append({"followerUserId": user_id})
        if as_followed:
            clauses.append({"followedUserId": user_id})
        if not clauses:
            return []

        with translate_errors():
            cursor = self.collection.find({"status": status, "$or": clauses}).sort("createdAt", DESCENDING)
            docs = await cursor.to_list(length=None)
        return [Relationship.from_document(doc) for doc in docs]


class MongoChatStore(ChatStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[Collections.CHATS]

    async def insert(self, message: ChatMessage) -> ChatMessage:
        with translate_errors():
            await self.collection.insert_one(message.to_document())
        return message

    async def count_sent(self, sender_id: str, receiver_id: str) -> int:
        with translate_errors():
            return await self.collection.count_documents({"senderId": sender_id, "receiverId": receiver_id})

    async def count_thread(self, user_a: str, user_b: str) -> int:
        with translate_errors():
            return await self.collection.count_documents(thread_filter(user_a, user_b))

    async def list_thread(self, user_a: str, user_b: str) -> List[ChatMessage]:
        with translate_errors():
            cursor = self.collection.find(thread_filter(user_a, user_b)).sort(
                [("createdAt", ASCENDING), ("_id", ASCENDING)]
            )
            docs = await cursor.to_list(length=None)
        return [ChatMessage.from_document(doc) for doc in docs]

    async def mark_read(self, message_ids: Sequence[str], receiver_id: Optional[str] = None) -> int:
        if not message_ids:
            return 0
        query: Dict[str, Any] = {"_id": {"$in": list(message_ids)}, "status": MessageStatus.UNREAD.value}
        if receiver_id is not None:
            query["receiverId"] = receiver_id
        with translate_errors():
            result = await self.collection.update_many(query, {"$set": {"status": MessageStatus.READ.value}})
        return result.modified_count

    async def mark_thread_read(self, reader_id: str, other_id: str) -> int:
        with translate_errors():
            result = await self.collection.update_many(
                {"senderId": other_id, "receiverId": reader_id, "status": MessageStatus.UNREAD.value},
                {"$set": {"status": MessageStatus.READ.value}},
            )
        return result.modified_count

    async def list_for_user(self, user_id: str) -> List[ChatMessage]:
        with translate_errors():
            cursor = self.collection.find(
                {"$or": [{"senderId": user_id}, {"receiverId": user_id}]}
            ).sort("createdAt", DESCENDING)
            docs = await cursor.to_list(length=None)
        return [ChatMessage.from_document(doc) for doc in docs]


class MongoWaliContactStore(WaliContactStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[Collections.WALI_CONTACTS]

    async def insert(self, record: WaliContactRecord) -> WaliContactRecord:
        with translate_errors():
            await self.collection.insert_one(record.to_document())
        return record

    async def list_for_subject(self, subject_user_id: str) -> List[WaliContactRecord]:
        with translate_errors():
            cursor = self.collection.find({"subjectUserId": subject_user_id}).sort("createdAt", DESCENDING)
            docs = await cursor.to_list(length=None)
        return [WaliContactRecord.from_document(doc) for doc in docs]


class MongoActivityStore(ActivityStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.logs = db[Collections.ACTIVITY_LOGS]
        self.notifications = db[Collections.NOTIFICATIONS]

    async def log(self, entry: ActivityLog) -> ActivityLog:
        with translate_errors():
            await self.logs.insert_one(entry.to_document())
        return entry

    async def notify(self, notification: Notification) -> Notification:
        with translate_errors():
            await self.notifications.insert_one(notification.to_document())
        return notification

    async def list_notifications(self, user_id: str) -> List[Notification]:
        with translate_errors():
            cursor = self.notifications.find({"userId": user_id}).sort("createdAt", DESCENDING)
            docs = await cursor.to_list(length=None)
        return [Notification.from_document(doc) for doc in docs]


class MongoMilestoneStore(MilestoneStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[Collections.THREAD_MILESTONES]

    async def claim(self, milestone: ThreadMilestone) -> bool:
        try:
            with translate_errors():
                await self.collection.insert_one(milestone.to_document())
        except DuplicateKeyConflict:
            return False
        return True

    async def release(self, pair_key: str, milestone: int) -> None:
        with translate_errors():
            await self.collection.delete_one({"pairKey": pair_key, "milestone": milestone})


class MongoUserDirectory(UserDirectory):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[Collections.USERS]

    async def find_by_id(self, user_id: str) -> Optional[User]:
        with translate_errors():
            doc = await self.collection.find_one(user_id_filter(user_id))
        return User.model_validate(doc) if doc else None

    async def find_many(self, user_ids: Iterable[str]) -> List[User]:
        keys: List[Any] = []
        for user_id in user_ids:
            keys.append(user_id)
            if ObjectId.is_valid(user_id):
                keys.append(ObjectId(user_id))
        if not keys:
            return []
        with translate_errors():
            docs = await self.collection.find({"_id": {"$in": keys}}).to_list(length=None)
        return [User.model_validate(doc) for doc in docs]

    async def find_by_email(self, email: str) -> Optional[User]:
        with translate_errors():
            doc = await self.collection.find_one({"email": email.strip().lower()})
        return User.model_validate(doc) if doc else None

    async def find_by_username(self, username: str) -> Optional[User]:
        with translate_errors():
            doc = await self.collection.find_one({"username": username})
        return User.model_validate(doc) if doc else None

    async def insert(self, user: User) -> User:
        with translate_errors():
            await self.collection.insert_one(user.to_document())
        return user

    async def update_wali_details(self, user_id: str, details: Optional[WaliDetails]) -> bool:
        value = details.model_dump() if details is not None else None
        with translate_errors():
            result = await self.collection.update_one(
                user_id_filter(user_id), {"$set": {"waliDetails": value}}
            )
        return result.matched_count > 0

    async def pull_references(self, user_id: str, fields: Sequence[str], session: Any = None) -> int:
        with translate_errors():
            result = await self.collection.update_many(
                reference_filter(fields, user_id),
                {"$pull": {field: user_id for field in fields}},
                session=session,
            )
        return result.modified_count

    async def delete(self, user_id: str, session: Any = None) -> bool:
        with translate_errors():
            result = await self.collection.delete_one(user_id_filter(user_id), session=session)
        return result.deleted_count > 0


class MongoStorage(Storage):
    """
    Storage over one Motor database.
    """

    def __init__(self, connection: MongoConnection):
        self.connection = connection
        self.client = connection.client
        self.db = db = connection.database
        self.relationships = MongoRelationshipStore(db)
        self.chats = MongoChatStore(db)
        self.wali_contacts = MongoWaliContactStore(db)
        self.activity = MongoActivityStore(db)
        self.milestones = MongoMilestoneStore(db)
        self.users = MongoUserDirectory(db)

    @asynccontextmanager
    async def transaction(self):
        with translate_errors():
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    yield session

    async def delete_referencing(
        self,
        collection: str,
        fields: Sequence[str],
        user_id: str,
        session: Any = None,
    ) -> int:
        with translate_errors():
            result = await self.db[collection].delete_many(reference_filter(fields, user_id), session=session)
        return result.deleted_count

    async def count_referencing(self, collection: str, fields: Sequence[str], user_id: str) -> int:
        with translate_errors():
            return await self.db[collection].count_documents(reference_filter(fields, user_id))

    async def ping(self) -> bool:
        return await self.connection.check_health()

    async def close(self) -> None:
        await self.connection.close()
