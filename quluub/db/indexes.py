"""
quluub/db/indexes.py

Purpose: Database index management

- Unique pair-key index (one relationship per unordered pair)
- Unique guardian report milestones per thread
- Lookup indexes for every user-referencing field touched by account deletion
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from quluub.core.logging import get_logger
from quluub.stores.base import Collections

logger = get_logger(__name__)


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        logger.info("Creating database indexes...")

        # ==============================================
        # RELATIONSHIPS
        # ==============================================
        relationships = db[Collections.RELATIONSHIPS]

        # Storage-level guard against racing sendRequest calls
        await relationships.create_index("pairKey", unique=True, name="pair_key_unique")
        await relationships.create_index(
            [("followerUserId", ASCENDING), ("status", ASCENDING)],
            name="follower_status_idx"
        )
        await relationships.create_index(
            [("followedUserId", ASCENDING), ("status", ASCENDING)],
            name="followed_status_idx"
        )
        logger.debug("Created relationship indexes")

        # ==============================================
        # CHATS
        # ==============================================
        chats = db[Collections.CHATS]

        await chats.create_index(
            [("senderId", ASCENDING), ("receiverId", ASCENDING), ("createdAt", ASCENDING)],
            name="thread_idx"
        )
        await chats.create_index(
            [("receiverId", ASCENDING), ("status", ASCENDING)],
            name="unread_idx"
        )
        logger.debug("Created chat indexes")

        # ==============================================
        # GUARDIAN REPORT MILESTONES
        # ==============================================
        milestones = db[Collections.THREAD_MILESTONES]

        await milestones.create_index(
            [("pairKey", ASCENDING), ("milestone", ASCENDING)],
            unique=True,
            name="pair_milestone_unique"
        )
        await milestones.create_index("userIds", name="milestone_users_idx")
        logger.debug("Created thread milestone indexes")

        # ==============================================
        # AUDIT AND SIDE COLLECTIONS
        # ==============================================
        await db[Collections.WALI_CONTACTS].create_index(
            [("subjectUserId", ASCENDING), ("createdAt", DESCENDING)],
            name="wali_subject_idx"
        )
        await db[Collections.WALI_CONTACTS].create_index("contactedByUserId", name="wali_contacted_by_idx")
        await db[Collections.ACTIVITY_LOGS].create_index("userId", name="activity_user_idx")
        await db[Collections.ACTIVITY_LOGS].create_index("receiverId", name="activity_receiver_idx")
        await db[Collections.NOTIFICATIONS].create_index(
            [("userId", ASCENDING), ("createdAt", DESCENDING)],
            name="notification_user_idx"
        )
        await db[Collections.PUSH_NOTIFICATIONS].create_index("userId", name="push_user_idx")
        await db[Collections.PAYMENTS].create_index("userId", name="payment_user_idx")
        await db[Collections.SUBSCRIPTIONS].create_index("userId", name="subscription_user_idx")

        # ==============================================
        # USERS (cross-reference arrays)
        # ==============================================
        users = db[Collections.USERS]
        for field in ("blockedUsers", "favoriteUsers", "viewedBy"):
            await users.create_index(field, name=f"{field}_idx")

        logger.info("All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
