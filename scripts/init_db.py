"""
Database initialization script

Run once (or after deploys that add indexes) to create collections and indexes:
    python scripts/init_db.py
"""

import asyncio

from quluub.core.config import settings
from quluub.core.logging import get_logger, setup_logging
from quluub.db.indexes import create_indexes
from quluub.db.mongo import MongoConnection
from quluub.stores.base import Collections

setup_logging()
logger = get_logger(__name__)

VERIFIED_COLLECTIONS = (
    Collections.RELATIONSHIPS,
    Collections.CHATS,
    Collections.THREAD_MILESTONES,
    Collections.WALI_CONTACTS,
    Collections.USERS,
)


async def main():
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  Quluub Database Setup")
    logger.info("=" * 60)

    connection = MongoConnection(settings.MONGODB_URL, settings.MONGODB_DB_NAME)
    db = await connection.connect()

    try:
        await create_indexes(db)

        logger.info("Verifying indexes...")
        for collection_name in VERIFIED_COLLECTIONS:
            indexes = await db[collection_name].index_information()
            names = [name for name in indexes if name != "_id_"]
            logger.info(f"  {collection_name}: {', '.join(names) or 'none'}")

        stats = {
            name: await db[name].count_documents({})
            for name in (Collections.USERS, Collections.RELATIONSHIPS, Collections.CHATS)
        }
        logger.info(f"Current documents: {stats}")
        logger.info("Database initialization complete")

    finally:
        await connection.close()


if __name__ == "__main__":
    asyncio.run(main())
