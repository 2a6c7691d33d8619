"""
quluub/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Health checks and retry logic
- Proper connection lifecycle management (owned by the app container)
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio

from quluub.core.logging import get_logger

logger = get_logger(__name__)


class MongoConnection:
    """
    Owns one Motor client. Created and closed by the application lifespan.
    """

    def __init__(self, url: str, db_name: str, max_retries: int = 3, retry_delay: float = 2.0):
        self.url = url
        self.db_name = db_name
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client: Optional[AsyncIOMotorClient] = None
        self._database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> AsyncIOMotorDatabase:
        """
        Establishes connection to MongoDB with retry logic.
        Called during application startup.
        """
        if self._database is not None:
            logger.warning("MongoDB client already initialized")
            return self._database

        retry_delay = self.retry_delay

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(
                    f"Attempting to connect to MongoDB (attempt {attempt}/{self.max_retries})"
                )

                self._client = AsyncIOMotorClient(
                    self.url,
                    maxPoolSize=50,
                    minPoolSize=5,
                    serverSelectionTimeoutMS=5000,
                    connectTimeoutMS=10000,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True,
                    uuidRepresentation="standard",
                )

                self._database = self._client[self.db_name]

                await self._client.admin.command("ping")

                logger.info(f"Successfully connected to MongoDB: {self.db_name}")
                return self._database

            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(
                    f"Failed to connect to MongoDB (attempt {attempt}/{self.max_retries}): {e}"
                )
                if self._client is not None:
                    self._client.close()
                self._client = None
                self._database = None

                if attempt < self.max_retries:
                    logger.info(f"Retrying in {retry_delay} seconds...")
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2
                else:
                    logger.critical("Failed to connect to MongoDB after all retries")
                    raise ConnectionError("Could not establish MongoDB connection") from e

    async def close(self):
        """
        Closes the MongoDB connection.
        Called during application shutdown.
        """
        if self._client:
            logger.info("Closing MongoDB connection")
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    async def check_health(self) -> bool:
        """
        Checks if the database connection is healthy.
        """
        if self._client is None:
            logger.error("MongoDB client not initialized")
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("Database not initialized. Call connect() during startup.")
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise RuntimeError("Database not initialized. Call connect() during startup.")
        return self._database
