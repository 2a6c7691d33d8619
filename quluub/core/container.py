"""
quluub/core/container.py

Purpose: Service wiring

- Builds storage, email, queue, cache and the core services from Settings
- One container per application; owned by the lifespan, never global
"""

from typing import Optional

from quluub.core.config import Settings
from quluub.core.logging import get_logger
from quluub.db.indexes import create_indexes
from quluub.db.mongo import MongoConnection
from quluub.services.account_purge import AccountPurgeCoordinator
from quluub.services.compliance_notifier import ComplianceNotifier
from quluub.services.dispatch_queue import DispatchQueue
from quluub.services.email_dispatcher import EmailDispatcher
from quluub.services.in_app_notifier import InAppNotifier
from quluub.services.messaging_service import MessagingGate
from quluub.services.profile_cache import ProfileCache
from quluub.services.push_channel import PushChannel
from quluub.services.relationship_service import RelationshipStateMachine
from quluub.stores.base import Storage
from quluub.stores.memory import MemoryStorage
from quluub.stores.mongo import MongoStorage

logger = get_logger(__name__)


class ServiceContainer:

    def __init__(self, storage: Storage, email: EmailDispatcher, config: Optional[Settings] = None):
        config = config or Settings()
        self.config = config
        self.storage = storage
        self.email = email
        self.queue = DispatchQueue()
        self.push = PushChannel()
        self.profiles = ProfileCache(storage.users, ttl_seconds=config.PROFILE_CACHE_TTL_SECONDS)
        self.notifier = InAppNotifier(storage.activity, self.push)

        self.compliance = ComplianceNotifier(
            users=storage.users,
            chats=storage.chats,
            wali_contacts=storage.wali_contacts,
            milestones=storage.milestones,
            email=email,
            queue=self.queue,
            report_interval=config.GUARDIAN_REPORT_INTERVAL,
        )
        self.relationships = RelationshipStateMachine(
            relationships=storage.relationships,
            users=storage.users,
            activity=storage.activity,
            notifier=self.notifier,
            profiles=self.profiles,
        )
        self.messaging = MessagingGate(
            relationships=storage.relationships,
            chats=storage.chats,
            users=storage.users,
            compliance=self.compliance,
            notifier=self.notifier,
            profiles=self.profiles,
        )
        self.purge = AccountPurgeCoordinator(
            storage=storage,
            profiles=self.profiles,
            max_attempts=config.PURGE_MAX_ATTEMPTS,
        )

    @classmethod
    async def from_settings(cls, config: Settings) -> "ServiceContainer":
        """
        Connects the configured storage backend and builds every service.
        """
        if config.STORAGE_BACKEND == "memory":
            logger.warning("Using in-memory storage; data is lost on restart")
            storage: Storage = MemoryStorage()
        else:
            connection = MongoConnection(config.MONGODB_URL, config.MONGODB_DB_NAME)
            await connection.connect()
            await create_indexes(connection.database)
            storage = MongoStorage(connection)

        email = EmailDispatcher(
            api_url=config.EMAIL_API_URL,
            api_key=config.EMAIL_API_KEY,
            sender=config.EMAIL_FROM,
            timeout=config.EMAIL_TIMEOUT_SECONDS,
            max_attempts=config.EMAIL_MAX_ATTEMPTS,
            retry_delay=config.EMAIL_RETRY_DELAY_SECONDS,
        )
        if not email.enabled:
            logger.warning("EMAIL_API_URL not set; guardian emails will be skipped")

        return cls(storage, email, config)

    async def close(self) -> None:
        await self.queue.shutdown()
        self.profiles.clear()
        await self.storage.close()
