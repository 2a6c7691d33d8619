"""
Pytest configuration and fixtures
"""
import httpx
import pytest

from quluub.core.config import Settings
from quluub.core.container import ServiceContainer
from quluub.services.email_dispatcher import EmailDispatcher
from quluub.stores.memory import MemoryStorage

from tests.factories import EMAIL_API_URL, FATIMA_WALI, EmailRecorder, make_user


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        STORAGE_BACKEND="memory",
        EMAIL_API_URL=EMAIL_API_URL,
        EMAIL_API_KEY="test-key",
        EMAIL_MAX_ATTEMPTS=3,
        EMAIL_RETRY_DELAY_SECONDS=0,
        GUARDIAN_REPORT_INTERVAL=5,
        PROFILE_CACHE_TTL_SECONDS=60,
        PURGE_MAX_ATTEMPTS=3,
    )


@pytest.fixture
def email_recorder() -> EmailRecorder:
    return EmailRecorder()


@pytest.fixture
def email_dispatcher(email_recorder, test_settings) -> EmailDispatcher:
    return EmailDispatcher(
        api_url=test_settings.EMAIL_API_URL,
        api_key=test_settings.EMAIL_API_KEY,
        timeout=1.0,
        max_attempts=test_settings.EMAIL_MAX_ATTEMPTS,
        retry_delay=0,
        transport=httpx.MockTransport(email_recorder.handler),
    )


@pytest.fixture
def storage() -> MemoryStorage:
    storage = MemoryStorage()
    storage.seed_users([
        make_user("ahmed", parent_email="ahmed.father@example.com"),
        make_user("fatima", gender="female", wali=FATIMA_WALI),
        make_user("yusuf", plan="premium"),
        make_user("aisha", gender="female"),
        make_user("maryam", gender="female", wali={"name": "Umar", "phone": "+2348000000001"}),
        make_user("khadija", gender="female", wali="{not valid json"),
        make_user("zainab", gender="female", plan="premium", wali={"email": "zainab.wali@example.com"}),
    ])
    return storage


@pytest.fixture
def container(storage, email_dispatcher, test_settings) -> ServiceContainer:
    return ServiceContainer(storage, email_dispatcher, test_settings)


@pytest.fixture
def match(container):
    """Creates a matched relationship from `follower` to `followed`."""
    async def _match(follower: str, followed: str):
        relationship = await container.relationships.send_request(follower, followed)
        return await container.relationships.respond(relationship.id, followed, "matched")
    return _match
