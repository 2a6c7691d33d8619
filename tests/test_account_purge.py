import copy

import pytest

from quluub.core.exceptions import PurgeFailedError, ResourceNotFoundError
from quluub.services.account_purge import AccountPurgeCoordinator
from quluub.stores.base import Collections, StorageError, TransientStorageError


def user_doc(storage, user_id):
    return next(doc for doc in storage.collections[Collections.USERS] if doc["_id"] == user_id)


def non_empty(storage):
    return {name: docs for name, docs in copy.deepcopy(dict(storage.collections)).items() if docs}


@pytest.fixture
async def populated(container, storage, match):
    """Ahmed with a match, a thread past a report milestone, and footprints everywhere."""
    await match("ahmed", "fatima")
    await match("yusuf", "zainab")
    for i in range(5):
        await container.messaging.send("ahmed", "fatima", f"message {i}")
    await container.messaging.send("yusuf", "zainab", "unrelated")
    await container.compliance.contact_wali("ahmed", "zainab", "hello")
    await container.queue.drain()

    storage.insert_raw(Collections.PAYMENTS, {"_id": "pay-1", "userId": "ahmed", "amount": 2000})
    storage.insert_raw(Collections.PAYMENTS, {"_id": "pay-2", "userId": "yusuf", "amount": 2000})
    storage.insert_raw(Collections.SUBSCRIPTIONS, {"_id": "sub-1", "userId": "ahmed", "plan": "premium"})
    storage.insert_raw(Collections.PUSH_NOTIFICATIONS, {"_id": "push-1", "userId": "ahmed"})

    user_doc(storage, "yusuf")["favoriteUsers"] = ["ahmed", "zainab"]
    user_doc(storage, "fatima")["viewedBy"] = ["ahmed", "yusuf"]
    user_doc(storage, "zainab")["blockedUsers"] = ["ahmed"]
    return storage


async def test_purge_removes_every_reference(container, populated):
    report = await container.purge.purge_account("ahmed")

    assert report.attempts == 1
    assert report.deleted[Collections.RELATIONSHIPS] == 1
    assert report.deleted[Collections.CHATS] == 5
    assert report.deleted[Collections.THREAD_MILESTONES] == 1
    assert report.deleted[Collections.WALI_CONTACTS] == 1
    assert report.deleted[Collections.PAYMENTS] == 1
    assert report.deleted[Collections.USERS] == 1
    assert report.references_pulled == 3
    assert await container.purge.remaining_references("ahmed") == {}


async def test_purge_leaves_other_users_intact(container, populated):
    await container.purge.purge_account("ahmed")

    assert user_doc(populated, "yusuf")["favoriteUsers"] == ["zainab"]
    assert user_doc(populated, "fatima")["viewedBy"] == ["yusuf"]
    assert user_doc(populated, "zainab")["blockedUsers"] == []
    assert await populated.relationships.find_between("yusuf", "zainab") is not None
    assert await populated.chats.count_thread("yusuf", "zainab") == 1
    assert [doc["_id"] for doc in populated.collections[Collections.PAYMENTS]] == ["pay-2"]


async def test_purge_invalidates_cached_profile(container, populated):
    assert await container.profiles.get("ahmed") is not None

    await container.purge.purge_account("ahmed")

    assert await container.profiles.get("ahmed") is None


async def test_failure_rolls_back_everything(container, populated, monkeypatch):
    before = non_empty(populated)

    async def broken(user_id, fields, session=None):
        raise StorageError("write conflict on users")

    monkeypatch.setattr(populated.users, "pull_references", broken)

    with pytest.raises(PurgeFailedError) as exc_info:
        await container.purge.purge_account("ahmed")

    assert exc_info.value.code == "PURGE_FAILED"
    assert exc_info.value.details == {"attempts": 1}
    assert non_empty(populated) == before


async def test_unexpected_error_also_rolls_back(container, populated, monkeypatch):
    before = non_empty(populated)

    async def broken(user_id, session=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(populated.users, "delete", broken)

    with pytest.raises(PurgeFailedError):
        await container.purge.purge_account("ahmed")
    assert non_empty(populated) == before


async def test_transient_failure_is_retried(container, populated, monkeypatch):
    pull_references = populated.users.pull_references
    calls = []

    async def flaky(user_id, fields, session=None):
        calls.append(user_id)
        if len(calls) == 1:
            raise TransientStorageError("transaction aborted")
        return await pull_references(user_id, fields, session=session)

    monkeypatch.setattr(populated.users, "pull_references", flaky)

    report = await container.purge.purge_account("ahmed")

    assert report.attempts == 2
    assert report.deleted[Collections.CHATS] == 5
    assert await container.purge.remaining_references("ahmed") == {}


async def test_retries_exhausted(container, populated, monkeypatch):
    before = non_empty(populated)

    async def always_transient(user_id, fields, session=None):
        raise TransientStorageError("transaction aborted")

    monkeypatch.setattr(populated.users, "pull_references", always_transient)

    with pytest.raises(PurgeFailedError) as exc_info:
        await container.purge.purge_account("ahmed")

    assert exc_info.value.details == {"attempts": 3}
    assert non_empty(populated) == before


async def test_single_attempt_budget(populated, container, monkeypatch):
    purge = AccountPurgeCoordinator(populated, container.profiles, max_attempts=1)

    async def always_transient(user_id, fields, session=None):
        raise TransientStorageError("transaction aborted")

    monkeypatch.setattr(populated.users, "pull_references", always_transient)

    with pytest.raises(PurgeFailedError) as exc_info:
        await purge.purge_account("ahmed")
    assert exc_info.value.details == {"attempts": 1}


async def test_unknown_user(container):
    with pytest.raises(ResourceNotFoundError):
        await container.purge.purge_account("nobody")


async def test_remaining_references_before_purge(container, populated):
    remaining = await container.purge.remaining_references("ahmed")

    assert remaining["user"] == 1
    assert remaining[Collections.CHATS] == 5
    assert remaining[Collections.USERS] == 3
