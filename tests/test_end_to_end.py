"""
Request, match, chat under guardian oversight, then try to withdraw.
"""
import pytest

from quluub.core.exceptions import InvalidStateTransitionError
from quluub.models.relationship import RelationshipStatus

GUARDIANS = ["abdullah.wali@example.com", "ahmed.father@example.com"]


async def test_matched_chat_reports_once_and_cannot_be_withdrawn(container, email_recorder):
    relationship = await container.relationships.send_request("ahmed", "fatima")
    assert relationship.status == RelationshipStatus.PENDING.value

    matched = await container.relationships.respond(relationship.id, "fatima", "matched")
    assert matched.status == RelationshipStatus.MATCHED.value

    for i in range(4):
        await container.messaging.send("ahmed", "fatima", f"text {i + 1}")
    await container.queue.drain()
    assert email_recorder.calls == []

    await container.messaging.send("ahmed", "fatima", "text 5")
    await container.queue.drain()

    assert sorted(email_recorder.recipients) == GUARDIANS
    assert set(email_recorder.subjects()) == {"Match Chat Report - Quluub"}

    with pytest.raises(InvalidStateTransitionError):
        await container.relationships.withdraw(relationship.id, "fatima")

    stored = await container.storage.relationships.get(relationship.id)
    assert stored.status == RelationshipStatus.MATCHED.value


async def test_purged_account_leaves_partner_clean(container, email_recorder):
    relationship = await container.relationships.send_request("ahmed", "fatima")
    await container.relationships.respond(relationship.id, "fatima", "matched")
    for i in range(5):
        await container.messaging.send("fatima", "ahmed", f"text {i + 1}")
    await container.queue.drain()

    await container.purge.purge_account("fatima")

    assert await container.relationships.get_matches("ahmed") == []
    assert await container.messaging.get_conversations("ahmed") == []
    assert await container.storage.activity.list_notifications("ahmed") == []
    assert await container.purge.remaining_references("fatima") == {}
