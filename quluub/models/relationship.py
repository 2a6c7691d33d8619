"""
quluub/models/relationship.py

Purpose: Match-request lifecycle

- Relationship statuses and the transitions allowed between them
- Normalized pair key backing the one-relationship-per-pair constraint
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import Field, model_validator

from quluub.models.base import Document
from quluub.utils.time_utils import utcnow


class RelationshipStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    REJECTED = "rejected"


# matched and rejected are terminal; withdrawal and purge delete the document
STATE_TRANSITIONS: Dict[RelationshipStatus, List[RelationshipStatus]] = {
    RelationshipStatus.PENDING: [
        RelationshipStatus.MATCHED,
        RelationshipStatus.REJECTED,
    ],
    RelationshipStatus.MATCHED: [],
    RelationshipStatus.REJECTED: [],
}


def is_valid_transition(from_status: str, to_status: str) -> bool:
    """
    Checks if a status transition is valid.

    Args:
        from_status: Current status
        to_status: Target status

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed = STATE_TRANSITIONS.get(RelationshipStatus(from_status), [])
    return RelationshipStatus(to_status) in allowed


def make_pair_key(user_a: str, user_b: str) -> str:
    """
    Direction-independent key for a pair of users.
    """
    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


class Relationship(Document):
    follower_user_id: str = Field(alias="followerUserId")
    followed_user_id: str = Field(alias="followedUserId")
    status: RelationshipStatus = RelationshipStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    pair_key: str = Field(default="", alias="pairKey")

    @model_validator(mode="after")
    def fill_pair_key(self):
        if not self.pair_key:
            self.pair_key = make_pair_key(self.follower_user_id, self.followed_user_id)
        return self

    def involves(self, user_id: str) -> bool:
        return user_id in (self.follower_user_id, self.followed_user_id)

    def counterpart(self, user_id: str) -> str:
        return self.followed_user_id if user_id == self.follower_user_id else self.follower_user_id
