"""
quluub/models/activity.py

Purpose: Side records written by the relationship and messaging flows

- Activity log entries (follow, match, reject, withdraw)
- In-app notifications
- Guardian report milestones per thread
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from quluub.models.base import Document
from quluub.utils.time_utils import utcnow


class ActivityAction(str, Enum):
    FOLLOWED = "FOLLOWED"
    MATCHED = "MATCHED"
    REJECTED = "REJECTED"
    WITHDREW = "WITHDREW"


class ActivityLog(Document):
    user_id: str = Field(alias="userId")
    receiver_id: str = Field(alias="receiverId")
    action: ActivityAction
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class NotificationType(str, Enum):
    NEW_REQUEST = "new_request"
    REQUEST_ACCEPTED = "request_accepted"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_WITHDRAWN = "request_withdrawn"
    NEW_MESSAGE = "new_message"
    VIDEO_CALL = "video_call"


class Notification(Document):
    user_id: str = Field(alias="userId")
    sender_id: Optional[str] = Field(default=None, alias="senderId")
    type: NotificationType
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class ThreadMilestone(Document):
    """
    Marks a guardian report as claimed for one message-count milestone of a thread.
    Unique on (pair_key, milestone).
    """
    pair_key: str = Field(alias="pairKey")
    user_ids: List[str] = Field(alias="userIds")
    milestone: int
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
