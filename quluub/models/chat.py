"""
quluub/models/chat.py

Purpose: Chat message document

- Read receipts (UNREAD -> READ only)
- Text messages and video call invitations
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from quluub.models.base import Document
from quluub.utils.time_utils import utcnow


class MessageStatus(str, Enum):
    UNREAD = "UNREAD"
    READ = "READ"


class MessageType(str, Enum):
    TEXT = "text"
    VIDEO_CALL_INVITATION = "video_call_invitation"


class ChatMessage(Document):
    sender_id: str = Field(alias="senderId")
    receiver_id: str = Field(alias="receiverId")
    body: str
    status: MessageStatus = MessageStatus.UNREAD
    type: MessageType = MessageType.TEXT
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
