from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quluub.models.chat import ChatMessage
from quluub.models.relationship import Relationship
from quluub.models.user import User
from quluub.models.wali_contact import WaliContactRecord
from quluub.services.account_purge import PurgeReport
from quluub.services.messaging_service import ConversationSummary, SendCheck, ThreadMessage
from quluub.services.relationship_service import RelationshipView


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class MessageResponse(BaseModel):
    message: str


class ResponseModel(BaseModel):
    """Serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileOut(ResponseModel):
    id: str
    username: Optional[str] = None
    fname: Optional[str] = None
    lname: Optional[str] = None
    gender: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "ProfileOut":
        return cls(id=user.id, username=user.username, fname=user.fname, lname=user.lname, gender=user.gender)


class RelationshipOut(ResponseModel):
    id: str
    follower_user_id: str
    followed_user_id: str
    status: str
    created_at: datetime

    @classmethod
    def from_model(cls, relationship: Relationship) -> "RelationshipOut":
        return cls(
            id=relationship.id,
            follower_user_id=relationship.follower_user_id,
            followed_user_id=relationship.followed_user_id,
            status=relationship.status,
            created_at=relationship.created_at,
        )


class RelationshipViewOut(ResponseModel):
    profile: ProfileOut
    relationship: RelationshipOut

    @classmethod
    def from_view(cls, view: RelationshipView) -> "RelationshipViewOut":
        return cls(profile=ProfileOut.from_user(view.profile), relationship=RelationshipOut.from_model(view.relationship))


class ChatMessageOut(ResponseModel):
    id: str
    sender_id: str
    receiver_id: str
    body: str
    status: str
    type: str
    created_at: datetime
    sender_name: Optional[str] = None
    receiver_name: Optional[str] = None

    @classmethod
    def from_model(cls, message: ChatMessage, sender_name: Optional[str] = None, receiver_name: Optional[str] = None):
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            body=message.body,
            status=message.status,
            type=message.type,
            created_at=message.created_at,
            sender_name=sender_name,
            receiver_name=receiver_name,
        )

    @classmethod
    def from_thread(cls, item: ThreadMessage) -> "ChatMessageOut":
        return cls.from_model(item.message, item.sender_name, item.receiver_name)


class ConversationOut(ResponseModel):
    profile: ProfileOut
    last_message: ChatMessageOut
    unread_count: int

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> "ConversationOut":
        return cls(
            profile=ProfileOut.from_user(summary.profile),
            last_message=ChatMessageOut.from_model(summary.last_message),
            unread_count=summary.unread_count,
        )


class SendCheckOut(ResponseModel):
    allowed: bool = True
    plan: str
    allowance: int
    sent_count: int
    remaining: int
    word_limit: int
    word_count: int
    video_call: bool

    @classmethod
    def from_check(cls, check: SendCheck) -> "SendCheckOut":
        return cls(
            plan=check.limits.name.value,
            allowance=check.limits.allowance,
            sent_count=check.sent_count,
            remaining=check.remaining,
            word_limit=check.limits.word_limit,
            word_count=check.word_count,
            video_call=check.limits.video_call,
        )


class UnreadCountOut(ResponseModel):
    unread_count: int


class MarkReadOut(ResponseModel):
    updated: int


class WaliContactOut(ResponseModel):
    id: str
    subject_user_id: str
    wali_email: str
    contacted_by_user_id: str
    message: str
    created_at: datetime

    @classmethod
    def from_model(cls, record: WaliContactRecord) -> "WaliContactOut":
        return cls(
            id=record.id,
            subject_user_id=record.subject_user_id,
            wali_email=record.wali_email,
            contacted_by_user_id=record.contacted_by_user_id,
            message=record.message,
            created_at=record.created_at,
        )


class NotificationOut(ResponseModel):
    id: str
    type: str
    message: str
    sender_id: Optional[str] = None
    data: Dict[str, Any] = {}
    read: bool
    created_at: datetime


class PurgeReportOut(ResponseModel):
    user_id: str
    deleted: Dict[str, int]
    references_pulled: int
    attempts: int

    @classmethod
    def from_report(cls, report: PurgeReport) -> "PurgeReportOut":
        return cls(
            user_id=report.user_id,
            deleted=report.deleted,
            references_pulled=report.references_pulled,
            attempts=report.attempts,
        )


class RelationshipListOut(ResponseModel):
    items: List[RelationshipViewOut]
    count: int
