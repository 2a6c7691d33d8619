"""
quluub/schemas/requests.py

Purpose: Request bodies, validated at the HTTP boundary

- camelCase field names as sent by the web client
- Discriminated unions instead of free-form dicts
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from quluub.models.video_call import VideoCallEnded, VideoCallStarted
from quluub.utils.validation_utils import is_valid_email


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SendRequestBody(RequestBody):
    followed_user_id: str = Field(..., min_length=1)


class RespondBody(RequestBody):
    status: Literal["matched", "rejected"]


class SendMessageBody(RequestBody):
    receiver_id: str = Field(..., min_length=1)
    message: str = Field(..., max_length=5000)


class VideoCallInvitationBody(RequestBody):
    receiver_id: str = Field(..., min_length=1)
    call_url: Optional[str] = Field(default=None, max_length=2048)


class MarkReadBody(RequestBody):
    message_ids: List[str] = Field(..., max_length=500)


class ContactWaliBody(RequestBody):
    target_user_id: str = Field(..., min_length=1)
    message: str = Field(default="", max_length=2000)


class UpdateWaliDetailsBody(RequestBody):
    name: Optional[str] = Field(default=None, max_length=200)
    email: str
    phone: Optional[str] = Field(default=None, max_length=50)
    relationship: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not is_valid_email(v):
            raise ValueError("Invalid email format")
        return v


class VideoCallStartedNotice(VideoCallStarted):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    recipient_id: str = Field(..., min_length=1, alias="recipientId")


class VideoCallEndedNotice(VideoCallEnded):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    recipient_id: str = Field(..., min_length=1, alias="recipientId")


# Discriminated on "status" where it is bound as a request body
VideoCallNotice = Union[VideoCallStartedNotice, VideoCallEndedNotice]
