"""
quluub/models/wali_contact.py

Purpose: Audit trail of explicit guardian contact requests (append-only)
"""

from datetime import datetime

from pydantic import Field

from quluub.models.base import Document
from quluub.utils.time_utils import utcnow


class WaliContactRecord(Document):
    subject_user_id: str = Field(alias="subjectUserId")
    wali_email: str = Field(alias="waliEmail")
    contacted_by_user_id: str = Field(alias="contactedByUserId")
    message: str = ""
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
