"""
quluub/models/user.py

Purpose: User document model (read-mostly in the core)

- Gender and plan used by compliance and quota checks
- Structured Wali (guardian) details, parsed once at the document boundary
- Parent email for chat reports
- Cross-reference arrays cleaned up on account deletion
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from quluub.models.plan import Plan
from quluub.utils.validation_utils import is_valid_email, normalize_email


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class WaliState(str, Enum):
    """
    Outcome of parsing the stored guardian record.
    """
    ABSENT = "ABSENT"
    PRESENT = "PRESENT"
    MALFORMED = "MALFORMED"


class WaliDetails(BaseModel):
    """
    Guardian (Wali) contact record.
    """
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, v):
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("email must be a string")
        return v.strip() or None

    @property
    def has_valid_email(self) -> bool:
        return is_valid_email(self.email)


def parse_wali_details(raw: Any) -> Tuple[WaliState, Optional[WaliDetails]]:
    """
    Parses a stored guardian record.

    Legacy documents hold a JSON-encoded string; newer ones an embedded object.

    Returns:
        (state, details) where details is set only for PRESENT
    """
    if raw is None or raw == "" or raw == {}:
        return WaliState.ABSENT, None

    if isinstance(raw, WaliDetails):
        return WaliState.PRESENT, raw

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return WaliState.MALFORMED, None
        if raw is None or raw == {}:
            return WaliState.ABSENT, None

    if not isinstance(raw, dict):
        return WaliState.MALFORMED, None

    try:
        return WaliState.PRESENT, WaliDetails.model_validate(raw)
    except PydanticValidationError:
        return WaliState.MALFORMED, None


class User(BaseModel):
    """
    Profile fields the core reads. Everything else on the stored document is ignored.
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True, extra="ignore")

    id: str = Field(alias="_id")
    username: Optional[str] = None
    email: Optional[str] = None
    fname: Optional[str] = None
    lname: Optional[str] = None
    gender: Optional[Gender] = None
    plan: str = Plan.FREEMIUM.value
    wali_details: Optional[WaliDetails] = Field(default=None, alias="waliDetails")
    wali_state: WaliState = Field(default=WaliState.ABSENT, alias="waliState")
    parent_email: Optional[str] = Field(default=None, alias="parentEmail")
    blocked_users: List[str] = Field(default_factory=list, alias="blockedUsers")
    favorite_users: List[str] = Field(default_factory=list, alias="favoriteUsers")
    viewed_by: List[str] = Field(default_factory=list, alias="viewedBy")

    @model_validator(mode="before")
    @classmethod
    def parse_guardian_record(cls, data: Any):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "_id" in data and not isinstance(data["_id"], str):
            data["_id"] = str(data["_id"])
        raw = data.pop("waliDetails", data.pop("wali_details", None))
        state, details = parse_wali_details(raw)
        data["waliDetails"] = details
        data["waliState"] = state
        return data

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in (Gender.MALE.value, Gender.FEMALE.value) else None
        return v

    @field_validator("plan", mode="before")
    @classmethod
    def default_plan(cls, v):
        return v or Plan.FREEMIUM.value

    @property
    def is_female(self) -> bool:
        return self.gender == Gender.FEMALE

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.fname, self.lname) if part)
        return full or self.username or self.id

    def opposite_gender(self) -> Optional[str]:
        if self.gender is None:
            return None
        return Gender.MALE.value if self.is_female else Gender.FEMALE.value

    def guardian_emails(self) -> List[str]:
        """
        Addresses that oversee this user's conversations:
        the parent email (when distinct from the user's own) and, for women,
        the Wali email.
        """
        recipients: List[str] = []
        own = normalize_email(self.email)
        parent = normalize_email(self.parent_email)
        if parent and parent != own and is_valid_email(parent):
            recipients.append(parent)
        if self.is_female and self.wali_details is not None and self.wali_details.has_valid_email:
            wali = normalize_email(self.wali_details.email)
            if wali not in recipients:
                recipients.append(wali)
        return recipients

    def to_document(self) -> Dict[str, Any]:
        document = self.model_dump(by_alias=True, exclude={"wali_state"})
        document["waliDetails"] = self.wali_details.model_dump() if self.wali_details else None
        return document
