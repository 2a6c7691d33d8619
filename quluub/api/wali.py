"""
quluub/api/wali.py

Purpose: Guardian (Wali) endpoints

- Contact another user's Wali
- Video call start/end notices
- Update the caller's own Wali details
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends

from quluub.api.deps import get_container, get_current_user_id
from quluub.core.container import ServiceContainer
from quluub.core.exceptions import ResourceNotFoundError
from quluub.core.logging import get_logger
from quluub.models.user import WaliDetails
from quluub.schemas.requests import ContactWaliBody, UpdateWaliDetailsBody, VideoCallNotice
from quluub.schemas.response import MessageResponse, WaliContactOut

logger = get_logger(__name__)
router = APIRouter(prefix="/wali", tags=["Wali"])


@router.post("/contact", response_model=WaliContactOut, status_code=201)
async def contact_wali(
    body: ContactWaliBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    record = await container.compliance.contact_wali(user_id, body.target_user_id, body.message)
    return WaliContactOut.from_model(record)


@router.post("/video-call-notification", response_model=MessageResponse, status_code=202)
async def video_call_notification(
    body: Annotated[VideoCallNotice, Body(discriminator="status")],
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    """
    Accepted immediately; guardian emails are sent in the background.
    """
    container.compliance.notify_video_call_guardians(user_id, body.recipient_id, body)
    return MessageResponse(message=f"Video call {body.status} notification queued")


@router.put("/details", response_model=MessageResponse)
async def update_wali_details(
    body: UpdateWaliDetailsBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    details = WaliDetails(**body.model_dump())
    updated = await container.storage.users.update_wali_details(user_id, details)
    if not updated:
        raise ResourceNotFoundError("User not found")
    container.profiles.invalidate(user_id)
    logger.info("Wali details updated", extra={"user_id": user_id})
    return MessageResponse(message="Wali details updated")
