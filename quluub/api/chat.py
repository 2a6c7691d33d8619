"""
quluub/api/chat.py

Purpose: Messaging endpoints

- Pre-flight check, send, video call invitations
- Threads, conversation list, unread count and read receipts
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from quluub.api.deps import get_container, get_current_user_id
from quluub.core.container import ServiceContainer
from quluub.schemas.requests import MarkReadBody, SendMessageBody, VideoCallInvitationBody
from quluub.schemas.response import (
    ChatMessageOut,
    ConversationOut,
    MarkReadOut,
    SendCheckOut,
    UnreadCountOut,
)

router = APIRouter(prefix="/chats", tags=["Chat"])


@router.post("/can-send", response_model=SendCheckOut)
async def can_send(
    body: SendMessageBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    check = await container.messaging.can_send(user_id, body.receiver_id, body.message)
    return SendCheckOut.from_check(check)


@router.post("", response_model=ChatMessageOut, status_code=201)
async def send_message(
    body: SendMessageBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    message = await container.messaging.send(user_id, body.receiver_id, body.message)
    return ChatMessageOut.from_model(message)


@router.post("/video-call-invitation", response_model=ChatMessageOut, status_code=201)
async def send_video_call_invitation(
    body: VideoCallInvitationBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    message = await container.messaging.send_video_call_invitation(user_id, body.receiver_id, body.call_url)
    return ChatMessageOut.from_model(message)


@router.put("/read", response_model=MarkReadOut)
async def mark_read(
    body: MarkReadBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    updated = await container.messaging.mark_read(body.message_ids, reader_id=user_id)
    return MarkReadOut(updated=updated)


@router.get("/conversations", response_model=List[ConversationOut])
async def get_conversations(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    summaries = await container.messaging.get_conversations(user_id)
    return [ConversationOut.from_summary(s) for s in summaries]


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    return UnreadCountOut(unread_count=await container.messaging.unread_count(user_id))


@router.get("/{other_user_id}", response_model=List[ChatMessageOut])
async def get_thread(
    other_user_id: str,
    mark_as_read: bool = Query(default=True, alias="markAsRead"),
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    thread = await container.messaging.get_thread(user_id, other_user_id, mark_as_read=mark_as_read)
    return [ChatMessageOut.from_thread(item) for item in thread]
