"""
quluub/api/account.py

Purpose: Account endpoints

- Delete the caller's account and every reference to it
- In-app notifications and their real-time stream
"""

from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from quluub.api.deps import get_container, get_current_user_id
from quluub.core.container import ServiceContainer
from quluub.core.logging import get_logger
from quluub.schemas.response import NotificationOut, PurgeReportOut

logger = get_logger(__name__)
router = APIRouter(tags=["Account"])


@router.delete("/account", response_model=PurgeReportOut)
async def delete_account(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    report = await container.purge.purge_account(user_id)
    return PurgeReportOut.from_report(report)


@router.get("/notifications", response_model=List[NotificationOut])
async def list_notifications(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    notifications = await container.storage.activity.list_notifications(user_id)
    return [NotificationOut.model_validate(n.model_dump()) for n in notifications]


@router.websocket("/notifications/ws")
async def notification_stream(websocket: WebSocket):
    """
    Pushes in-app events to the connected user until the socket closes.
    """
    user_id = (websocket.headers.get("x-user-id") or "").strip()
    container: ServiceContainer = getattr(websocket.app.state, "container", None)
    if not user_id or container is None:
        await websocket.close(code=1008)
        return

    await websocket.accept()

    async def forward(event: str, payload: dict) -> None:
        await websocket.send_json({"event": event, "payload": payload})

    container.push.subscribe(user_id, forward)
    logger.info("Notification stream opened", extra={"user_id": user_id})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Notification stream closed", extra={"user_id": user_id})
    finally:
        container.push.unsubscribe(user_id, forward)
