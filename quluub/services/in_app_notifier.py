"""
quluub/services/in_app_notifier.py

Purpose: In-app notifications for relationship and chat events

- Persists a Notification for the bell icon
- Pushes the same event to the user's open connections
- Best effort: failures are logged, never raised
"""

from typing import Any, Dict, Optional

from quluub.core.logging import get_logger
from quluub.models.activity import Notification, NotificationType
from quluub.services.push_channel import PushChannel
from quluub.stores.base import ActivityStore

logger = get_logger(__name__)


class InAppNotifier:

    def __init__(self, activity: ActivityStore, push: PushChannel):
        self.activity = activity
        self.push = push

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        message: str,
        sender_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        persist: bool = True,
    ) -> None:
        """
        Args:
            user_id: Recipient
            type: Notification type, also used as the push event name
            message: Text shown to the recipient
            sender_id: User who caused the event
            data: Extra payload for the client
            persist: False for push-only events (new chat messages)
        """
        notification = Notification(
            user_id=user_id,
            sender_id=sender_id,
            type=type,
            message=message,
            data=data or {},
        )

        if persist:
            try:
                await self.activity.notify(notification)
            except Exception as e:
                logger.error(
                    f"Failed to store {notification.type} notification: {str(e)}",
                    extra={"user_id": user_id},
                )

        try:
            await self.push.emit(
                user_id,
                notification.type,
                notification.model_dump(mode="json", by_alias=True),
            )
        except Exception as e:
            logger.warning(f"Push failed for {notification.type}: {str(e)}", extra={"user_id": user_id})
