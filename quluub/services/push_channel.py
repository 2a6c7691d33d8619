"""
quluub/services/push_channel.py

Purpose: Best-effort real-time fan-out to connected users

- Per-user listener registry (one per open websocket)
- Listener failures drop that listener; emit never raises
"""

from typing import Any, Awaitable, Callable, Dict, List

from quluub.core.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[[str, Dict[str, Any]], Awaitable[None]]


class PushChannel:
    """
    In-process registry of push listeners keyed by user id.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, user_id: str, listener: Listener) -> None:
        self._listeners.setdefault(user_id, []).append(listener)
        logger.debug(f"Push listener added for user {user_id}")

    def unsubscribe(self, user_id: str, listener: Listener) -> None:
        listeners = self._listeners.get(user_id, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(user_id, None)

    def is_connected(self, user_id: str) -> bool:
        return bool(self._listeners.get(user_id))

    async def emit(self, user_id: str, event: str, payload: Dict[str, Any]) -> int:
        """
        Delivers an event to every listener of `user_id`.

        Returns:
            Number of listeners that accepted the event
        """
        delivered = 0
        for listener in list(self._listeners.get(user_id, [])):
            try:
                await listener(event, payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Push to user {user_id} failed, dropping listener: {e}")
                self.unsubscribe(user_id, listener)
        return delivered
