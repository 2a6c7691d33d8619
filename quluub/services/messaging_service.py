"""
quluub/services/messaging_service.py

Purpose: Compliance-gated messaging

- Decides whether a message may be sent (match status, plan quota, Wali precondition)
- Persists accepted messages and video call invitations
- Read receipts, threads and conversation summaries
- Hands thread counts to the ComplianceNotifier without waiting on it
"""

import asyncio
import weakref
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from quluub.core.exceptions import (
    FeatureNotInPlanError,
    MalformedWaliJsonError,
    NotMatchedError,
    PlanExceededError,
    ResourceNotFoundError,
    ValidationError,
    WaliEmailRequiredError,
    WaliRequiredError,
)
from quluub.core.logging import LogContext, get_logger
from quluub.models.activity import NotificationType
from quluub.models.chat import ChatMessage, MessageStatus, MessageType
from quluub.models.plan import Plan, PlanLimits, get_plan_limits
from quluub.models.relationship import RelationshipStatus
from quluub.models.user import User, WaliState
from quluub.services.compliance_notifier import ComplianceNotifier
from quluub.services.in_app_notifier import InAppNotifier
from quluub.services.profile_cache import ProfileCache
from quluub.stores.base import ChatStore, RelationshipStore, UserDirectory
from quluub.utils.validation_utils import count_words, sanitize_message

logger = get_logger(__name__)


@dataclass
class SendCheck:
    """Result of a successful can_send: the limits that applied and how much is used."""
    limits: PlanLimits
    sent_count: int
    word_count: int

    @property
    def remaining(self) -> int:
        return max(self.limits.allowance - self.sent_count, 0)


@dataclass
class ThreadMessage:
    message: ChatMessage
    sender_name: str
    receiver_name: str


@dataclass
class ConversationSummary:
    profile: User
    last_message: ChatMessage
    unread_count: int


class MessagingGate:
    """
    Every chat write goes through here.

    Checks run in a fixed order: match status, then plan limits, then the
    Wali precondition for women. Both plan limits are inclusive bounds:
    with an allowance of N a send is refused once N messages have been sent
    to that receiver, and a body of exactly `word_limit` words is refused.
    """

    def __init__(
        self,
        relationships: RelationshipStore,
        chats: ChatStore,
        users: UserDirectory,
        compliance: ComplianceNotifier,
        notifier: InAppNotifier,
        profiles: ProfileCache,
        plan_limits: Optional[Dict[Plan, PlanLimits]] = None,
    ):
        self.relationships = relationships
        self.chats = chats
        self.users = users
        self.compliance = compliance
        self.notifier = notifier
        self.profiles = profiles
        self.plan_limits = plan_limits
        # One lock per (sender, receiver) while it is in use
        self._send_locks = weakref.WeakValueDictionary()

    async def can_send(self, sender_id: str, receiver_id: str, body: str) -> SendCheck:
        """
        Raises the first failing check, or returns the applicable limits.

        Raises:
            ValidationError: Empty body or message to self
            ResourceNotFoundError: Sender or receiver does not exist
            NotMatchedError: No matched relationship between the pair
            PlanExceededError: Allowance used up or body too long
            WaliRequiredError / WaliEmailRequiredError / MalformedWaliJsonError:
                Female sender without a usable Wali record
        """
        body = sanitize_message(body)
        if not body:
            raise ValidationError("Message cannot be empty")

        sender = await self._load_parties(sender_id, receiver_id)
        await self._require_match(sender_id, receiver_id)

        limits = get_plan_limits(sender.plan, self.plan_limits)
        sent_count = await self.chats.count_sent(sender_id, receiver_id)
        if sent_count >= limits.allowance:
            raise PlanExceededError(
                f"You have reached the {limits.allowance} message limit for your plan with this match",
                details={"plan": limits.name.value, "allowance": limits.allowance, "sentCount": sent_count},
            )

        word_count = count_words(body)
        if word_count >= limits.word_limit:
            raise PlanExceededError(
                f"Messages on your plan must be shorter than {limits.word_limit} words",
                details={"plan": limits.name.value, "wordLimit": limits.word_limit, "wordCount": word_count},
            )

        self._require_guardian(sender)
        return SendCheck(limits=limits, sent_count=sent_count, word_count=word_count)

    async def send(self, sender_id: str, receiver_id: str, body: str) -> ChatMessage:
        with LogContext(user_id=sender_id, operation="send_message"):
            async with self._send_lock(sender_id, receiver_id):
                await self.can_send(sender_id, receiver_id, body)

                message = ChatMessage(sender_id=sender_id, receiver_id=receiver_id, body=sanitize_message(body))
                await self.chats.insert(message)
            logger.info(f"Message sent to {receiver_id}")

            await self._after_insert(message)
            sender_name = await self._display_name(sender_id, "your match")
            await self.notifier.notify(
                receiver_id,
                NotificationType.NEW_MESSAGE,
                f"New message from {sender_name}",
                sender_id=sender_id,
                data={"messageId": message.id},
                persist=False,
            )
            return message

    async def send_video_call_invitation(
        self,
        sender_id: str,
        receiver_id: str,
        call_url: Optional[str] = None,
    ) -> ChatMessage:
        """
        Posts a video call invitation into the thread. Needs a match, a plan
        with video calls, and (for women) a usable Wali record.
        """
        with LogContext(user_id=sender_id, operation="video_call_invitation"):
            sender = await self._load_parties(sender_id, receiver_id)
            await self._require_match(sender_id, receiver_id)

            limits = get_plan_limits(sender.plan, self.plan_limits)
            if not limits.video_call:
                raise FeatureNotInPlanError(
                    "Video calls are available on the premium plan",
                    details={"plan": limits.name.value},
                )
            self._require_guardian(sender)

            message = ChatMessage(
                sender_id=sender_id,
                receiver_id=receiver_id,
                body=call_url or "Video call invitation",
                type=MessageType.VIDEO_CALL_INVITATION,
            )
            await self.chats.insert(message)
            logger.info(f"Video call invitation sent to {receiver_id}")

            await self._after_insert(message)
            await self.notifier.notify(
                receiver_id,
                NotificationType.VIDEO_CALL,
                f"{sender.display_name} invited you to a video call",
                sender_id=sender_id,
                data={"messageId": message.id, "callUrl": call_url},
            )
            return message

    async def mark_read(self, message_ids: Sequence[str], reader_id: Optional[str] = None) -> int:
        """
        Marks messages READ. Already-read and unknown ids are ignored.

        Args:
            message_ids: Messages to mark
            reader_id: When given, only messages addressed to this user change

        Returns:
            Number of messages that changed state
        """
        ids = list(dict.fromkeys(message_ids))
        if not ids:
            return 0
        return await self.chats.mark_read(ids, receiver_id=reader_id)

    async def get_thread(self, user_id: str, other_id: str, mark_as_read: bool = False) -> List[ThreadMessage]:
        """
        Messages between a matched pair, oldest first, with display names.
        """
        await self._require_match(user_id, other_id)

        if mark_as_read:
            changed = await self.chats.mark_thread_read(user_id, other_id)
            if changed:
                logger.debug(f"Marked {changed} messages read", extra={"user_id": user_id})

        messages = await self.chats.list_thread(user_id, other_id)
        profiles = await self.profiles.get_many([user_id, other_id])

        def name(uid: str) -> str:
            profile = profiles.get(uid)
            return profile.display_name if profile else "Deleted user"

        return [
            ThreadMessage(message=m, sender_name=name(m.sender_id), receiver_name=name(m.receiver_id))
            for m in messages
        ]

    async def get_conversations(self, user_id: str) -> List[ConversationSummary]:
        """
        Latest message and unread count per matched counterpart, most recent first.
        """
        matched = await self._matched_counterparts(user_id)
        last: Dict[str, ChatMessage] = {}
        unread: Counter = Counter()

        for message in await self.chats.list_for_user(user_id):
            other = message.receiver_id if message.sender_id == user_id else message.sender_id
            if other not in matched:
                continue
            last.setdefault(other, message)
            if message.receiver_id == user_id and message.status == MessageStatus.UNREAD.value:
                unread[other] += 1

        profiles = await self.profiles.get_many(last.keys())
        return [
            ConversationSummary(profile=profiles[other], last_message=message, unread_count=unread[other])
            for other, message in last.items()
            if other in profiles
        ]

    async def unread_count(self, user_id: str) -> int:
        """Unread messages received from matched counterparts."""
        matched = await self._matched_counterparts(user_id)
        return sum(
            1
            for message in await self.chats.list_for_user(user_id)
            if message.receiver_id == user_id
            and message.status == MessageStatus.UNREAD.value
            and message.sender_id in matched
        )

    async def _load_parties(self, sender_id: str, receiver_id: str) -> User:
        if sender_id == receiver_id:
            raise ValidationError("You cannot message yourself")

        # Fresh reads: plan and Wali details must never come from a cache
        sender = await self.users.find_by_id(sender_id)
        if sender is None:
            raise ResourceNotFoundError("Sender not found", details={"userId": sender_id})
        receiver = await self.users.find_by_id(receiver_id)
        if receiver is None:
            raise ResourceNotFoundError("Receiver not found", details={"userId": receiver_id})
        return sender

    async def _require_match(self, user_id: str, other_id: str) -> None:
        relationship = await self.relationships.find_between(user_id, other_id)
        if relationship is None or relationship.status != RelationshipStatus.MATCHED.value:
            raise NotMatchedError(
                details={"status": relationship.status if relationship else None},
            )

    async def _matched_counterparts(self, user_id: str) -> set:
        relationships = await self.relationships.list_for_user(user_id, RelationshipStatus.MATCHED.value)
        return {r.counterpart(user_id) for r in relationships}

    def _send_lock(self, sender_id: str, receiver_id: str) -> asyncio.Lock:
        """
        Serializes the allowance check and insert for one sender/receiver
        pair within this process. Separate processes can still race.
        """
        key = (sender_id, receiver_id)
        lock = self._send_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._send_locks[key] = lock
        return lock

    def _require_guardian(self, sender: User) -> None:
        if not sender.is_female:
            return
        if sender.wali_state == WaliState.MALFORMED.value:
            raise MalformedWaliJsonError()
        if sender.wali_state == WaliState.ABSENT.value or sender.wali_details is None:
            raise WaliRequiredError("Please add your Wali's details before chatting")
        if not sender.wali_details.has_valid_email:
            raise WaliEmailRequiredError("Please add your Wali's email before chatting")

    async def _after_insert(self, message: ChatMessage) -> None:
        # The message is already stored; nothing after this point may fail the send
        try:
            total = await self.chats.count_thread(message.sender_id, message.receiver_id)
            self.compliance.maybe_notify(message.sender_id, message.receiver_id, total)
        except Exception as e:
            logger.error(f"Failed to check report milestone for message {message.id}: {str(e)}")

    async def _display_name(self, user_id: str, fallback: str) -> str:
        try:
            profile = await self.profiles.get(user_id)
        except Exception as e:
            logger.warning(f"Profile lookup failed for {user_id}: {str(e)}")
            return fallback
        return profile.display_name if profile else fallback
