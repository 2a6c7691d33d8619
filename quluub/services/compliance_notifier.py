"""
quluub/services/compliance_notifier.py

Purpose: Guardian (Wali) and parent oversight emails

- Chat reports on every 5th message of a thread (one per milestone)
- Video call start/end notices
- Explicit "contact the Wali" requests with an audit record
- All dispatch runs on the background queue; failures are logged only
"""

import asyncio
from typing import Optional, Tuple, Union

from quluub.core.exceptions import AbsentWaliDetailsError, ResourceNotFoundError, ValidationError
from quluub.core.logging import LogContext, get_logger
from quluub.models.activity import ThreadMilestone
from quluub.models.relationship import make_pair_key
from quluub.models.user import User
from quluub.models.video_call import VideoCallEnded, VideoCallStarted
from quluub.models.wali_contact import WaliContactRecord
from quluub.services.dispatch_queue import DispatchQueue
from quluub.services.email_dispatcher import EmailDispatcher
from quluub.services.email_templates import chat_report_email, contact_wali_email, video_call_email
from quluub.stores.base import ChatStore, MilestoneStore, UserDirectory, WaliContactStore
from quluub.utils.validation_utils import normalize_email

logger = get_logger(__name__)


def report_milestone(total_thread_count: int, interval: int) -> int:
    """
    Highest multiple of `interval` reached by the thread, 0 if none yet.
    """
    if total_thread_count < interval:
        return 0
    return (total_thread_count // interval) * interval


class ComplianceNotifier:
    """
    Decides who oversees a conversation and sends them the right email,
    off the request path.
    """

    def __init__(
        self,
        users: UserDirectory,
        chats: ChatStore,
        wali_contacts: WaliContactStore,
        milestones: MilestoneStore,
        email: EmailDispatcher,
        queue: DispatchQueue,
        report_interval: int = 5,
    ):
        self.users = users
        self.chats = chats
        self.wali_contacts = wali_contacts
        self.milestones = milestones
        self.email = email
        self.queue = queue
        self.report_interval = report_interval

    def maybe_notify(self, user_a: str, user_b: str, total_thread_count: int) -> Optional[asyncio.Task]:
        """
        Schedules a chat report if the thread has reached a report milestone.

        The milestone is claimed in storage before anything is sent, so each
        multiple of the interval produces one report even when concurrent
        sends observe the same or skipped counts. A claim is released again
        if the pair or thread cannot be read. When a count jumps past more
        than one multiple only the highest is reported; that report carries
        the whole thread.

        Returns:
            The background task, or None when no milestone has been reached
        """
        milestone = report_milestone(total_thread_count, self.report_interval)
        if milestone == 0:
            return None
        return self.queue.submit(
            self._send_chat_report(user_a, user_b, milestone),
            name=f"chat-report:{make_pair_key(user_a, user_b)}:{milestone}",
        )

    async def _send_chat_report(self, user_a: str, user_b: str, milestone: int) -> None:
        pair_key = make_pair_key(user_a, user_b)
        claimed = await self.milestones.claim(
            ThreadMilestone(pair_key=pair_key, user_ids=[user_a, user_b], milestone=milestone)
        )
        if not claimed:
            return

        with LogContext(user_id=user_a, operation="chat_report"):
            try:
                pair = await self._load_pair(user_a, user_b)
                messages = await self.chats.list_thread(user_a, user_b) if pair else []
            except Exception:
                # Let the next send at or past this milestone try again
                await self.milestones.release(pair_key, milestone)
                raise
            if pair is None:
                return

            logger.info(f"Sending chat report for message milestone {milestone}")
            jobs = []
            for ward, partner in (pair, pair[::-1]):
                subject, html = chat_report_email(ward, partner, messages)
                jobs.extend(self._dispatch(address, subject, html) for address in ward.guardian_emails())
            await asyncio.gather(*jobs)

    def notify_video_call_guardians(
        self,
        caller_id: str,
        recipient_id: str,
        event: Union[VideoCallStarted, VideoCallEnded],
    ) -> asyncio.Task:
        """
        Schedules call start/end notices to both parties' guardians and
        returns at once.
        """
        return self.queue.submit(
            self._send_video_call_notices(caller_id, recipient_id, event),
            name=f"video-call:{event.status}:{make_pair_key(caller_id, recipient_id)}",
        )

    async def _send_video_call_notices(
        self,
        caller_id: str,
        recipient_id: str,
        event: Union[VideoCallStarted, VideoCallEnded],
    ) -> None:
        with LogContext(user_id=caller_id, status=event.status, operation="video_call_notice"):
            pair = await self._load_pair(caller_id, recipient_id)
            if pair is None:
                return

            duration = event.duration_seconds if isinstance(event, VideoCallEnded) else None
            call_url = event.call_url if isinstance(event, VideoCallStarted) else None

            jobs = []
            for ward, partner in (pair, pair[::-1]):
                subject, html = video_call_email(ward, partner, event.status, duration, call_url)
                jobs.extend(self._dispatch(address, subject, html) for address in ward.guardian_emails())

            logger.info(f"Sending {len(jobs)} video call {event.status} notices")
            await asyncio.gather(*jobs)

    async def contact_wali(self, requester_id: str, target_user_id: str, note: str = "") -> WaliContactRecord:
        """
        Records and sends a user's request to contact another user's Wali.

        The audit record is written before dispatch and survives email failure.

        Raises:
            ValidationError: Requester and target are the same user
            ResourceNotFoundError: Either user does not exist
            AbsentWaliDetailsError: Target is not a woman with a usable Wali email
        """
        with LogContext(user_id=requester_id, operation="contact_wali"):
            if requester_id == target_user_id:
                raise ValidationError("You cannot contact your own Wali through this request")

            requester = await self.users.find_by_id(requester_id)
            if requester is None:
                raise ResourceNotFoundError("User not found", details={"userId": requester_id})
            target = await self.users.find_by_id(target_user_id)
            if target is None:
                raise ResourceNotFoundError("User not found", details={"userId": target_user_id})

            details = target.wali_details
            if not target.is_female or details is None or not details.has_valid_email:
                raise AbsentWaliDetailsError()

            record = WaliContactRecord(
                subject_user_id=target.id,
                wali_email=normalize_email(details.email),
                contacted_by_user_id=requester.id,
                message=note or "",
            )
            await self.wali_contacts.insert(record)
            logger.info("Wali contact recorded", extra={"recipient": record.wali_email})

            subject, html = contact_wali_email(target, requester, record.message)
            self.queue.submit(self._dispatch(record.wali_email, subject, html), name=f"contact-wali:{record.id}")
            return record

    async def _load_pair(self, user_a: str, user_b: str) -> Optional[Tuple[User, User]]:
        users = {user.id: user for user in await self.users.find_many([user_a, user_b])}
        if user_a not in users or user_b not in users:
            logger.warning("Skipping guardian notice, user no longer exists")
            return None
        return users[user_a], users[user_b]

    async def _dispatch(self, to: str, subject: str, html: str) -> bool:
        sent = await self.email.send(to, subject, html)
        if not sent:
            logger.warning(f"Guardian email not delivered: {subject}", extra={"recipient": to})
        return sent
