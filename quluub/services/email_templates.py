"""
quluub/services/email_templates.py

Purpose: Subject and HTML for guardian-facing emails

- Chat report (full thread)
- Video call started / ended
- Explicit "contact the Wali" request
"""

from html import escape
from typing import Dict, List, Optional, Tuple

from quluub.models.chat import ChatMessage, MessageType
from quluub.models.user import User
from quluub.utils.time_utils import format_call_duration, format_timestamp, utcnow

_FOOTER = (
    '<p style="color: #999; font-size: 12px; text-align: center;">'
    "This notification is sent as part of our commitment to transparency and family involvement.<br>"
    "May Allah guide both families toward what is best."
    "</p>"
)


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">'
        f'<h1 style="color: #075e54;">{escape(title)}</h1>'
        "<p>Assalamu Alaikum,</p>"
        f"{body}"
        f"{_FOOTER}"
        "</div>"
    )


def _name(user: User) -> str:
    return escape(user.display_name)


def chat_report_email(ward: User, partner: User, messages: List[ChatMessage]) -> Tuple[str, str]:
    """
    Report sent to a user's guardians with the whole conversation so far.
    """
    names: Dict[str, str] = {ward.id: _name(ward), partner.id: _name(partner)}
    lines = []
    for message in messages:
        text = "[video call invitation]" if message.type == MessageType.VIDEO_CALL_INVITATION else escape(message.body)
        lines.append(
            f"<div><strong>{names.get(message.sender_id, 'Unknown')}:</strong> {text} "
            f"<small>{format_timestamp(message.created_at)}</small></div>"
        )

    body = (
        f"<p>This is a chat report between <strong>{_name(ward)}</strong> "
        f"and <strong>{_name(partner)}</strong>.</p>"
        f"<p><strong>Total messages:</strong> {len(messages)}<br>"
        f"<strong>Report generated:</strong> {format_timestamp(utcnow())}</p>"
        + ("".join(lines) or "<p><em>No messages exchanged yet.</em></p>")
    )
    return "Match Chat Report - Quluub", _wrap("Match Chat Report", body)


def video_call_email(
    ward: User,
    partner: User,
    status: str,
    duration_seconds: Optional[int] = None,
    call_url: Optional[str] = None,
) -> Tuple[str, str]:
    if status == "ended":
        body = (
            f"<p>The video call between <strong>{_name(ward)}</strong> and "
            f"<strong>{_name(partner)}</strong> has ended.</p>"
            f"<p><strong>Duration:</strong> {format_call_duration(duration_seconds)}</p>"
        )
        return "Video Call Ended - Quluub", _wrap("Video Call Ended", body)

    body = (
        f"<p><strong>{_name(ward)}</strong> is about to have a video call with "
        f"<strong>{_name(partner)}</strong> on our platform.</p>"
        f"<p><strong>Time:</strong> {format_timestamp(utcnow())}</p>"
    )
    if call_url:
        body += f'<p><a href="{escape(call_url, quote=True)}">Join Call</a></p>'
    return "Video Call Notification - Quluub", _wrap("Video Call Notification", body)


def contact_wali_email(ward: User, requester: User, note: str) -> Tuple[str, str]:
    body = (
        f"<p><strong>{_name(requester)}</strong> would like to get in touch with you "
        f"regarding <strong>{_name(ward)}</strong>.</p>"
    )
    if note:
        body += f"<blockquote>{escape(note)}</blockquote>"
    if requester.email:
        body += f"<p>You can reply to them at {escape(requester.email)}.</p>"
    return "Important: Contact Request - Quluub", _wrap("Contact Request", body)
