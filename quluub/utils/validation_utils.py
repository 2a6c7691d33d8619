"""
quluub/utils/validation_utils.py

Purpose: Input validation

- Email format checks for guardian contacts
- Word counting for plan limits
- Message body sanitization
"""

import re
from typing import Optional


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: Optional[str]) -> bool:
    """
    Validates an email address format.

    Args:
        email: Address to validate

    Returns:
        True if the address looks deliverable, False otherwise
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-cases and trims an address; empty input becomes None."""
    if not email or not email.strip():
        return None
    return email.strip().lower()


def count_words(body: str) -> int:
    """
    Counts words the way plan limits have always been enforced:
    the body split on single spaces, so consecutive spaces count as extra words.
    """
    return len(body.split(" "))


def sanitize_message(body: Optional[str]) -> str:
    """
    Strips surrounding whitespace and control characters from a message body.
    Interior spacing is preserved so word counting stays stable.
    """
    if not body:
        return ""
    cleaned = "".join(ch for ch in body if ch == "\n" or ch == "\t" or ch >= " ")
    return cleaned.strip()
