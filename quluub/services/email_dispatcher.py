"""
quluub/services/email_dispatcher.py

Purpose: Outbound email through an HTTP email API

- Bounded timeout per attempt
- Small fixed retry budget, then log and drop
- Never raises to the caller
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from quluub.core.logging import LogContext, get_logger

logger = get_logger(__name__)


class EmailDispatcher:
    """
    Sends transactional email by POSTing to the configured provider endpoint.
    Without an endpoint the dispatcher is disabled and every send returns False.
    """

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str] = None,
        sender: str = "Quluub <admin@quluub.com>",
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(self, to: str, subject: str, html: str) -> bool:
        """
        Sends one email.

        Args:
            to: Recipient address
            subject: Subject line
            html: Rendered HTML body

        Returns:
            True if the provider accepted the message
        """
        if not self.enabled:
            logger.warning(f"Email API not configured, skipping '{subject}'", extra={"recipient": to})
            return False

        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
        }

        with LogContext(recipient=to, operation="email"):
            for attempt in range(1, self.max_attempts + 1):
                try:
                    async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                        response = await client.post(self.api_url, json=payload, headers=self._headers())

                    if response.is_success:
                        logger.info(f"Email sent: {subject}")
                        return True

                    if 400 <= response.status_code < 500 and response.status_code != 429:
                        logger.error(
                            f"Email API rejected message ({response.status_code}): {response.text[:200]}"
                        )
                        return False

                    logger.warning(
                        f"Email API returned {response.status_code} (attempt {attempt}/{self.max_attempts})"
                    )

                except httpx.TimeoutException:
                    logger.warning(f"Email API timeout (attempt {attempt}/{self.max_attempts})")
                except httpx.RequestError as e:
                    logger.warning(f"Email API network error (attempt {attempt}/{self.max_attempts}): {e}")

                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay)

            logger.error(f"Dropping email '{subject}' after {self.max_attempts} attempts")
            return False
