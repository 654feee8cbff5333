from __future__ import annotations

import httpx
import logging
from typing import Optional, List, Dict, Any

from ..core.exceptions import NotificationError


logger = logging.getLogger(__name__)


class EmailService:
    """Lightweight async client for the Resend email API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        sender: str = "BusBook <onboarding@resend.dev>",
        api_base: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the email client.

        Args:
            api_key: Resend API key. Without one, messages are logged instead of sent
            sender: ``From`` header value
            api_base: API root, overridable for tests or a relay
            timeout: Seconds before a send attempt is abandoned
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.api_key = api_key
        self.sender = sender
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: List[str], subject: str, text: str) -> Optional[str]:
        """Send a plaintext email and return the provider message id.

        Raises:
            NotificationError: the provider rejected the message or was unreachable
        """
        if not to:
            raise NotificationError("No recipients given")

        if not self.enabled:
            logger.info("Email delivery disabled; would send %r to %s:\n%s", subject, ", ".join(to), text)
            return None

        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(f"{self._api_base}/emails", json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise NotificationError(f"Email provider unreachable: {exc}", recipients=to) from exc

        if response.is_error:
            raise NotificationError(
                f"Email provider returned {response.status_code}: {response.text[:200]}",
                recipients=to
            )

        message_id = response.json().get("id")
        logger.info("Email %r sent to %s (id=%s)", subject, ", ".join(to), message_id)
        return message_id
