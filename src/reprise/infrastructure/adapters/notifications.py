"""
Notification adapters.

ResendNotificationSender delivers reminders through the Resend email API.
LogNotificationSender is used when no API key is configured: it logs the
rendered email and reports success.
"""

import logging

import httpx

from reprise.domain.constants import (
    DEFAULT_DISPATCH_TIMEOUT,
    DEFAULT_EMAIL_FROM,
    EMAIL_SUBJECT,
    RESEND_API_URL,
)
from reprise.domain.models import Item
from reprise.domain.ports import NotificationSender, SendResult


def render_reminder(items: list[Item]) -> str:
    """Plain-text body listing the selected items."""
    lines = ["Hi,", "", "Here's what to revisit today:", ""]
    for i, item in enumerate(items, start=1):
        entry = f"{i}. {item.title or item.id}"
        if item.link:
            entry += f" - {item.link}"
        lines.append(entry)
    lines += ["", "Keep going!", ""]
    return "\n".join(lines)


class LogNotificationSender(NotificationSender):
    """Development sender: writes the email to the log instead of sending it."""

    def __init__(self, from_address: str = DEFAULT_EMAIL_FROM):
        self.from_address = from_address
        self.logger = logging.getLogger(__name__)

    async def send(self, address: str, items: list[Item]) -> SendResult:
        self.logger.info(
            "=== EMAIL SIMULATION ===\n"
            f"To: {address}\n"
            f"From: {self.from_address}\n"
            f"Subject: {EMAIL_SUBJECT}\n\n"
            f"{render_reminder(items)}"
            "========================"
        )
        return SendResult(ok=True, message="simulated")


class ResendNotificationSender(NotificationSender):
    """Adapter for the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_address: str = DEFAULT_EMAIL_FROM,
        url: str = RESEND_API_URL,
        timeout: float = DEFAULT_DISPATCH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.url = url
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, address: str, items: list[Item]) -> SendResult:
        payload = {
            "from": self.from_address,
            "to": [address],
            "subject": EMAIL_SUBJECT,
            "text": render_reminder(items),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            client = await self._get_client()
            resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            return SendResult(ok=False, message=f"failed to send request: {e}")

        if resp.status_code >= 300:
            return SendResult(
                ok=False,
                message=f"resend api error (status {resp.status_code}): {resp.text}",
            )

        self.logger.debug(f"Resend accepted reminder for {address}: {resp.text}")
        return SendResult(ok=True, message="sent")
