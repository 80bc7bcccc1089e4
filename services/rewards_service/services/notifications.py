"""Fire-and-forget user notifications.

A failed notification is logged and dropped; it never fails the operation
that triggered it.
"""

from typing import Optional, Protocol

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.service_client import internal_post

logger = get_logger(__name__)

SERVICE_NAME = "rewards_service"


class NotificationSink(Protocol):
    async def notify(self, user_id: str, subject: str, body: str) -> None: ...


class LoggingNotificationSink:
    async def notify(self, user_id: str, subject: str, body: str) -> None:
        logger.info("Notification for %s: %s", user_id, subject)


class CommunicationsNotificationSink:
    """Delivers through the communications service's internal notification API."""

    def __init__(self, service_url: Optional[str] = None):
        self.service_url = service_url or get_settings().COMMUNICATIONS_SERVICE_URL

    async def notify(self, user_id: str, subject: str, body: str) -> None:
        try:
            response = await internal_post(
                service_url=self.service_url,
                path="/internal/notifications",
                calling_service=SERVICE_NAME,
                json={"user_id": user_id, "subject": subject, "body": body},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to notify %s (%s): %s", user_id, subject, e)
