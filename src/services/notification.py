import logging
from typing import Optional
import httpx
from config.settings import settings


logger = logging.getLogger(__name__)


class NotificationService:
    """Fire-and-forget notification sink.

    Every message is logged. When a webhook URL is configured the message is
    also posted there; delivery failures are logged and never raised.
    """

    def __init__(self, webhook_url: Optional[str] = None, transport: httpx.AsyncBaseTransport = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self.transport = transport

    async def send_notification(self, message: str) -> None:
        logger.info(f"Notification sent: {message}")

        if not self.webhook_url:
            return

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    self.webhook_url,
                    json={"text": message},
                    timeout=settings.request_timeout_seconds
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.warning(f"Webhook rejected notification with {e.response.status_code}: {e.response.text}")
            except httpx.HTTPError as e:
                logger.warning(f"Webhook delivery failed: {e}")


notification_service = NotificationService()
