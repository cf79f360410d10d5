"""Slack incoming-webhook dispatcher."""

import logging

import httpx

from hippo.adapters.notify.base import AbstractDispatcher
from hippo.core.errors import DeliveryAppError
from hippo.schemas.slack import SlackMessage

logger = logging.getLogger(__name__)


class SlackWebhookDispatcher(AbstractDispatcher):
    """POSTs messages as JSON to a Slack incoming webhook.

    Uses a synchronous httpx client: dispatch runs in the post-response
    background task, off the request path.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            webhook_url: Slack incoming webhook URL (a secret).
            timeout_seconds: Timeout for the whole call in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def send(self, message: SlackMessage) -> None:
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(
                    self.webhook_url,
                    json=message.model_dump(),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise DeliveryAppError(
                code="slack_unreachable",
                message=f"Slack webhook request failed: {type(exc).__name__}",
            ) from exc

        if not 200 <= response.status_code <= 299:
            raise DeliveryAppError(
                code="slack_webhook_failed",
                message="Slack webhook failed",
                details={"http_status": response.status_code},
            )

        logger.info(
            "slack.delivered",
            extra={"status_code": response.status_code, "text": message.text},
        )
