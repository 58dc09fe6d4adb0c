"""Slack Webhook Client - Imperative Shell.

This module posts alert payloads to Slack incoming webhooks.
All I/O is contained here; message formatting is in the core module.
Broadcasts are fire-and-forget: failures are reported in the response,
never raised.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests

from quakerisk.core.alerts import BroadcastChannel


logger = logging.getLogger(__name__)


# Default timeout for webhook requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class SlackResponse:
    """Response from a Slack webhook.

    Attributes:
        success: Whether the message was accepted
        status_code: HTTP status code (0 when no response arrived)
        error: Error message if failed
        channel: Name of the channel the message went to
    """
    success: bool
    status_code: int
    error: str | None = None
    channel: str | None = None


class SlackClient:
    """Client for broadcasting alerts via Slack webhooks.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def send_message(
        self,
        webhook_url: str,
        payload: dict[str, Any],
    ) -> SlackResponse:
        """Post one payload to a webhook.

        This method performs HTTP I/O.

        Args:
            webhook_url: Slack incoming webhook URL
            payload: Message payload (from formatter)

        Returns:
            SlackResponse indicating success or failure
        """
        try:
            response = requests.post(
                webhook_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.error("Slack webhook request timed out")
            return SlackResponse(success=False, status_code=0, error="Request timed out")
        except requests.RequestException as e:
            logger.error("Slack webhook request failed: %s", e)
            return SlackResponse(success=False, status_code=0, error=str(e))

        if response.status_code != 200:
            logger.warning(
                "Slack webhook returned non-200: %d - %s",
                response.status_code,
                response.text,
            )
            return SlackResponse(
                success=False,
                status_code=response.status_code,
                error=response.text,
            )

        return SlackResponse(success=True, status_code=response.status_code)

    def broadcast(
        self,
        payload: dict[str, Any],
        channels: list[BroadcastChannel],
    ) -> list[SlackResponse]:
        """Post a payload to every channel, continuing past failures.

        Returns:
            One response per channel, in channel order
        """
        results = []
        for channel in channels:
            result = self.send_message(channel.webhook_url, payload)
            result.channel = channel.name
            if result.success:
                logger.info("Alert broadcast to %s", channel.name)
            results.append(result)
        return results
