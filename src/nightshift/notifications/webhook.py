"""Slack webhook notifications for finished and failed runs."""

from __future__ import annotations

import logging

import httpx

from nightshift.config import settings
from nightshift.notifications.events import NightshiftEvent, RunCompleted, RunFailed
from nightshift.runs.models import RunStatus

logger = logging.getLogger(__name__)

_EMOJI = {
    RunStatus.COMPLETED: "✅",
    RunStatus.PARTIALLY_COMPLETED: "⚠️",
    RunStatus.CANCELLED: "⏹️",
    RunStatus.FAILED: "🔴",
}


class WebhookNotifier:
    """Posts run summaries to a Slack incoming webhook.

    Subscribe ``notifier.handle`` to the event bus. Only run-completed and
    run-failed events produce a message.
    """

    def __init__(self, webhook_url: str = "", timeout: float = 10.0) -> None:
        self.webhook_url = webhook_url or settings.slack_webhook_url
        self._timeout = timeout

    @property
    def is_enabled(self) -> bool:
        return bool(self.webhook_url)

    def format(self, event: NightshiftEvent) -> str | None:
        if isinstance(event, RunCompleted):
            return (
                f"{_EMOJI.get(event.status, '')} Nightshift run {event.run_id[:8]} on "
                f"*{event.project_id}*: {event.status.value} ({event.total_checks} checks)"
            )
        if isinstance(event, RunFailed):
            return (
                f"{_EMOJI[RunStatus.FAILED]} Nightshift run {event.run_id[:8]} on "
                f"*{event.project_id}* failed: {event.error}"
            )
        return None

    def handle(self, event: NightshiftEvent) -> None:
        if not self.is_enabled:
            return
        text = self.format(event)
        if text is None:
            return
        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.post(self.webhook_url, json={"text": text})
            if resp.status_code >= 400:
                logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text[:200])
        except httpx.HTTPError as e:
            logger.warning("Slack notification failed: %s", e)
