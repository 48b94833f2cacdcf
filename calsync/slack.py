"""Slack notification for sync runs.

Posts a plain-text run summary through an incoming webhook when a pass
recorded failures.
"""

import logging
import requests
from typing import Optional

from .reconcile import SyncReport

logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 10


class SlackNotifier:
    """Sends run summaries to a Slack incoming webhook."""

    def __init__(self, webhook_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.webhook_url = webhook_url
        self.session = session or requests.Session()
        if not self.webhook_url:
            logger.debug("SLACK_WEBHOOK_URL not set. Slack notifications will be disabled.")

    def send_plain(self, message: str) -> bool:
        """Send a simple text message to Slack.

        Args:
            message: Plain text message

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.webhook_url:
            return False

        payload = {"text": message}
        try:
            response = self.session.post(self.webhook_url, json=payload, timeout=10)
            if response.status_code != 200:
                logger.error(f"Slack notification failed: {response.status_code} - {response.text}")
                return False
            logger.info("Slack notification sent successfully")
            return True
        except requests.RequestException as e:
            logger.exception(f"Failed to send Slack notification: {e}")
            return False

    def format_report(self, report: SyncReport) -> str:
        lines = [f"Calendar sync finished with {report.failed} failure(s)", report.summary()]
        for item_id, error in report.failures[:MAX_LISTED_FAILURES]:
            lines.append(f"- {item_id}: {error}")
        if report.failed > MAX_LISTED_FAILURES:
            lines.append(f"... and {report.failed - MAX_LISTED_FAILURES} more")
        return "\n".join(lines)

    def send_run_report(self, report: SyncReport) -> bool:
        """Notify about a finished run; quiet runs are not reported."""
        if not report.failed:
            return False
        return self.send_plain(self.format_report(report))

    def send_run_failed(self, error: Exception) -> bool:
        return self.send_plain(f"Calendar sync aborted: {error}")
