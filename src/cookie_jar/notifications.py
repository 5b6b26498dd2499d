"""Notification sinks for low completion probability alerts."""

from __future__ import annotations

import logging
import uuid

from cookie_jar.models import NotificationResult

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Record alerts in the log instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, object]] = []

    async def send_low_probability_alert(
        self,
        contributor_email: str,
        contributor_name: str,
        issue_title: str,
        issue_number: int,
        repo_name: str,
        current_probability: float,
        benchmark: float,
        issue_url: str,
    ) -> NotificationResult:
        logger.warning(
            "Low completion probability for @%s on %s#%d (%s): %.0f%% < %.0f%% [%s]",
            contributor_name, repo_name, issue_number, issue_title,
            current_probability, benchmark, issue_url,
        )
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        self.sent.append({
            "message_id": message_id,
            "to": contributor_email,
            "contributor": contributor_name,
            "issue_number": issue_number,
            "repository": repo_name,
            "probability": current_probability,
        })
        return NotificationResult(success=True, message_id=message_id)
