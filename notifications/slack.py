"""Slack webhook notifications for job runs.

Sends a formatted message to a Slack channel after each scheduled job,
with the run summary and, for resolution runs, the settlement counters
and the first few per-market errors.
"""

from __future__ import annotations

import json
import logging
from typing import List

import requests

from jobs.base import JobResult, JobStatus

logger = logging.getLogger(__name__)

_JOB_EMOJI = {
    "resolution": ":scales:",
    "sync": ":arrows_counterclockwise:",
}

# Resolution counters shown as their own section, in this order
_RESOLUTION_FIELDS = (
    ("markets_checked", "Markets checked"),
    ("markets_resolved", "Markets resolved"),
    ("predictions_settled", "Predictions settled"),
    ("agents_updated", "Agents updated"),
)


class SlackNotifier:
    """Sends job run summaries to Slack via Incoming Webhook."""

    def __init__(self, webhook_url: str) -> None:
        self.webhook_url = webhook_url
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def notify_job_run(self, result: JobResult) -> bool:
        """Send a Slack notification for a job run.

        Returns True if the message was sent successfully.
        """
        if not self.enabled:
            return False

        blocks = self._build_message(result)

        try:
            resp = self.session.post(
                self.webhook_url,
                data=json.dumps({"blocks": blocks}),
                timeout=10,
            )
            if resp.status_code != 200:
                logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text)
                return False
            return True
        except requests.RequestException:
            logger.exception("Failed to send Slack notification")
            return False

    def _build_message(self, result: JobResult) -> list:
        """Build Slack Block Kit message."""
        emoji = _JOB_EMOJI.get(result.job_name, ":robot_face:")
        status_emoji = ":white_check_mark:" if result.status == JobStatus.SUCCESS else ":x:"

        blocks: list = []

        blocks.append({
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{result.job_name.title()} Job Run",
                "emoji": True,
            },
        })

        duration = f"{result.duration_seconds:.1f}s" if result.duration_seconds else "N/A"
        summary_lines = [
            f"{emoji} *Job:* {result.job_name.title()}",
            f"{status_emoji} *Status:* {result.status.value}",
            f":stopwatch: *Duration:* {duration}",
            f":package: *Items Processed:* {result.items_processed}",
        ]
        if result.summary:
            summary_lines.append(f":memo: *Summary:* {result.summary}")

        blocks.append({
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "\n".join(summary_lines),
            },
        })

        counters: List[str] = [
            f"*{label}:* {result.data[key]}"
            for key, label in _RESOLUTION_FIELDS
            if key in result.data
        ]
        if counters:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": "\n".join(counters)},
            })

        if result.error:
            blocks.append({"type": "divider"})
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f":x: *Error:* ```{result.error[:500]}```",
                },
            })

        messages = result.data.get("error_messages") or []
        if messages:
            shown = "\n".join(f"• {m[:200]}" for m in messages[:5])
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f":warning: *Item errors ({result.data.get('errors', len(messages))}):*\n{shown}",
                },
            })

        blocks.append({"type": "divider"})
        blocks.append({
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": f":clock1: {result.completed_at or 'N/A'} UTC | Forecast Arena",
            }],
        })

        return blocks
