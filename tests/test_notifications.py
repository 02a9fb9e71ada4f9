"""Tests for Slack job-run notifications."""

import json
from unittest.mock import MagicMock

import requests

from jobs.base import JobResult, JobStatus
from notifications.slack import SlackNotifier


def _resolution_result(**overrides):
    result = JobResult(
        job_name="resolution",
        status=JobStatus.SUCCESS,
        completed_at="2024-06-01T00:00:00+00:00",
        duration_seconds=3.2,
        items_processed=4,
        summary="Resolved 1/2 markets, settled 4 predictions, updated 3 agents (1 errors).",
        data={
            "markets_checked": 2,
            "markets_resolved": 1,
            "predictions_settled": 4,
            "agents_updated": 3,
            "errors": 1,
            "error_messages": ["Market pm-9: fetch failed: 502 Bad Gateway"],
        },
    )
    for key, value in overrides.items():
        setattr(result, key, value)
    return result


class TestSlackNotifier:
    def test_disabled_without_webhook(self):
        notifier = SlackNotifier("")
        assert notifier.enabled is False
        assert notifier.notify_job_run(_resolution_result()) is False

    def test_posts_blocks(self):
        notifier = SlackNotifier("https://hooks.slack.test/abc")
        notifier.session = MagicMock()
        notifier.session.post.return_value = MagicMock(status_code=200)

        assert notifier.notify_job_run(_resolution_result()) is True

        args, kwargs = notifier.session.post.call_args
        assert args[0] == "https://hooks.slack.test/abc"
        body = json.loads(kwargs["data"])
        text = json.dumps(body["blocks"])
        assert "Resolution Job Run" in text
        assert "Predictions settled:* 4" in text
        assert "fetch failed: 502 Bad Gateway" in text

    def test_error_block(self):
        blocks = SlackNotifier("x")._build_message(
            _resolution_result(status=JobStatus.ERROR, error="database is locked", data={}))
        text = json.dumps(blocks)
        assert ":x: *Status:* error" in text
        assert "database is locked" in text

    def test_non_200_returns_false(self):
        notifier = SlackNotifier("https://hooks.slack.test/abc")
        notifier.session = MagicMock()
        notifier.session.post.return_value = MagicMock(status_code=500, text="oops")
        assert notifier.notify_job_run(_resolution_result()) is False

    def test_network_error_returns_false(self):
        notifier = SlackNotifier("https://hooks.slack.test/abc")
        notifier.session = MagicMock()
        notifier.session.post.side_effect = requests.ConnectionError("unreachable")
        assert notifier.notify_job_run(_resolution_result()) is False
