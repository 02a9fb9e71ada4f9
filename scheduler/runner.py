"""APScheduler integration for periodic job execution.

Runs jobs on configurable schedules:
- Sync: every 30 min
- Resolution: every 15 min

Runs of the same job never overlap (max_instances=1); the conditional
writes in the store cover overlap with cron-triggered runs.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config import SchedulerConfig
from jobs.registry import JobRegistry
from notifications.slack import SlackNotifier

logger = logging.getLogger(__name__)


class SchedulerRunner:
    def __init__(self, registry: JobRegistry,
                 context_factory: Callable[[], Dict[str, Any]],
                 config: Optional[SchedulerConfig] = None,
                 slack_notifier: Optional[SlackNotifier] = None) -> None:
        self.registry = registry
        self.context_factory = context_factory
        self.config = config or SchedulerConfig()
        self.slack_notifier = slack_notifier
        self.scheduler = BackgroundScheduler()
        self._running = False

    def _run_job(self, job_name: str) -> None:
        """Execute a single job with a fresh context, then notify Slack."""
        try:
            context = self.context_factory()
            result = self.registry.run_one(job_name, context)
            logger.info(
                "Job '%s' completed: %s (%d items in %.1fs)",
                job_name, result.status.value,
                result.items_processed, result.duration_seconds,
            )
            if result.error:
                logger.error("Job '%s' error: %s", job_name, result.error)

            if self.slack_notifier and self.slack_notifier.enabled:
                self.slack_notifier.notify_job_run(result)
        except Exception:
            logger.exception("Failed to run job '%s'", job_name)

    def setup(self) -> None:
        """Configure scheduled jobs."""
        schedule_map = {
            "sync": self.config.sync_interval_minutes,
            "resolution": self.config.resolution_interval_minutes,
        }

        for job_name, interval in schedule_map.items():
            if self.registry.get(job_name):
                self.scheduler.add_job(
                    self._run_job,
                    "interval",
                    minutes=interval,
                    args=[job_name],
                    id=f"job_{job_name}",
                    name=f"{job_name.title()} Job",
                    max_instances=1,
                    coalesce=True,
                    replace_existing=True,
                )
                logger.info("Scheduled '%s' job every %d minutes", job_name, interval)

    def start(self) -> None:
        """Start the scheduler."""
        if not self._running:
            self.setup()
            self.scheduler.start()
            self._running = True
            logger.info("Scheduler started.")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped.")

    @property
    def is_running(self) -> bool:
        return self._running

    def get_jobs(self) -> list:
        """Return list of scheduled jobs."""
        return self.scheduler.get_jobs()
