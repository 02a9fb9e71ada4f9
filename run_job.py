#!/usr/bin/env python3
"""Standalone CLI to run Forecast Arena jobs.

Usage:
    python run_job.py <job_name> [job_name ...]
    python run_job.py sync resolution
    python run_job.py --all
    python run_job.py --schedule

Designed for cron, GitHub Actions, or manual CLI execution. ``--schedule``
keeps the process alive and runs every job on its configured interval.
"""

import logging
import sys
import time

from config import AppConfig, load_config
from db.database import DatabaseManager
from db.queries import ArenaQueries
from jobs.registry import JobRegistry
from jobs.resolution_job import ResolutionJob
from jobs.sync_job import SyncJob
from notifications.slack import SlackNotifier

logger = logging.getLogger(__name__)

# Registration order is run order for --all: sync first, like the cron route
JOB_NAMES = ["sync", "resolution"]


def build_job(name: str, config: AppConfig):
    if name == "sync":
        return SyncJob(config.sync)
    if name == "resolution":
        return ResolutionJob(config.resolution, config.settlement)
    raise KeyError(f"Unknown job: {name}")


def build_registry(config: AppConfig, names=None) -> JobRegistry:
    registry = JobRegistry()
    for name in names or JOB_NAMES:
        registry.register(build_job(name, config))
    return registry


def build_context(config: AppConfig, db: DatabaseManager = None):
    """Build the shared context dict that jobs expect."""
    db = db or DatabaseManager(db_path=config.db_path, database_url=config.database_url)
    context = {
        "config": config,
        "db": db,
        "queries": ArenaQueries(db),
    }

    try:
        from clients.polymarket_client import PolymarketClient
        context["polymarket_client"] = PolymarketClient(config.polymarket)
    except Exception as e:
        logger.warning("Polymarket client init failed: %s", e)

    return context


def _run_scheduler(config: AppConfig) -> None:
    from scheduler.runner import SchedulerRunner

    db = DatabaseManager(db_path=config.db_path, database_url=config.database_url)
    runner = SchedulerRunner(
        build_registry(config),
        context_factory=lambda: build_context(config, db),
        config=config.scheduler,
        slack_notifier=SlackNotifier(config.slack.webhook_url),
    )
    runner.start()
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        runner.stop()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if len(sys.argv) < 2:
        print("Usage: python run_job.py <job_name> [job_name ...]")
        print("       python run_job.py --all")
        print("       python run_job.py --schedule")
        print(f"Available jobs: {', '.join(JOB_NAMES)}")
        sys.exit(1)

    config = load_config()

    if "--schedule" in sys.argv:
        _run_scheduler(config)
        return

    if "--all" in sys.argv:
        job_names = list(JOB_NAMES)
    else:
        job_names = sys.argv[1:]

    for name in job_names:
        if name not in JOB_NAMES:
            print(f"Unknown job: {name}")
            print(f"Available: {', '.join(JOB_NAMES)}")
            sys.exit(1)

    context = build_context(config)
    registry = build_registry(config, job_names)
    slack = SlackNotifier(config.slack.webhook_url)

    logger.info("Running jobs: %s", ", ".join(registry.job_names))
    failed = False
    for result in registry.run_all(context):
        logger.info(
            "Job '%s' completed: %s (%d items in %.1fs) %s",
            result.job_name, result.status.value,
            result.items_processed, result.duration_seconds, result.summary,
        )
        if result.error:
            logger.error("Job '%s' error: %s", result.job_name, result.error)
            failed = True
        if slack.enabled:
            slack.notify_job_run(result)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
