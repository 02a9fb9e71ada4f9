"""Base job framework with lifecycle management.

- BaseJob: abstract class with execute(context) and run(context) lifecycle wrapper
- JobResult: captures timing, status, data, errors
- JobStatus: enum for job states

run() wraps execute() with:
1. Status tracking (running -> success/error)
2. Timing (started_at, completed_at, duration)
3. Error capture (run() itself never raises)
4. Database logging via the job_logs table

The context dict carries the collaborators a job needs ("queries",
"polymarket_client", "config", ...), so every job works against whatever
store and clients the caller hands it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class JobResult:
    job_name: str
    status: JobStatus = JobStatus.IDLE
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_seconds: float = 0.0
    data: Dict[str, Any] = field(default_factory=dict)
    summary: str = ""
    error: Optional[str] = None
    items_processed: int = 0

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.SUCCESS


class BaseJob(ABC):
    """Abstract base job with lifecycle management."""

    def __init__(self, name: str, config: Any = None) -> None:
        self.name = name
        self.config = config
        self.status = JobStatus.IDLE
        self.last_result: Optional[JobResult] = None

    @abstractmethod
    def execute(self, context: Dict[str, Any]) -> JobResult:
        """Core job logic, implemented by subclasses."""
        ...

    def run(self, context: Dict[str, Any]) -> JobResult:
        """Lifecycle wrapper: timing, error capture, status tracking, DB logging."""
        self.status = JobStatus.RUNNING
        started = datetime.now(timezone.utc)

        result = JobResult(
            job_name=self.name,
            status=JobStatus.RUNNING,
            started_at=started.isoformat(),
        )

        try:
            result = self.execute(context)
            result.status = JobStatus.SUCCESS
            self.status = JobStatus.SUCCESS
        except Exception as exc:
            logger.exception("Job '%s' failed", self.name)
            result.status = JobStatus.ERROR
            result.error = str(exc)
            self.status = JobStatus.ERROR

        completed = datetime.now(timezone.utc)
        result.started_at = started.isoformat()
        result.completed_at = completed.isoformat()
        result.duration_seconds = (completed - started).total_seconds()
        result.job_name = self.name

        self._log_to_db(context, result)

        # Downstream jobs in the same context can read this
        context[f"result_{self.name}"] = result
        self.last_result = result

        return result

    def _log_to_db(self, context: Dict[str, Any], result: JobResult) -> None:
        """Persist the job run to the job_logs table."""
        queries = context.get("queries")
        if not queries:
            return
        try:
            from db.models import JobLog
            log = JobLog(
                job_name=result.job_name,
                status=result.status.value,
                started_at=result.started_at,
                completed_at=result.completed_at,
                duration_seconds=result.duration_seconds,
                items_processed=result.items_processed,
                summary=result.summary,
                error=result.error,
            )
            queries.insert_job_log(log)
        except Exception:
            # A broken log write must not turn a finished run into a failure
            logger.warning("Could not record job log for '%s'", self.name, exc_info=True)
