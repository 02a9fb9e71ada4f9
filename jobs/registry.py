"""Job registry for orchestration.

Manages job registration and sequential execution.
Each job's result is stored in the shared context dict
for downstream jobs to consume.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional

from .base import BaseJob, JobResult


class JobRegistry:
    def __init__(self) -> None:
        self._jobs: OrderedDict[str, BaseJob] = OrderedDict()

    def register(self, job: BaseJob) -> None:
        """Register a job by its name."""
        self._jobs[job.name] = job

    def get(self, name: str) -> Optional[BaseJob]:
        return self._jobs.get(name)

    @property
    def job_names(self) -> List[str]:
        return list(self._jobs.keys())

    def run_all(self, context: Dict[str, Any]) -> List[JobResult]:
        """Execute all jobs sequentially in registration order."""
        return [job.run(context) for job in self._jobs.values()]

    def run_one(self, name: str, context: Dict[str, Any]) -> JobResult:
        """Execute a single job by name."""
        job = self._jobs.get(name)
        if not job:
            raise KeyError(f"Job '{name}' not registered.")
        return job.run(context)
