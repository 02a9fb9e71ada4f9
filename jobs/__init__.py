from .base import BaseJob, JobResult, JobStatus
from .registry import JobRegistry

__all__ = ["BaseJob", "JobResult", "JobStatus", "JobRegistry"]
