"""Scheduler jobs module."""

from .job_stats import JobStatsTracker, job_stats
from .jobs import close_expired_tenders_job, deadline_reminders_job, retry_outbox_job

__all__ = [
    "JobStatsTracker",
    "close_expired_tenders_job",
    "deadline_reminders_job",
    "job_stats",
    "retry_outbox_job",
]
