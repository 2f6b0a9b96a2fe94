"""Run statistics for the scheduled sweeps."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tenderflow.clock import utcnow


@dataclass
class JobRun:
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    failed: int = 0
    success: bool = True
    error: Optional[str] = None


@dataclass
class JobStats:
    job_id: str
    name: str
    last_run: Optional[JobRun] = None
    total_runs: int = 0
    total_processed: int = 0
    total_failed: int = 0
    last_error: Optional[str] = None
    history: list[JobRun] = field(default_factory=list)


class JobStatsTracker:
    """In-memory record of job runs, exposed on ``/scheduler/status``."""

    def __init__(self, history_size: int = 10):
        self.history_size = history_size
        self._stats: dict[str, JobStats] = {}

    def register_job(self, job_id: str, name: str):
        if job_id not in self._stats:
            self._stats[job_id] = JobStats(job_id=job_id, name=name)

    def start_run(self, job_id: str) -> JobRun:
        self.register_job(job_id, job_id)
        run = JobRun(started_at=utcnow())
        stats = self._stats[job_id]
        stats.last_run = run
        stats.history = [run, *stats.history][: self.history_size]
        return run

    def finish_run(self, job_id: str, processed: int = 0, failed: int = 0, error: Optional[str] = None):
        """Close the current run. ``failed`` counts per-item failures inside a successful run."""
        stats = self._stats.get(job_id)
        if stats is None:
            return

        if stats.last_run:
            stats.last_run.finished_at = utcnow()
            stats.last_run.processed = processed
            stats.last_run.failed = failed
            stats.last_run.success = error is None
            stats.last_run.error = error

        stats.total_runs += 1
        stats.total_processed += processed
        stats.total_failed += failed
        if error:
            stats.last_error = error

    def get_stats(self, job_id: str) -> Optional[JobStats]:
        return self._stats.get(job_id)

    @staticmethod
    def _run_dict(run: JobRun) -> dict:
        return {
            "started_at": run.started_at.isoformat(),
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            "processed": run.processed,
            "failed": run.failed,
            "success": run.success,
            "error": run.error,
        }

    def to_dict(self, job_id: str) -> dict:
        stats = self._stats.get(job_id)
        if not stats:
            return {}

        return {
            "job_id": stats.job_id,
            "name": stats.name,
            "total_runs": stats.total_runs,
            "total_processed": stats.total_processed,
            "total_failed": stats.total_failed,
            "last_error": stats.last_error,
            "last_run": self._run_dict(stats.last_run) if stats.last_run else None,
        }

    def all_to_dict(self) -> list[dict]:
        return [self.to_dict(job_id) for job_id in self._stats]


# Global tracker instance
job_stats = JobStatsTracker()
