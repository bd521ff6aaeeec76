"""In-memory lifecycle tracking for asynchronous sync and refresh runs."""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from pricewatch.core.exceptions import JobNotFoundError
from pricewatch.schemas.job_schemas import Job, JobList, JobStats, JobStatus
import asyncio
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class JobManager:
    """Job table guarded by a lock; each mutation is a single-key read-modify-write.

    The manager only tracks state. Rejecting a second run for a busy source
    is up to the caller, which can ask ``is_running`` / ``has_active``.
    """

    def __init__(
        self,
        retention_hours: float = 24,
        cleanup_interval_seconds: float = 3600,
        clock: Callable[[], datetime] = None,
    ):
        self.retention_hours = retention_hours
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def start(self) -> None:
        """Run an initial cleanup and schedule periodic ones on the running loop."""
        self.cleanup(self.retention_hours)
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
            logger.info(f"Job cleanup scheduled every {self.cleanup_interval_seconds}s")

    async def stop(self) -> None:
        """Cancel the cleanup schedule."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            try:
                self.cleanup(self.retention_hours)
            except Exception as e:
                logger.error(f"Error cleaning up jobs: {e}")

    def create_job(self, source_key: str, source_name: str, mode: Optional[str] = None) -> Job:
        job = Job(
            job_id=str(uuid.uuid4()),
            source_key=source_key,
            source_name=source_name,
            mode=mode,
            status=JobStatus.PENDING,
            created_at=self.clock(),
        )
        with self._lock:
            self._jobs[job.job_id] = job
        logger.info(f"Job created: {job.job_id} for {source_name}")
        return job.model_copy()

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Job:
        """
        Move a job to a new status.

        ``running`` stamps start_time; ``completed`` and ``failed`` stamp
        end_time.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        status = JobStatus(status)
        now = self.clock()
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")

            changes: Dict[str, Any] = {"status": status}
            if status == JobStatus.RUNNING:
                changes["start_time"] = now
            elif status.is_terminal:
                changes["end_time"] = max(now, job.start_time) if job.start_time else now
            if result is not None:
                changes["result"] = result
            if error is not None:
                changes["error"] = error

            job = job.model_copy(update=changes)
            self._jobs[job_id] = job

        logger.info(f"Job {job_id} updated to status: {status.value}")
        return job.model_copy()

    def is_running(self, source_key: str) -> bool:
        with self._lock:
            return any(
                job.source_key == source_key and job.status == JobStatus.RUNNING
                for job in self._jobs.values()
            )

    def has_active(self, source_key: str) -> bool:
        """True when a job for the source is pending or running."""
        with self._lock:
            return any(
                job.source_key == source_key and not job.status.is_terminal
                for job in self._jobs.values()
            )

    def list_jobs(
        self,
        status: Optional[str] = None,
        source_key: Optional[str] = None,
        limit: Optional[int] = DEFAULT_PAGE_SIZE,
        offset: Optional[int] = 0,
    ) -> JobList:
        """Filtered page of jobs, newest first. Limit is clamped to 1..200."""
        with self._lock:
            jobs = list(self._jobs.values())

        if status:
            jobs = [j for j in jobs if j.status.value == status]
        if source_key:
            jobs = [j for j in jobs if j.source_key == source_key]

        jobs.sort(key=lambda j: j.created_at, reverse=True)

        limit = min(max(DEFAULT_PAGE_SIZE if limit is None else limit, 1), MAX_PAGE_SIZE)
        offset = max(offset or 0, 0)
        return JobList(
            jobs=[j.model_copy() for j in jobs[offset:offset + limit]],
            total=len(jobs),
            offset=offset,
            limit=limit,
        )

    def get_stats(self) -> JobStats:
        with self._lock:
            jobs = list(self._jobs.values())
        stats = JobStats(total=len(jobs))
        for job in jobs:
            setattr(stats, job.status.value, getattr(stats, job.status.value) + 1)
        return stats

    def cleanup(self, max_age_hours: float = 24) -> int:
        """Delete terminal jobs created before the cutoff. Pending and running jobs are kept."""
        cutoff = self.clock() - timedelta(hours=max_age_hours)
        with self._lock:
            stale = [
                job_id for job_id, job in self._jobs.items()
                if job.status.is_terminal and job.created_at < cutoff
            ]
            for job_id in stale:
                del self._jobs[job_id]

        if stale:
            logger.info(f"Cleanup: removed {len(stale)} old jobs")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()
