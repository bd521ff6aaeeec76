from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict, Optional
from pricewatch.core.dependencies import get_job_executor, get_job_manager
from pricewatch.schemas.job_schemas import CleanupRequest, JobList, JobStats, ScrapeRequest
from pricewatch.services.job_executor import JobExecutor
from pricewatch.services.job_manager import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, JobManager
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/scrape", tags=["jobs"])

# Fixed paths are registered before /{source} so they are not captured as a source key.
# Job starts are async handlers: jobs are spawned on the running event loop.

@router.post("/all", status_code=202)
async def start_all(request: Optional[ScrapeRequest] = None, executor: JobExecutor = Depends(get_job_executor)) -> Dict[str, Any]:
    """Start a sync job for every merchant, master first."""
    mode = request.mode if request else "categories"
    jobs = executor.submit_all(mode)
    return {
        "message": f"Started {len(jobs)} jobs",
        "mode": mode,
        "jobs": [{"jobId": job.job_id, "source": job.source_key, "status": job.status.value} for job in jobs],
    }

@router.post("/refresh", status_code=202)
async def start_refresh(executor: JobExecutor = Depends(get_job_executor)) -> Dict[str, Any]:
    """Start a price refresh over the stalest merchant snapshots."""
    job = executor.submit_refresh()
    return {
        "message": "Price refresh started",
        "jobId": job.job_id,
        "status": job.status.value,
        "statusUrl": f"/api/v1/scrape/status/{job.job_id}",
    }

@router.get("/status/{job_id}")
def get_job_status(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Dict[str, Any]:
    """Get the status of one job."""
    job = manager.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return {**job.model_dump(mode="json"), "durationMs": job.duration_ms}

@router.get("/jobs", response_model=JobList)
def list_jobs(
    status: Optional[str] = None,
    source_key: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    manager: JobManager = Depends(get_job_manager),
):
    """List jobs, newest first. Limit is clamped to 1..200."""
    return manager.list_jobs(status=status, source_key=source_key, limit=limit, offset=offset)

@router.get("/running")
def list_running(manager: JobManager = Depends(get_job_manager)) -> Dict[str, Any]:
    """List jobs that are currently running."""
    running = manager.list_jobs(status="running", limit=MAX_PAGE_SIZE)
    return {"count": running.total, "jobs": running.jobs}

@router.get("/stats", response_model=JobStats)
def get_stats(manager: JobManager = Depends(get_job_manager)):
    return manager.get_stats()

@router.post("/cleanup")
def cleanup_jobs(request: Optional[CleanupRequest] = None, manager: JobManager = Depends(get_job_manager)) -> Dict[str, Any]:
    """Delete finished jobs older than maxAgeHours (default 24)."""
    max_age_hours = request.max_age_hours if request else 24
    removed = manager.cleanup(max_age_hours)
    return {"message": f"Removed {removed} jobs", "removed": removed, "maxAgeHours": max_age_hours}

@router.post("/{source}", status_code=202)
async def start_source(
    source: str,
    request: Optional[ScrapeRequest] = None,
    executor: JobExecutor = Depends(get_job_executor),
) -> Dict[str, Any]:
    """
    Start a sync job for one merchant.

    Returns 404 for an unknown merchant, 400 for an invalid mode and 409
    when a job for the merchant is already running.
    """
    mode = request.mode if request else "categories"
    job = executor.submit(source, mode)
    logger.info(f"Accepted sync job {job.job_id} for {job.source_key} ({mode})")
    return {
        "message": f"Sync started for {job.source_name}",
        "jobId": job.job_id,
        "source": job.source_key,
        "mode": mode,
        "status": job.status.value,
        "statusUrl": f"/api/v1/scrape/status/{job.job_id}",
    }
