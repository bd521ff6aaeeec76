from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Job(BaseModel):
    """Status information for an asynchronous sync or refresh run."""
    job_id: str
    source_key: str
    source_name: str
    mode: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime

    @property
    def duration_ms(self) -> int:
        if not self.start_time or not self.end_time:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)


class JobList(BaseModel):
    jobs: List[Job]
    total: int
    offset: int
    limit: int


class JobStats(BaseModel):
    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0


class ScrapeRequest(BaseModel):
    """Body of a sync start request."""
    mode: str = "categories"


class CleanupRequest(BaseModel):
    max_age_hours: float = Field(default=24, gt=0, alias="maxAgeHours")

    model_config = {"populate_by_name": True}


class NotificationResult(BaseModel):
    success: bool
    error: Optional[str] = None
