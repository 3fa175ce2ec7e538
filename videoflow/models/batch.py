"""Pydantic models for batches of external video jobs."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Lifecycle of one external job. Values only move forward."""
    PENDING = "pending"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _JOB_STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_JOB_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.SUBMITTING: 1,
    JobStatus.SUBMITTED: 2,
    JobStatus.IN_PROGRESS: 3,
    JobStatus.COMPLETED: 4,
    JobStatus.FAILED: 4,
}


class BatchStatus(str, Enum):
    """Lifecycle of a batch."""
    PENDING = "pending"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    COMPLETED = "completed"


class BatchJob(BaseModel):
    """One external job tracked inside a batch."""
    job_id: str
    spec: Dict[str, Any] = Field(default_factory=dict, description="Provider-specific job parameters")
    status: JobStatus = JobStatus.PENDING
    external_task_id: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    progress: Optional[Any] = None
    downloaded_path: Optional[str] = None
    download_error: Optional[str] = None

    @property
    def is_pending_poll(self) -> bool:
        return self.status in (JobStatus.SUBMITTED, JobStatus.IN_PROGRESS)


class Batch(BaseModel):
    """A set of jobs submitted to one provider and tracked together."""
    batch_id: str
    provider_id: str
    jobs: List[BatchJob] = Field(default_factory=list)
    status: BatchStatus = BatchStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def count(self, *statuses: JobStatus) -> int:
        return sum(1 for job in self.jobs if job.status in statuses)

    @property
    def all_terminal(self) -> bool:
        return all(job.status.is_terminal for job in self.jobs)


class JobSubmitRecord(BaseModel):
    """Per-job line of a submit summary."""
    job_id: str
    success: bool
    task_id: Optional[str] = None
    error: Optional[str] = None


class SubmitSummary(BaseModel):
    """Result of ``BatchOrchestrator.submit_batch``."""
    success: bool
    batch_id: str
    error: Optional[str] = None
    total_jobs: int = 0
    submitted_jobs: int = 0
    failed_jobs: int = 0
    jobs: List[JobSubmitRecord] = Field(default_factory=list)


class PollSummary(BaseModel):
    """Result of ``BatchOrchestrator.poll_batch``."""
    success: bool
    batch_id: str
    error: Optional[str] = None
    status: Optional[BatchStatus] = None
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    pending_jobs: int = 0
    jobs: List[BatchJob] = Field(default_factory=list)


class BatchSnapshot(BaseModel):
    """Read-only view returned by ``BatchOrchestrator.get_batch_status``."""
    batch_id: str
    provider_id: str
    status: BatchStatus
    total_jobs: int
    completed_jobs: int
    failed_jobs: int
    pending_jobs: int
    created_at: datetime
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    jobs: List[BatchJob] = Field(default_factory=list)


class BatchListing(BaseModel):
    """Short description of a batch for listings."""
    batch_id: str
    provider_id: str
    status: BatchStatus
    total_jobs: int
    created_at: datetime


class JobProgressEvent(BaseModel):
    """Event passed to the caller's progress callback during a poll pass."""
    batch_id: str
    job_id: str
    status: JobStatus
    progress: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    downloaded_path: Optional[str] = None
