"""Batch orchestrator: submit-then-poll lifecycle for external video jobs."""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from ..models.batch import (
    Batch, BatchJob, BatchListing, BatchSnapshot, BatchStatus, JobProgressEvent,
    JobStatus, JobSubmitRecord, PollSummary, SubmitSummary
)
from ..providers.base import SubmitResult, TaskProvider, TaskState
from .batch_store import BatchStore, transition
from .exceptions import (
    BatchError, BatchNotFoundError, DownloadError, PollError,
    ProviderNotFoundError, SubmissionError
)
from .logging import get_logger, log_with_context

logger = get_logger(__name__)

ProgressCallback = Callable[[JobProgressEvent], Union[None, Awaitable[None]]]


@dataclass
class PollOptions:
    """Options for one ``poll_batch`` pass. Unset fields fall back to the orchestrator defaults."""
    auto_download: Optional[bool] = None
    download_dir: Optional[str] = None
    poll_interval: Optional[float] = None
    on_progress: Optional[ProgressCallback] = None


class BatchOrchestrator:
    """
    Manages batches of external jobs through two explicit phases.

    ``submit_batch`` submits every job once, sequentially. ``poll_batch`` makes a
    single pass over the jobs that are not yet terminal and must be called again
    by the caller until the batch completes; there is no background timer.
    Per-job failures are recorded on the job and never escape either phase.
    """

    def __init__(
        self,
        providers: Mapping[str, TaskProvider],
        store: Optional[BatchStore] = None,
        poll_interval: float = 30.0,
        download_dir: str = "./downloads",
        auto_download: bool = False,
        default_provider: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            providers: Provider id -> task provider
            store: Batch store owned by this orchestrator; a fresh one by default
            poll_interval: Default delay in seconds after a job that is still running
            download_dir: Default target directory for auto-download
            auto_download: Download finished outputs when a poll does not say otherwise
            default_provider: Provider used by ``create_batch`` when none is given
            sleep: Coroutine used for the inter-job delay
        """
        self._providers: Dict[str, TaskProvider] = dict(providers)
        self.store = store if store is not None else BatchStore()
        self.poll_interval = poll_interval
        self.download_dir = download_dir
        self.auto_download = auto_download
        self.default_provider = default_provider
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, providers: Mapping[str, TaskProvider], store: Optional[BatchStore] = None) -> "BatchOrchestrator":
        """Build an orchestrator using the batch defaults of an ``AppConfig``."""
        return cls(
            providers,
            store=store,
            poll_interval=config.poll_interval,
            download_dir=config.download_dir,
            auto_download=config.auto_download,
            default_provider=config.default_provider,
        )

    def create_batch(self, provider_id: Optional[str], jobs: Sequence[Mapping[str, Any]]) -> str:
        """
        Register a new batch of job specs for one provider.

        A ``provider_id`` of None selects the orchestrator's default provider.

        Raises:
            ProviderNotFoundError: If ``provider_id`` is not configured
        """
        provider_id = provider_id or self.default_provider
        if provider_id not in self._providers:
            raise ProviderNotFoundError(
                f"Provider '{provider_id}' is not configured",
                provider_id=provider_id
            )

        batch_id = f"batch_{uuid.uuid4().hex[:12]}"
        batch = Batch(
            batch_id=batch_id,
            provider_id=provider_id,
            jobs=[BatchJob(job_id=f"job_{index}", spec=dict(job)) for index, job in enumerate(jobs)],
        )
        self.store.add(batch)

        logger.info(f"Created batch {batch_id} with {len(batch.jobs)} jobs for provider {provider_id}")
        return batch_id

    async def submit_batch(self, batch_id: str) -> SubmitSummary:
        """Submit phase: submit every pending job once, in order."""
        try:
            batch = self.store.get(batch_id)
        except BatchNotFoundError as e:
            return SubmitSummary(success=False, batch_id=batch_id, error=e.message)

        if batch.status != BatchStatus.PENDING:
            return SubmitSummary(
                success=False,
                batch_id=batch_id,
                error=f"Batch {batch_id} was already submitted",
                total_jobs=len(batch.jobs),
            )

        provider = self._providers[batch.provider_id]
        batch.status = BatchStatus.SUBMITTING
        records: List[JobSubmitRecord] = []

        for job in batch.jobs:
            records.append(await self._submit_job(batch, job, provider))

        batch.status = BatchStatus.SUBMITTED
        batch.submitted_at = datetime.utcnow()

        summary = SubmitSummary(
            success=True,
            batch_id=batch_id,
            total_jobs=len(batch.jobs),
            submitted_jobs=batch.count(JobStatus.SUBMITTED),
            failed_jobs=batch.count(JobStatus.FAILED),
            jobs=records,
        )
        logger.info(
            f"Batch {batch_id} submitted: {summary.submitted_jobs}/{summary.total_jobs} accepted, "
            f"{summary.failed_jobs} failed"
        )
        return summary

    async def _submit_job(self, batch: Batch, job: BatchJob, provider: TaskProvider) -> JobSubmitRecord:
        transition(job, JobStatus.SUBMITTING, batch.batch_id)

        try:
            result = await provider.submit(dict(job.spec))
        except Exception as e:
            result = SubmitResult(success=False, error=str(e) or type(e).__name__)

        if not result.success or not result.task_id:
            error = SubmissionError(
                result.error or "Provider returned no task id",
                batch_id=batch.batch_id,
                job_id=job.job_id
            )
            self._fail_job(batch, job, error)
            return JobSubmitRecord(job_id=job.job_id, success=False, error=error.message)

        job.external_task_id = result.task_id
        transition(job, JobStatus.SUBMITTED, batch.batch_id)
        logger.debug(f"Job {job.job_id} of batch {batch.batch_id} submitted as task {result.task_id}")
        return JobSubmitRecord(job_id=job.job_id, success=True, task_id=result.task_id)

    async def poll_batch(self, batch_id: str, options: Optional[PollOptions] = None) -> PollSummary:
        """
        Poll phase: query each non-terminal job once, in job order.

        A job that is still running triggers the progress callback and a delay of
        ``poll_interval`` before the next job is evaluated. Once every job is
        terminal the batch is marked completed; further calls return the same
        summary without contacting the provider.
        """
        try:
            batch = self.store.get(batch_id)
        except BatchNotFoundError as e:
            return PollSummary(success=False, batch_id=batch_id, error=e.message)

        if batch.status == BatchStatus.COMPLETED:
            return self._poll_summary(batch)

        if batch.status != BatchStatus.SUBMITTED:
            return PollSummary(
                success=False,
                batch_id=batch_id,
                error=f"Batch {batch_id} has not been submitted yet",
                status=batch.status,
            )

        options = options or PollOptions()
        if options.auto_download is None:
            options = replace(options, auto_download=self.auto_download)
        interval = self.poll_interval if options.poll_interval is None else options.poll_interval
        provider = self._providers[batch.provider_id]

        for job in batch.jobs:
            if not job.is_pending_poll:
                continue

            try:
                still_running = await self._poll_job(batch, job, provider, options)
            except Exception as e:
                if job.status.is_terminal:
                    logger.error(f"Unexpected error after job {job.job_id} finished: {e}")
                    continue
                self._fail_job(batch, job, PollError(
                    f"Status query failed: {e}",
                    batch_id=batch.batch_id,
                    job_id=job.job_id
                ))
                continue

            if still_running:
                await self._sleep(interval)

        if batch.all_terminal:
            batch.status = BatchStatus.COMPLETED
            batch.completed_at = datetime.utcnow()
            logger.info(f"Batch {batch_id} completed")

        return self._poll_summary(batch)

    async def _poll_job(self, batch: Batch, job: BatchJob, provider: TaskProvider, options: PollOptions) -> bool:
        """Query one job. Returns True when the job is still running."""
        status = await provider.get_status(job.external_task_id)

        if not status.success or status.data is None:
            self._fail_job(batch, job, PollError(
                status.error or "Status query returned no data",
                batch_id=batch.batch_id,
                job_id=job.job_id
            ))
            return False

        data = status.data

        if data.status == TaskState.SUCCESS:
            transition(job, JobStatus.COMPLETED, batch.batch_id)
            job.progress = data.progress
            job.result = data.output
            logger.info(f"Job {job.job_id} of batch {batch.batch_id} completed")

            if options.auto_download:
                await self._download(batch, job, provider, options.download_dir or self.download_dir)

            await self._notify(options, JobProgressEvent(
                batch_id=batch.batch_id,
                job_id=job.job_id,
                status=job.status,
                result=job.result,
                downloaded_path=job.downloaded_path,
            ))
            return False

        if data.status == TaskState.FAILURE:
            transition(job, JobStatus.FAILED, batch.batch_id)
            job.progress = data.progress
            job.error = data.fail_reason or "Task failed"
            logger.warning(f"Job {job.job_id} of batch {batch.batch_id} failed: {job.error}")

            await self._notify(options, JobProgressEvent(
                batch_id=batch.batch_id,
                job_id=job.job_id,
                status=job.status,
                error=job.error,
            ))
            return False

        transition(job, JobStatus.IN_PROGRESS, batch.batch_id)
        job.progress = data.progress
        await self._notify(options, JobProgressEvent(
            batch_id=batch.batch_id,
            job_id=job.job_id,
            status=job.status,
            progress=data.progress if data.progress is not None else "N/A",
        ))
        return True

    async def _download(self, batch: Batch, job: BatchJob, provider: TaskProvider, target_dir: str) -> None:
        """Download a completed job's output. Failures only set ``download_error``."""
        try:
            job.downloaded_path = await provider.download(job.external_task_id, target_dir)
            logger.info(f"Downloaded output of job {job.job_id} to {job.downloaded_path}")
        except Exception as e:
            error = e if isinstance(e, DownloadError) else DownloadError(
                str(e) or type(e).__name__,
                task_id=job.external_task_id,
                batch_id=batch.batch_id,
                job_id=job.job_id
            )
            job.download_error = error.message
            log_with_context(
                logger, logging.WARNING,
                f"Download failed for job {job.job_id}: {error.message}",
                **error.context
            )

    async def _notify(self, options: PollOptions, event: JobProgressEvent) -> None:
        if options.on_progress is None:
            return
        try:
            outcome = options.on_progress(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback raised for job {event.job_id}: {e}")

    def _fail_job(self, batch: Batch, job: BatchJob, error: BatchError) -> None:
        transition(job, JobStatus.FAILED, batch.batch_id)
        job.error = error.message
        log_with_context(
            logger, logging.WARNING,
            f"Job {job.job_id} of batch {batch.batch_id} failed: {error.message}",
            error_code=error.error_code,
            **error.context
        )

    def _poll_summary(self, batch: Batch) -> PollSummary:
        return PollSummary(
            success=True,
            batch_id=batch.batch_id,
            status=batch.status,
            total_jobs=len(batch.jobs),
            completed_jobs=batch.count(JobStatus.COMPLETED),
            failed_jobs=batch.count(JobStatus.FAILED),
            pending_jobs=batch.count(JobStatus.SUBMITTED, JobStatus.IN_PROGRESS),
            jobs=[job.model_copy(deep=True) for job in batch.jobs],
        )

    def get_batch_status(self, batch_id: str) -> BatchSnapshot:
        """
        Read-only snapshot of a batch; safe to call while a poll is in flight.

        Raises:
            BatchNotFoundError: If no batch has that id
        """
        batch = self.store.get(batch_id)
        return BatchSnapshot(
            batch_id=batch.batch_id,
            provider_id=batch.provider_id,
            status=batch.status,
            total_jobs=len(batch.jobs),
            completed_jobs=batch.count(JobStatus.COMPLETED),
            failed_jobs=batch.count(JobStatus.FAILED),
            pending_jobs=batch.count(
                JobStatus.PENDING, JobStatus.SUBMITTING, JobStatus.SUBMITTED, JobStatus.IN_PROGRESS
            ),
            created_at=batch.created_at,
            submitted_at=batch.submitted_at,
            completed_at=batch.completed_at,
            jobs=[job.model_copy(deep=True) for job in batch.jobs],
        )

    def list_batches(self) -> List[BatchListing]:
        return [
            BatchListing(
                batch_id=batch.batch_id,
                provider_id=batch.provider_id,
                status=batch.status,
                total_jobs=len(batch.jobs),
                created_at=batch.created_at,
            )
            for batch in self.store.all()
        ]

    def delete_batch(self, batch_id: str) -> bool:
        return self.store.delete(batch_id)
