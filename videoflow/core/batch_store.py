"""In-memory store of batches owned by one orchestrator."""

from typing import Dict, List

from ..models.batch import Batch, BatchJob, JobStatus
from .exceptions import BatchNotFoundError, InvalidJobTransition
from .logging import get_logger

logger = get_logger(__name__)


def transition(job: BatchJob, new_status: JobStatus, batch_id: str = "") -> None:
    """
    Move a job to ``new_status``.

    Raises:
        InvalidJobTransition: If the job is terminal or the move goes backwards
    """
    current = job.status
    if current.is_terminal or new_status.rank < current.rank:
        raise InvalidJobTransition(
            f"Job {job.job_id} cannot move from {current.value} to {new_status.value}",
            batch_id=batch_id,
            job_id=job.job_id,
            current=current.value,
            requested=new_status.value
        )
    job.status = new_status


class BatchStore:
    """
    Holds the batches of one orchestrator instance.

    Created explicitly and injected, one store per orchestrator (or per test).
    """

    def __init__(self):
        self._batches: Dict[str, Batch] = {}

    def add(self, batch: Batch) -> None:
        if batch.batch_id in self._batches:
            raise ValueError(f"Batch {batch.batch_id} already exists")
        self._batches[batch.batch_id] = batch

    def get(self, batch_id: str) -> Batch:
        """
        Return the live batch object.

        Raises:
            BatchNotFoundError: If no batch has that id
        """
        batch = self._batches.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(f"Batch {batch_id} not found", batch_id=batch_id)
        return batch

    def delete(self, batch_id: str) -> bool:
        removed = self._batches.pop(batch_id, None)
        if removed is not None:
            logger.info(f"Deleted batch {batch_id}")
        return removed is not None

    def all(self) -> List[Batch]:
        return list(self._batches.values())

    def __contains__(self, batch_id: str) -> bool:
        return batch_id in self._batches

    def __len__(self) -> int:
        return len(self._batches)
