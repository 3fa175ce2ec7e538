"""Data models for the VideoFlow engine."""

from .core import (
    ExecutionState,
    LogLevelTag,
    ValidationResult,
    WorkflowNode,
    WorkflowEdge,
    WorkflowGraph,
    Progress,
    ExecutionLogEntry,
    NodeOutcome,
    RunResult,
)
from .batch import (
    JobStatus,
    BatchStatus,
    BatchJob,
    Batch,
    JobSubmitRecord,
    SubmitSummary,
    PollSummary,
    BatchSnapshot,
    BatchListing,
    JobProgressEvent,
)

__all__ = [
    "ExecutionState",
    "LogLevelTag",
    "ValidationResult",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowGraph",
    "Progress",
    "ExecutionLogEntry",
    "NodeOutcome",
    "RunResult",
    "JobStatus",
    "BatchStatus",
    "BatchJob",
    "Batch",
    "JobSubmitRecord",
    "SubmitSummary",
    "PollSummary",
    "BatchSnapshot",
    "BatchListing",
    "JobProgressEvent",
]
