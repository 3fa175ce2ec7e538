"""Pytest configuration and fixtures."""

from typing import Any, Dict, List, Optional

import pytest

from videoflow.core.batch_orchestrator import BatchOrchestrator
from videoflow.core.batch_store import BatchStore
from videoflow.core.execution_controller import ExecutionController
from videoflow.core.node_handlers import build_default_registry
from videoflow.models.core import WorkflowEdge, WorkflowNode
from videoflow.providers.base import (
    StatusResult, SubmitResult, TaskProvider, TaskState, TaskStatusData
)


class FakeProvider(TaskProvider):
    """
    Scripted provider that records every call.

    ``submit_plan`` maps a prompt to a SubmitResult or an exception to raise.
    ``status_plan`` maps a task id to a list of answers consumed one per query;
    the last answer repeats once the list is exhausted.
    """

    provider_name = "fake"

    def __init__(self):
        self.submit_plan: Dict[str, Any] = {}
        self.status_plan: Dict[str, List[Any]] = {}
        self.download_error: Optional[Exception] = None
        self.calls: List[tuple] = []
        self._counter = 0

    async def submit(self, job_spec: Dict[str, Any]) -> SubmitResult:
        self.calls.append(("submit", job_spec.get("prompt")))
        planned = self.submit_plan.get(job_spec.get("prompt"))
        if isinstance(planned, Exception):
            raise planned
        if planned is not None:
            return planned
        self._counter += 1
        return SubmitResult(success=True, task_id=f"task-{self._counter}")

    async def get_status(self, task_id: str) -> StatusResult:
        self.calls.append(("status", task_id))
        answers = self.status_plan.get(task_id) or [running()]
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def download(self, task_id: str, target_dir: str) -> str:
        self.calls.append(("download", task_id))
        if self.download_error is not None:
            raise self.download_error
        return f"{target_dir}/{task_id}.mp4"

    def calls_of(self, kind: str) -> List[Any]:
        return [arg for name, arg in self.calls if name == kind]


def running(progress: Any = 40) -> StatusResult:
    return StatusResult(success=True, data=TaskStatusData(status=TaskState.IN_PROGRESS, progress=progress))


def succeeded(output: str = "https://cdn.example.com/v/out.mp4") -> StatusResult:
    return StatusResult(success=True, data=TaskStatusData(status=TaskState.SUCCESS, progress=100, output=output))


def failed(reason: Optional[str] = "content policy") -> StatusResult:
    return StatusResult(success=True, data=TaskStatusData(status=TaskState.FAILURE, fail_reason=reason))


def node(node_id: str, node_type: str = "text", **data) -> WorkflowNode:
    return WorkflowNode(id=node_id, type=node_type, data=data)


def edge(source: str, target: str, handle: Optional[str] = None) -> WorkflowEdge:
    return WorkflowEdge(id=f"{source}-{target}", source=source, target=target, sourceHandle=handle)


@pytest.fixture
def fake_provider():
    """Create a scripted fake provider."""
    return FakeProvider()


@pytest.fixture
def batch_store():
    """Create a fresh batch store for one test."""
    return BatchStore()


@pytest.fixture
def sleeps():
    """Record of inter-job delays requested by the orchestrator."""
    return []


@pytest.fixture
def orchestrator(fake_provider, batch_store, sleeps):
    """Create an orchestrator with an instant, recording sleep."""
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return BatchOrchestrator(
        {"fake": fake_provider},
        store=batch_store,
        poll_interval=30.0,
        download_dir="/tmp/videoflow-test",
        sleep=fake_sleep,
    )


@pytest.fixture
def registry():
    """Create a registry with the built-in node handlers and no provider."""
    return build_default_registry()


@pytest.fixture
def controller(registry):
    """Create an execution controller over the default registry."""
    return ExecutionController(registry)
