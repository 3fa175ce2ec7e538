"""
Base interface for external video task providers.

Every vendor adapter is normalized to the same submit / status / download
contract so the orchestrator never sees vendor payloads.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class TaskState(str, Enum):
    """Normalized status of an external task."""
    NOT_START = "NOT_START"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class SubmitResult(BaseModel):
    """Answer of ``TaskProvider.submit``."""
    success: bool
    task_id: Optional[str] = None
    error: Optional[str] = None


class TaskStatusData(BaseModel):
    """Normalized task status payload."""
    status: TaskState
    progress: Optional[Any] = None
    output: Optional[Any] = None
    fail_reason: Optional[str] = None


class StatusResult(BaseModel):
    """Answer of ``TaskProvider.get_status``."""
    success: bool
    data: Optional[TaskStatusData] = None
    error: Optional[str] = None


class CharacterResult(BaseModel):
    """Answer of ``TaskProvider.create_character``."""
    success: bool
    character: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class TaskProvider(ABC):
    """Abstract base for external task providers."""

    provider_name: str = "base"

    @abstractmethod
    async def submit(self, job_spec: Dict[str, Any]) -> SubmitResult:
        """Create a task. Expected failures come back as ``success=False``."""
        ...

    @abstractmethod
    async def get_status(self, task_id: str) -> StatusResult:
        """Read the current status of a task."""
        ...

    @abstractmethod
    async def download(self, task_id: str, target_dir: str) -> str:
        """
        Download a finished task's output.

        Returns:
            Local file path

        Raises:
            DownloadError: If the output cannot be fetched
        """
        ...

    async def create_storyboard(self, storyboard: Dict[str, Any]) -> SubmitResult:
        """Create one task from a multi-shot storyboard (``shots`` plus video settings)."""
        return SubmitResult(success=False, error=f"Provider {self.provider_name} does not support storyboards")

    async def create_character(
        self,
        timestamps: str,
        url: Optional[str] = None,
        from_task: Optional[str] = None
    ) -> CharacterResult:
        """Extract a reusable character from a video clip or a finished task."""
        return CharacterResult(success=False, error=f"Provider {self.provider_name} does not support characters")

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None
