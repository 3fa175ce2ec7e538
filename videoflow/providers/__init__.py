"""External task providers."""

from .base import (
    TaskState,
    SubmitResult,
    TaskStatusData,
    StatusResult,
    CharacterResult,
    TaskProvider,
)
from .sora2 import Sora2Provider, PLATFORMS

__all__ = [
    "TaskState",
    "SubmitResult",
    "TaskStatusData",
    "StatusResult",
    "CharacterResult",
    "TaskProvider",
    "Sora2Provider",
    "PLATFORMS",
]
