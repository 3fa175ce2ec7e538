"""Core workflow and batch engine components."""

from .exceptions import (
    VideoFlowError,
    GraphValidationError,
    CycleDetected,
    NodeExecutionError,
    NodeRegistryError,
    BatchError,
    BatchNotFoundError,
    InvalidJobTransition,
    SubmissionError,
    PollError,
    DownloadError,
    ProviderNotFoundError,
    ProviderError,
    TransientError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .topology import build_adjacency, topological_sort, sort_graph
from .port_router import PortMapping, PortDataRouter, DEFAULT_PORT_TABLE
from .node_registry import NodeExecutorRegistry
from .node_handlers import build_default_registry
from .execution_controller import ExecutionController
from .batch_store import BatchStore
from .batch_orchestrator import BatchOrchestrator, PollOptions

__all__ = [
    "VideoFlowError",
    "GraphValidationError",
    "CycleDetected",
    "NodeExecutionError",
    "NodeRegistryError",
    "BatchError",
    "BatchNotFoundError",
    "InvalidJobTransition",
    "SubmissionError",
    "PollError",
    "DownloadError",
    "ProviderNotFoundError",
    "ProviderError",
    "TransientError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "build_adjacency",
    "topological_sort",
    "sort_graph",
    "PortMapping",
    "PortDataRouter",
    "DEFAULT_PORT_TABLE",
    "NodeExecutorRegistry",
    "build_default_registry",
    "ExecutionController",
    "BatchStore",
    "BatchOrchestrator",
    "PollOptions",
]
