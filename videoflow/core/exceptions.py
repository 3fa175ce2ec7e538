"""Custom exceptions for the VideoFlow engine with detailed error information."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    LIFECYCLE = "lifecycle"


class VideoFlowError(Exception):
    """Base exception for all VideoFlow errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.retry_after = retry_after
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and summaries."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "retry_after": self.retry_after,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs):
        """Add additional details to the exception."""
        self.details.update(kwargs)
        return self


class GraphValidationError(VideoFlowError):
    """Raised when a workflow graph is structurally invalid."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.validation_errors = validation_errors or []
        if validation_errors:
            self.add_details(validation_errors=validation_errors)


class CycleDetected(GraphValidationError):
    """Raised when the workflow graph contains a dependency cycle."""

    def __init__(
        self,
        message: str = "Workflow contains a dependency cycle",
        unresolved_nodes: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.unresolved_nodes = unresolved_nodes or []
        if unresolved_nodes:
            self.add_details(unresolved_nodes=unresolved_nodes)


class NodeExecutionError(VideoFlowError):
    """Raised by a node handler when the node cannot produce its output."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXECUTION,
            recoverable=True,
            **kwargs
        )
        if node_id:
            self.add_context(node_id=node_id)
        if node_type:
            self.add_context(node_type=node_type)


class NodeRegistryError(VideoFlowError):
    """Raised when node handler registry operations fail."""

    def __init__(
        self,
        message: str,
        node_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if node_type:
            self.add_context(node_type=node_type)
        if operation:
            self.add_context(operation=operation)


class BatchError(VideoFlowError):
    """Base class for batch orchestration errors."""

    def __init__(
        self,
        message: str,
        batch_id: Optional[str] = None,
        job_id: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("category", ErrorCategory.LIFECYCLE)
        super().__init__(message, **kwargs)
        if batch_id:
            self.add_context(batch_id=batch_id)
        if job_id:
            self.add_context(job_id=job_id)


class BatchNotFoundError(BatchError):
    """Raised when a batch id is not present in the store."""


class InvalidJobTransition(BatchError):
    """Raised when a job status change would move backwards or leave a terminal state."""

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None, **kwargs):
        super().__init__(message, severity=ErrorSeverity.HIGH, **kwargs)
        if current and requested:
            self.add_details(current=current, requested=requested)


class SubmissionError(BatchError):
    """A job could not be submitted to its provider. Terminal for that job."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.NETWORK, **kwargs)


class PollError(BatchError):
    """A job's status could not be read. Terminal for that job."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.NETWORK, **kwargs)


class DownloadError(BatchError):
    """The output of an already completed job could not be downloaded."""

    def __init__(self, message: str, task_id: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.NETWORK, recoverable=True, **kwargs)
        if task_id:
            self.add_context(task_id=task_id)


class ProviderNotFoundError(VideoFlowError):
    """Raised when a batch names a provider that was never configured."""

    def __init__(self, message: str, provider_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if provider_id:
            self.add_context(provider_id=provider_id)


class ProviderError(VideoFlowError):
    """Raised when an external task provider answers with an HTTP error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.NETWORK,
            **kwargs
        )
        self.status_code = status_code
        if endpoint:
            self.add_context(endpoint=endpoint)
        if status_code is not None:
            self.add_details(status_code=status_code)


class TransientError(VideoFlowError):
    """Raised for transient errors that should be retried."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.NETWORK,
            recoverable=True,
            retry_after=5,
            **kwargs
        )


class ConfigurationError(VideoFlowError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)
