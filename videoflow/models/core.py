"""Core Pydantic models for workflow graphs and their execution."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExecutionState(str, Enum):
    """States of the execution controller."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class LogLevelTag(str, Enum):
    """Level tags of entries in a run's execution log."""
    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ERROR = "error"


class ValidationResult(BaseModel):
    """Result of graph validation."""
    is_valid: bool = Field(..., description="Whether the graph is valid")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of validation warnings")


class WorkflowNode(BaseModel):
    """A node placed on the editor canvas."""
    id: str = Field(..., description="Unique identifier for the node")
    type: str = Field(..., description="Node type tag used to pick a handler")
    data: Dict[str, Any] = Field(default_factory=dict, description="Node-local stored fields")

    @field_validator('id', 'type')
    @classmethod
    def validate_not_empty(cls, value):
        """Ensure id and type are non-empty."""
        if not value or not value.strip():
            raise ValueError("Node id and type cannot be empty")
        return value.strip()

    @property
    def label(self) -> str:
        """Human readable name used in execution logs."""
        return self.data.get("label") or self.id


class WorkflowEdge(BaseModel):
    """A connection from an output port of one node to an input port of another."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="Edge identifier")
    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_handle: str = Field("output", alias="sourceHandle", description="Output port name")
    target_handle: Optional[str] = Field(None, alias="targetHandle", description="Input port name")

    @field_validator('source_handle', mode='before')
    @classmethod
    def default_source_handle(cls, handle):
        """Edges drawn without a handle use the generic output port."""
        return handle or "output"


class WorkflowGraph(BaseModel):
    """Nodes and edges of one workflow."""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)

    def validate_structure(self) -> ValidationResult:
        """Check node id uniqueness and edge references."""
        errors = []
        warnings = []

        seen = set()
        duplicates = set()
        for node in self.nodes:
            if node.id in seen:
                duplicates.add(node.id)
            seen.add(node.id)
        if duplicates:
            errors.append(f"Duplicate node ids: {', '.join(sorted(duplicates))}")

        for edge in self.edges:
            if edge.source not in seen:
                errors.append(f"Edge references non-existent source node: '{edge.source}'")
            if edge.target not in seen:
                errors.append(f"Edge references non-existent target node: '{edge.target}'")

        pairs = [(edge.source, edge.target) for edge in self.edges]
        repeated = sorted({pair for pair in pairs if pairs.count(pair) > 1})
        if repeated:
            warnings.append(
                "Duplicate edges: " + ", ".join(f"{s}->{t}" for s, t in repeated)
            )

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )


class Progress(BaseModel):
    """Counters for a run."""
    total: int = 0
    completed: int = 0
    failed: int = 0


class ExecutionLogEntry(BaseModel):
    """One line of the user-visible execution log."""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    level: LogLevelTag
    message: str
    node_label: Optional[str] = None


class NodeOutcome(BaseModel):
    """Success-or-error result of attempting one node."""
    node_id: str
    ok: bool
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def success(cls, node_id: str, output: Dict[str, Any]) -> "NodeOutcome":
        return cls(node_id=node_id, ok=True, output=output)

    @classmethod
    def failure(cls, node_id: str, error: str) -> "NodeOutcome":
        return cls(node_id=node_id, ok=False, error=error)

    def as_result(self) -> Dict[str, Any]:
        """Entry stored in the run's result map."""
        return dict(self.output) if self.ok else {"error": self.error}


class RunResult(BaseModel):
    """Outcome of ``ExecutionController.run``."""
    success: bool
    results: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    completed_node_ids: List[str] = Field(default_factory=list)
    failed_node_ids: List[str] = Field(default_factory=list)
    order: List[str] = Field(default_factory=list)
    error: Optional[str] = None
