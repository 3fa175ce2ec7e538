"""Execution controller: runs a workflow's nodes in dependency order."""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from ..models.core import (
    ExecutionLogEntry, ExecutionState, LogLevelTag, NodeOutcome, Progress,
    RunResult, WorkflowEdge, WorkflowGraph, WorkflowNode
)
from .exceptions import GraphValidationError
from .logging import get_logger, log_with_context
from .node_registry import NodeExecutorRegistry
from .port_router import PortDataRouter
from .topology import sort_graph

logger = get_logger(__name__)

_PY_LEVELS = {
    LogLevelTag.INFO: logging.INFO,
    LogLevelTag.SUCCESS: logging.INFO,
    LogLevelTag.WARN: logging.WARNING,
    LogLevelTag.ERROR: logging.ERROR,
}


class ExecutionController:
    """
    Orchestrates sorter, router and node registry across one workflow run.

    States: ``idle -> running -> {completed, aborted}``. A run is aborted only
    when the graph cannot be ordered; node failures are recorded and the run
    carries on with the next node.
    """

    def __init__(self, registry: NodeExecutorRegistry, router: Optional[PortDataRouter] = None):
        """
        Args:
            registry: Node-type handlers
            router: Port data router, defaults to the built-in port table
        """
        self.registry = registry
        self.router = router or PortDataRouter()

        self._state = ExecutionState.IDLE
        self._results: Dict[str, Dict[str, Any]] = {}
        self._outputs: Dict[str, Dict[str, Any]] = {}
        self._outcomes: List[NodeOutcome] = []
        self._logs: List[ExecutionLogEntry] = []
        self._progress = Progress()
        self._current_node: Optional[str] = None
        self._run_id: Optional[str] = None

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def progress(self) -> Progress:
        return self._progress.model_copy()

    @property
    def logs(self) -> List[ExecutionLogEntry]:
        return list(self._logs)

    @property
    def results(self) -> Dict[str, Dict[str, Any]]:
        return {node_id: dict(result) for node_id, result in self._results.items()}

    @property
    def outcomes(self) -> List[NodeOutcome]:
        return list(self._outcomes)

    @property
    def current_node(self) -> Optional[str]:
        return self._current_node

    @property
    def run_id(self) -> Optional[str]:
        return self._run_id

    def reset(self) -> None:
        """Forget the previous run and return to ``idle``."""
        self._state = ExecutionState.IDLE
        self._results = {}
        self._outputs = {}
        self._outcomes = []
        self._logs = []
        self._progress = Progress()
        self._current_node = None

    async def run(self, nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> RunResult:
        """
        Execute every node once, in topological order.

        Args:
            nodes: Workflow nodes in canvas order
            edges: Workflow edges

        Returns:
            RunResult with ``success=False`` and an error message when the graph
            is cyclic or malformed; otherwise ``success=True`` with per-node results.
        """
        self.reset()
        self._run_id = str(uuid.uuid4())
        self._state = ExecutionState.RUNNING
        self._progress = Progress(total=len(nodes))
        self._log(LogLevelTag.INFO, "Workflow execution started")

        graph = WorkflowGraph(nodes=list(nodes), edges=list(edges))
        try:
            order = sort_graph(graph)
        except GraphValidationError as e:
            self._state = ExecutionState.ABORTED
            self._log(LogLevelTag.ERROR, f"Workflow execution aborted: {e.message}")
            return RunResult(success=False, error=e.message)

        self._log(LogLevelTag.INFO, f"Execution order: {' -> '.join(order)}")

        nodes_by_id = {node.id: node for node in graph.nodes}
        for node_id in order:
            outcome = await self._run_one(nodes_by_id[node_id], graph.edges)
            self._outcomes.append(outcome)

        self._current_node = None
        completed = [o.node_id for o in self._outcomes if o.ok]
        failed = [o.node_id for o in self._outcomes if not o.ok]

        self._log(LogLevelTag.INFO, f"Workflow finished: {len(completed)}/{len(nodes)} nodes succeeded")
        if failed:
            self._log(LogLevelTag.WARN, f"{len(failed)} node(s) failed")

        self._state = ExecutionState.COMPLETED
        return RunResult(
            success=True,
            results=self.results,
            completed_node_ids=completed,
            failed_node_ids=failed,
            order=order
        )

    async def _run_one(self, node: WorkflowNode, edges: Sequence[WorkflowEdge]) -> NodeOutcome:
        """Route inputs into one node, run it and record the outcome."""
        label = node.label
        self._current_node = node.id
        self._log(LogLevelTag.INFO, f"Executing node: {label}", label)

        inputs = self.router.resolve(node.id, edges, self._outputs)
        outcome = await self.registry.run_node(node, inputs)

        self._results[node.id] = outcome.as_result()
        if outcome.ok:
            self._outputs[node.id] = outcome.output
            self._progress.completed += 1
            self._log(LogLevelTag.SUCCESS, f"Node completed: {label}", label)
        else:
            self._progress.failed += 1
            self._log(LogLevelTag.ERROR, f"Node failed: {label} - {outcome.error}", label)

        return outcome

    def _log(self, level: LogLevelTag, message: str, node_label: Optional[str] = None) -> None:
        self._logs.append(ExecutionLogEntry(level=level, message=message, node_label=node_label))
        log_with_context(logger, _PY_LEVELS[level], message, run_id=self._run_id, node=node_label)
