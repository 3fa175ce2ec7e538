"""Dependency ordering of workflow nodes."""

from collections import deque
from typing import Dict, List, Sequence, Tuple

from ..models.core import WorkflowEdge, WorkflowGraph, WorkflowNode
from .exceptions import CycleDetected, GraphValidationError
from .logging import get_logger

logger = get_logger(__name__)


def build_adjacency(
    nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]
) -> Tuple[Dict[str, List[str]], Dict[str, int]]:
    """
    Build the adjacency list and in-degree table for a graph.

    Every edge contributes its own adjacency entry, so two edges between the
    same pair of nodes count twice toward the target's in-degree and are
    released by two decrements when the source finishes.

    Raises:
        GraphValidationError: If an edge references an unknown node
    """
    graph: Dict[str, List[str]] = {node.id: [] for node in nodes}
    in_degree: Dict[str, int] = {node.id: 0 for node in nodes}

    for edge in edges:
        if edge.source not in graph or edge.target not in graph:
            missing = edge.source if edge.source not in graph else edge.target
            raise GraphValidationError(
                f"Edge {edge.source}->{edge.target} references unknown node '{missing}'"
            )
        graph[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    return graph, in_degree


def topological_sort(nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> List[str]:
    """
    Order node ids so that every edge points from an earlier to a later node.

    Kahn's algorithm with a FIFO queue seeded in node insertion order; ties
    between nodes that become ready together keep that order.

    Args:
        nodes: Workflow nodes in canvas order
        edges: Workflow edges

    Returns:
        List of node ids in execution order

    Raises:
        CycleDetected: If the graph contains a cycle (no partial order is returned)
        GraphValidationError: If an edge references an unknown node
    """
    graph, in_degree = build_adjacency(nodes, edges)

    queue = deque(node.id for node in nodes if in_degree[node.id] == 0)
    order: List[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)

        for dependent_id in graph[node_id]:
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                queue.append(dependent_id)

    if len(order) != len(nodes):
        unresolved = [node.id for node in nodes if in_degree[node.id] > 0]
        logger.warning(f"Cycle detected among nodes: {', '.join(unresolved)}")
        raise CycleDetected(unresolved_nodes=unresolved)

    logger.debug(f"Execution order: {' -> '.join(order)}")
    return order


def sort_graph(graph: WorkflowGraph) -> List[str]:
    """Validate a graph's structure and return its execution order."""
    validation = graph.validate_structure()
    if not validation.is_valid:
        raise GraphValidationError(
            f"Graph validation failed: {'; '.join(validation.errors)}",
            validation_errors=validation.errors
        )
    if validation.warnings:
        logger.warning(f"Graph validation warnings: {'; '.join(validation.warnings)}")

    return topological_sort(graph.nodes, graph.edges)
