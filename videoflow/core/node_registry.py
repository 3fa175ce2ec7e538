"""Registry of node-type handlers used by the execution controller."""

import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Union

from ..models.core import NodeOutcome, WorkflowNode
from .exceptions import NodeExecutionError, NodeRegistryError
from .logging import get_logger

logger = get_logger(__name__)

NodeHandler = Callable[
    [WorkflowNode, Mapping[str, Any]],
    Union[Dict[str, Any], Awaitable[Dict[str, Any]]],
]


class NodeExecutorRegistry:
    """Maps node types to the handlers that compute their output records."""

    def __init__(self):
        self._handlers: Dict[str, NodeHandler] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, node_type: str, handler: NodeHandler, description: str = "", replace: bool = False) -> None:
        """Register a handler for a node type.

        Args:
            node_type: Node type tag
            handler: Sync or async callable ``(node, inputs) -> dict``
            description: Optional description of the node type
            replace: Allow overriding an existing registration

        Raises:
            NodeRegistryError: If the type is empty, the handler is not callable,
                or the type is already registered and ``replace`` is False
        """
        if not node_type or not node_type.strip():
            raise NodeRegistryError("Node type cannot be empty", operation="register")

        node_type = node_type.strip()

        if not callable(handler):
            raise NodeRegistryError(
                f"Handler for '{node_type}' must be callable",
                node_type=node_type,
                operation="register"
            )

        try:
            sig = inspect.signature(handler)
            if len(sig.parameters) < 2:
                logger.warning(f"Handler for '{node_type}' accepts fewer than two parameters")
        except (ValueError, TypeError) as e:
            raise NodeRegistryError(
                f"Cannot inspect handler signature for '{node_type}': {e}",
                node_type=node_type,
                operation="register"
            )

        if node_type in self._handlers and not replace:
            raise NodeRegistryError(
                f"Node type '{node_type}' is already registered",
                node_type=node_type,
                operation="register"
            )

        self._handlers[node_type] = handler
        self._descriptions[node_type] = description.strip() if description else ""
        logger.debug(f"Registered handler for node type '{node_type}'")

    def unregister(self, node_type: str) -> bool:
        """Remove a handler. Returns False if the type was not registered."""
        removed = self._handlers.pop(node_type, None)
        self._descriptions.pop(node_type, None)
        return removed is not None

    def has_handler(self, node_type: str) -> bool:
        return node_type in self._handlers

    def list_handlers(self) -> Dict[str, str]:
        """Registered node types with their descriptions."""
        return dict(self._descriptions)

    async def execute(self, node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Run the handler for ``node.type``.

        Unknown types are not an error: a warning is logged and an empty record
        is returned.

        Raises:
            Whatever the handler raises
        """
        handler = self._handlers.get(node.type)
        if handler is None:
            logger.warning(f"Unknown node type: {node.type} (node {node.id})")
            return {}

        result = handler(node, inputs)
        if inspect.isawaitable(result):
            result = await result

        if result is None:
            return {}
        if not isinstance(result, dict):
            raise NodeExecutionError(
                f"Handler for '{node.type}' returned {type(result).__name__}, expected dict",
                node_id=node.id,
                node_type=node.type
            )
        return result

    async def run_node(self, node: WorkflowNode, inputs: Mapping[str, Any]) -> NodeOutcome:
        """Execute a node and fold any handler failure into a tagged outcome."""
        try:
            output = await self.execute(node, inputs)
        except Exception as e:
            logger.error(f"Node {node.id} ({node.type}) failed: {e}")
            return NodeOutcome.failure(node.id, str(e))
        return NodeOutcome.success(node.id, output)
