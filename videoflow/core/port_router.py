"""Routing of upstream node outputs into a downstream node's input object."""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from ..models.core import WorkflowEdge
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PortMapping:
    """How one output port lands in the downstream input object."""
    field: str
    source_key: str
    default: Any = None


DEFAULT_PORT_TABLE: Dict[str, PortMapping] = {
    "text-output": PortMapping(field="prompt", source_key="text"),
    "images-output": PortMapping(field="images", source_key="images", default=[]),
    "character-output": PortMapping(field="character", source_key="character"),
    "video-output": PortMapping(field="video_task_id", source_key="task_id"),
    "characters-output": PortMapping(field="characters", source_key="characters", default=[]),
}


class PortDataRouter:
    """Resolves a node's routed inputs from results already produced upstream."""

    def __init__(self, port_table: Optional[Mapping[str, PortMapping]] = None):
        """
        Args:
            port_table: Output handle name -> mapping. Defaults to ``DEFAULT_PORT_TABLE``.
        """
        self._port_table: Dict[str, PortMapping] = dict(
            DEFAULT_PORT_TABLE if port_table is None else port_table
        )

    def register_port(self, handle: str, mapping: PortMapping) -> None:
        """Add or replace the mapping for an output handle."""
        if not handle or not handle.strip():
            raise ValueError("Port handle cannot be empty")
        self._port_table[handle.strip()] = mapping

    def mapping_for(self, handle: str) -> Optional[PortMapping]:
        return self._port_table.get(handle)

    @property
    def ports(self) -> Dict[str, PortMapping]:
        return dict(self._port_table)

    def resolve(
        self,
        node_id: str,
        edges: Sequence[WorkflowEdge],
        outputs: Mapping[str, Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Build the input object for ``node_id``.

        Args:
            node_id: Target node
            edges: All workflow edges
            outputs: Successful outputs of nodes that already ran, by node id

        Returns:
            Field name -> value. Edges whose source has no output are skipped.
        """
        inputs: Dict[str, Any] = {}

        for edge in edges:
            if edge.target != node_id:
                continue

            source_output = outputs.get(edge.source)
            if source_output is None:
                logger.debug(f"No output from '{edge.source}' for edge into '{node_id}', skipping")
                continue

            handle = edge.source_handle or "output"
            mapping = self._port_table.get(handle)

            if mapping is None:
                inputs[handle] = source_output
                continue

            value = source_output.get(mapping.source_key)
            if value is None:
                value = copy.copy(mapping.default)
            inputs[mapping.field] = value

        return inputs
