"""Default handlers for the editor's node types.

Each handler prefers the node's own stored data and falls back to the routed
input for the same logical field, so a node edited by hand overrides whatever
flows in from upstream.
"""

from typing import Any, Dict, Mapping, Optional

from ..models.core import WorkflowNode
from ..providers.base import TaskProvider
from .exceptions import NodeExecutionError
from .logging import get_logger
from .node_registry import NodeExecutorRegistry

logger = get_logger(__name__)

VIDEO_SETTING_KEYS = ("model", "orientation", "duration", "size", "watermark", "private")


def _prefer(data: Mapping[str, Any], key: str, inputs: Mapping[str, Any], field: str, default: Any = None) -> Any:
    """Node-local value if set, else the routed input, else ``default``."""
    return data.get(key) or inputs.get(field) or default


def text_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"text": _prefer(node.data, "value", inputs, "prompt")}


def reference_image_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"images": _prefer(node.data, "images", inputs, "images", [])}


def character_select_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"character": _prefer(node.data, "selected_character", inputs, "character")}


def character_library_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"characters": _prefer(node.data, "characters", inputs, "characters", [])}


def task_result_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"task_id": _prefer(node.data, "task_id", inputs, "video_task_id")}


def execution_log_node(node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
    return {"logs": node.data.get("logs") or []}


class VideoGenerateHandler:
    """Publishes a video task id, submitting a new task when a provider is wired in."""

    def __init__(self, provider: Optional[TaskProvider] = None):
        self.provider = provider

    async def __call__(self, node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        data = node.data
        task_id = data.get("task_id")

        if task_id or self.provider is None:
            return {"task_id": task_id, "result": data.get("video_result")}

        prompt = _prefer(data, "prompt", inputs, "prompt")
        if not prompt:
            raise NodeExecutionError(
                "Video generation needs a prompt",
                node_id=node.id,
                node_type=node.type
            )

        job_spec: Dict[str, Any] = {
            key: data[key] for key in VIDEO_SETTING_KEYS if data.get(key) is not None
        }
        job_spec["prompt"] = prompt
        job_spec["images"] = _prefer(data, "images", inputs, "images", [])

        submitted = await self.provider.submit(job_spec)
        if not submitted.success:
            raise NodeExecutionError(
                f"Video task submission failed: {submitted.error}",
                node_id=node.id,
                node_type=node.type
            )

        logger.info(f"Node {node.id} submitted video task {submitted.task_id}")
        return {"task_id": submitted.task_id, "result": None}


class StoryboardHandler:
    """Publishes storyboard task ids, creating a multi-shot task when shots are set."""

    def __init__(self, provider: Optional[TaskProvider] = None):
        self.provider = provider

    async def __call__(self, node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        data = node.data
        task_ids = data.get("task_ids") or []
        shots = data.get("shots")

        if task_ids or not shots or self.provider is None:
            return {"task_ids": task_ids, "results": data.get("results") or []}

        storyboard: Dict[str, Any] = {
            key: data[key] for key in VIDEO_SETTING_KEYS if data.get(key) is not None
        }
        storyboard["shots"] = shots
        storyboard["images"] = _prefer(data, "images", inputs, "images", [])

        created = await self.provider.create_storyboard(storyboard)
        if not created.success:
            raise NodeExecutionError(
                f"Storyboard submission failed: {created.error}",
                node_id=node.id,
                node_type=node.type
            )

        logger.info(f"Node {node.id} submitted storyboard task {created.task_id} with {len(shots)} shots")
        return {"task_ids": [created.task_id], "results": []}


class CharacterCreateHandler:
    """Publishes a created character, extracting one from a video when asked to."""

    def __init__(self, provider: Optional[TaskProvider] = None):
        self.provider = provider

    async def __call__(self, node: WorkflowNode, inputs: Mapping[str, Any]) -> Dict[str, Any]:
        data = node.data
        existing = _prefer(data, "created_character", inputs, "character")
        timestamps = data.get("timestamps")

        if existing or not timestamps or self.provider is None:
            return {"character": existing}

        url = data.get("video_url")
        from_task = data.get("from_task") or inputs.get("video_task_id")

        created = await self.provider.create_character(timestamps, url=url, from_task=from_task)
        if not created.success:
            raise NodeExecutionError(
                f"Character creation failed: {created.error}",
                node_id=node.id,
                node_type=node.type
            )

        logger.info(f"Node {node.id} created character {created.character.get('username')}")
        return {"character": created.character}


def build_default_registry(provider: Optional[TaskProvider] = None) -> NodeExecutorRegistry:
    """Create a registry holding the handlers for every built-in node type."""
    registry = NodeExecutorRegistry()
    registry.register("text", text_node, "Free text, published as a prompt")
    registry.register("referenceImage", reference_image_node, "Reference image URLs")
    registry.register("characterSelect", character_select_node, "One selected character")
    registry.register("characterLibrary", character_library_node, "A list of characters")
    registry.register("characterCreate", CharacterCreateHandler(provider), "Character created from a video")
    registry.register("videoGen", VideoGenerateHandler(provider), "Video generation task")
    registry.register("storyboard", StoryboardHandler(provider), "Multi-shot storyboard tasks")
    registry.register("taskResult", task_result_node, "Displays a video task result")
    registry.register("executionLog", execution_log_node, "Displays execution logs")
    return registry
