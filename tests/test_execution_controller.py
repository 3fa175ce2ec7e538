"""Tests for the workflow execution controller."""

import pytest

from videoflow.core.execution_controller import ExecutionController
from videoflow.core.node_registry import NodeExecutorRegistry
from videoflow.models.core import ExecutionState, LogLevelTag, WorkflowEdge, WorkflowNode

from conftest import edge, node


class InputRecorder:
    """Handler that stores the routed inputs it receives."""

    def __init__(self, output=None):
        self.seen = {}
        self.output = output or {}

    def __call__(self, node, inputs):
        self.seen[node.id] = dict(inputs)
        return dict(self.output)


class TestExecutionController:
    """Test cases for running workflows."""

    @pytest.mark.asyncio
    async def test_text_prompt_routed_to_video_node(self, registry):
        """Test that a text node's output arrives as the video node's prompt."""
        recorder = InputRecorder({"task_id": None})
        registry.register("videoGen", recorder, replace=True)
        controller = ExecutionController(registry)

        nodes = [
            WorkflowNode(id="1", type="text", data={"value": "hello"}),
            WorkflowNode(id="2", type="videoGen", data={}),
        ]
        edges = [WorkflowEdge(source="1", target="2", sourceHandle="text-output", targetHandle="prompt-input")]

        result = await controller.run(nodes, edges)

        assert result.success
        assert result.order == ["1", "2"]
        assert recorder.seen["2"]["prompt"] == "hello"
        assert result.results["1"] == {"text": "hello"}
        assert controller.state == ExecutionState.COMPLETED

    @pytest.mark.asyncio
    async def test_cycle_aborts_without_running_handlers(self):
        """Test that a cyclic graph aborts before any handler runs."""
        calls = []
        registry = NodeExecutorRegistry()
        registry.register("text", lambda n, i: calls.append(n.id) or {})
        controller = ExecutionController(registry)

        result = await controller.run([node("1"), node("2")], [edge("1", "2"), edge("2", "1")])

        assert not result.success
        assert "cycle" in result.error
        assert calls == []
        assert controller.state == ExecutionState.ABORTED
        assert controller.logs[-1].level == LogLevelTag.ERROR

    @pytest.mark.asyncio
    async def test_unknown_edge_endpoint_aborts(self, controller):
        """Test that a malformed graph aborts the run."""
        result = await controller.run([node("1")], [edge("1", "missing")])

        assert not result.success
        assert "missing" in result.error
        assert controller.state == ExecutionState.ABORTED

    @pytest.mark.asyncio
    async def test_partial_failure_continues_downstream(self):
        """Test that a failed node is recorded and its dependents still run without its field."""
        def failing(node, inputs):
            raise RuntimeError("image service down")

        recorder = InputRecorder({"done": True})
        registry = NodeExecutorRegistry()
        registry.register("text", lambda n, i: {"text": n.data.get("value")})
        registry.register("referenceImage", failing)
        registry.register("videoGen", recorder)
        controller = ExecutionController(registry)

        nodes = [node("t", "text", value="a dog"), node("img", "referenceImage"), node("v", "videoGen")]
        edges = [edge("t", "v", "text-output"), edge("img", "v", "images-output")]

        result = await controller.run(nodes, edges)

        assert result.success
        assert result.failed_node_ids == ["img"]
        assert set(result.completed_node_ids) == {"t", "v"}
        assert result.results["img"] == {"error": "image service down"}
        assert recorder.seen["v"] == {"prompt": "a dog"}

        progress = controller.progress
        assert progress.total == 3
        assert progress.completed + progress.failed == progress.total
        assert progress.failed == 1

    @pytest.mark.asyncio
    async def test_repeated_runs_are_idempotent(self, controller):
        """Test that running the same graph twice yields the same sets."""
        nodes = [node("a", value="x"), node("b", "taskResult"), node("c", "mystery")]
        edges = [edge("a", "b")]

        first = await controller.run(nodes, edges)
        second = await controller.run(nodes, edges)

        assert first.completed_node_ids == second.completed_node_ids
        assert first.failed_node_ids == second.failed_node_ids
        assert first.results == second.results
        assert first.order == second.order

    @pytest.mark.asyncio
    async def test_each_node_attempted_once(self):
        """Test that every node runs exactly once in a diamond graph."""
        calls = []
        registry = NodeExecutorRegistry()
        registry.register("text", lambda n, i: calls.append(n.id) or {"text": n.id})
        controller = ExecutionController(registry)

        nodes = [node("d"), node("b"), node("c"), node("a")]
        edges = [edge("a", "b"), edge("a", "c"), edge("b", "d"), edge("c", "d")]

        await controller.run(nodes, edges)

        assert sorted(calls) == ["a", "b", "c", "d"]
        assert calls.index("a") < calls.index("b") < calls.index("d")

    @pytest.mark.asyncio
    async def test_execution_log_entries(self, controller):
        """Test that the run log carries node labels and level tags."""
        await controller.run([node("1", label="Prompt", value="hi")], [])

        levels = [entry.level for entry in controller.logs]
        labelled = [entry for entry in controller.logs if entry.node_label == "Prompt"]

        assert levels[0] == LogLevelTag.INFO
        assert LogLevelTag.SUCCESS in levels
        assert len(labelled) == 2

    @pytest.mark.asyncio
    async def test_reset(self, controller):
        """Test that reset returns the controller to idle."""
        await controller.run([node("1", value="hi")], [])

        controller.reset()

        assert controller.state == ExecutionState.IDLE
        assert controller.results == {}
        assert controller.logs == []
        assert controller.progress.total == 0

    @pytest.mark.asyncio
    async def test_results_are_copies(self, controller):
        """Test that callers cannot mutate controller state through results."""
        await controller.run([node("1", value="hi")], [])

        snapshot = controller.results
        snapshot["1"]["text"] = "changed"

        assert controller.results["1"] == {"text": "hi"}

    @pytest.mark.asyncio
    async def test_current_node_tracks_running_node(self):
        """Test that handlers observe their own node as current, and none remains afterwards."""
        registry = NodeExecutorRegistry()
        controller = ExecutionController(registry)
        observed = []

        def watcher(node, inputs):
            observed.append(controller.current_node)
            return {}

        registry.register("watch", watcher)

        await controller.run([node("a", "watch"), node("b", "watch")], [edge("a", "b")])

        assert observed == ["a", "b"]
        assert controller.current_node is None
