"""Tests for the node executor registry and the built-in node handlers."""

import pytest

from videoflow.core.exceptions import NodeExecutionError, NodeRegistryError
from videoflow.core.node_handlers import (
    CharacterCreateHandler, StoryboardHandler, VideoGenerateHandler, build_default_registry
)
from videoflow.core.node_registry import NodeExecutorRegistry
from videoflow.providers.base import CharacterResult, SubmitResult

from conftest import node


def echo_handler(node, inputs):
    """Sync handler returning its inputs."""
    return {"echo": dict(inputs)}


async def async_handler(node, inputs):
    """Async handler returning the node's label."""
    return {"label": node.label}


class TestNodeExecutorRegistry:
    """Test cases for handler registration and dispatch."""

    def test_register_and_list(self):
        """Test registration metadata."""
        registry = NodeExecutorRegistry()
        registry.register("echo", echo_handler, "Echoes inputs")

        assert registry.has_handler("echo")
        assert registry.list_handlers() == {"echo": "Echoes inputs"}

    def test_register_rejects_empty_type(self):
        """Test that a blank node type is rejected."""
        with pytest.raises(NodeRegistryError):
            NodeExecutorRegistry().register("  ", echo_handler)

    def test_register_rejects_non_callable(self):
        """Test that a non-callable handler is rejected."""
        with pytest.raises(NodeRegistryError) as exc_info:
            NodeExecutorRegistry().register("bad", "not a function")

        assert exc_info.value.context["node_type"] == "bad"

    def test_register_duplicate(self):
        """Test that re-registration needs replace=True."""
        registry = NodeExecutorRegistry()
        registry.register("echo", echo_handler)

        with pytest.raises(NodeRegistryError):
            registry.register("echo", async_handler)

        registry.register("echo", async_handler, replace=True)
        assert registry.has_handler("echo")

    def test_unregister(self):
        """Test handler removal."""
        registry = NodeExecutorRegistry()
        registry.register("echo", echo_handler)

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert not registry.has_handler("echo")

    @pytest.mark.asyncio
    async def test_execute_sync_and_async_handlers(self):
        """Test dispatch to both handler kinds."""
        registry = NodeExecutorRegistry()
        registry.register("echo", echo_handler)
        registry.register("label", async_handler)

        assert await registry.execute(node("1", "echo"), {"prompt": "x"}) == {"echo": {"prompt": "x"}}
        assert await registry.execute(node("2", "label", label="Second"), {}) == {"label": "Second"}

    @pytest.mark.asyncio
    async def test_unknown_type_returns_empty_record(self):
        """Test that an unknown node type is not an error."""
        registry = NodeExecutorRegistry()

        assert await registry.execute(node("1", "mystery"), {}) == {}

        outcome = await registry.run_node(node("1", "mystery"), {})
        assert outcome.ok
        assert outcome.output == {}

    @pytest.mark.asyncio
    async def test_non_dict_result_is_an_error(self):
        """Test that handlers must return a mapping."""
        registry = NodeExecutorRegistry()
        registry.register("bad", lambda n, i: ["not", "a", "dict"])

        with pytest.raises(NodeExecutionError):
            await registry.execute(node("1", "bad"), {})

    @pytest.mark.asyncio
    async def test_run_node_folds_exceptions(self):
        """Test that handler exceptions become failure outcomes."""
        def broken(node, inputs):
            raise RuntimeError("boom")

        registry = NodeExecutorRegistry()
        registry.register("broken", broken)

        outcome = await registry.run_node(node("n1", "broken"), {})

        assert not outcome.ok
        assert outcome.error == "boom"
        assert outcome.as_result() == {"error": "boom"}


class TestDefaultHandlers:
    """Test cases for the built-in node types."""

    def test_all_builtin_types_registered(self):
        """Test that every editor node type has a handler."""
        registry = build_default_registry()

        assert set(registry.list_handlers()) == {
            "text", "referenceImage", "characterSelect", "characterLibrary",
            "characterCreate", "videoGen", "storyboard", "taskResult", "executionLog",
        }

    @pytest.mark.asyncio
    async def test_text_prefers_local_value(self, registry):
        """Test that a stored value wins over the routed prompt."""
        assert await registry.execute(node("t", "text", value="local"), {"prompt": "routed"}) == {"text": "local"}
        assert await registry.execute(node("t", "text"), {"prompt": "routed"}) == {"text": "routed"}

    @pytest.mark.asyncio
    async def test_reference_image_defaults_to_empty_list(self, registry):
        """Test images fallback."""
        assert await registry.execute(node("r", "referenceImage"), {}) == {"images": []}
        assert await registry.execute(node("r", "referenceImage", images=["a.png"]), {}) == {"images": ["a.png"]}

    @pytest.mark.asyncio
    async def test_character_nodes(self, registry):
        """Test character select, library and create handlers."""
        hero = {"id": "c1", "username": "hero"}

        assert await registry.execute(node("s", "characterSelect", selected_character=hero), {}) == {"character": hero}
        assert await registry.execute(node("s", "characterSelect"), {"character": hero}) == {"character": hero}
        assert await registry.execute(node("l", "characterLibrary", characters=[hero]), {}) == {"characters": [hero]}
        assert await registry.execute(node("c", "characterCreate", created_character=hero), {}) == {"character": hero}

    @pytest.mark.asyncio
    async def test_task_result_reads_routed_video_task(self, registry):
        """Test taskResult fallback to the routed video task id."""
        assert await registry.execute(node("r", "taskResult"), {"video_task_id": "t-1"}) == {"task_id": "t-1"}

    @pytest.mark.asyncio
    async def test_storyboard_and_log_nodes(self, registry):
        """Test pass-through nodes."""
        assert await registry.execute(node("s", "storyboard", task_ids=["a"]), {}) == {"task_ids": ["a"], "results": []}
        assert await registry.execute(node("l", "executionLog"), {}) == {"logs": []}


class RecordingProvider:
    """Minimal submit-only provider used by the video node tests."""

    def __init__(self, result):
        self.result = result
        self.specs = []

    async def submit(self, job_spec):
        self.specs.append(job_spec)
        return self.result


class TestVideoGenerateHandler:
    """Test cases for the videoGen node."""

    @pytest.mark.asyncio
    async def test_without_provider_publishes_stored_task(self):
        """Test that the stored task id is published as-is."""
        handler = VideoGenerateHandler()

        output = await handler(node("v", "videoGen", task_id="t-7", video_result="u.mp4"), {})

        assert output == {"task_id": "t-7", "result": "u.mp4"}

    @pytest.mark.asyncio
    async def test_submits_routed_prompt(self):
        """Test that a provider receives the routed prompt and node settings."""
        provider = RecordingProvider(SubmitResult(success=True, task_id="t-new"))
        handler = VideoGenerateHandler(provider)

        output = await handler(node("v", "videoGen", duration=15, orientation="portrait"), {"prompt": "a cat"})

        assert output == {"task_id": "t-new", "result": None}
        assert provider.specs == [{"duration": 15, "orientation": "portrait", "prompt": "a cat", "images": []}]

    @pytest.mark.asyncio
    async def test_existing_task_is_not_resubmitted(self):
        """Test that a node with a task id skips submission."""
        provider = RecordingProvider(SubmitResult(success=True, task_id="t-new"))
        handler = VideoGenerateHandler(provider)

        output = await handler(node("v", "videoGen", task_id="t-old"), {"prompt": "a cat"})

        assert output["task_id"] == "t-old"
        assert provider.specs == []

    @pytest.mark.asyncio
    async def test_missing_prompt(self):
        """Test that submission without a prompt fails the node."""
        handler = VideoGenerateHandler(RecordingProvider(SubmitResult(success=True, task_id="x")))

        with pytest.raises(NodeExecutionError):
            await handler(node("v", "videoGen"), {})

    @pytest.mark.asyncio
    async def test_rejected_submission(self):
        """Test that a provider rejection fails the node."""
        handler = VideoGenerateHandler(RecordingProvider(SubmitResult(success=False, error="quota")))

        with pytest.raises(NodeExecutionError) as exc_info:
            await handler(node("v", "videoGen"), {"prompt": "a cat"})

        assert "quota" in exc_info.value.message


class MultiShotProvider:
    """Records storyboard and character requests and answers with fixed results."""

    def __init__(self, storyboard_result=None, character_result=None):
        self.storyboard_result = storyboard_result
        self.character_result = character_result
        self.storyboards = []
        self.characters = []

    async def create_storyboard(self, storyboard):
        self.storyboards.append(storyboard)
        return self.storyboard_result

    async def create_character(self, timestamps, url=None, from_task=None):
        self.characters.append((timestamps, url, from_task))
        return self.character_result


SHOTS = [{"duration": 5, "scene": "sunrise"}, {"duration": 5, "scene": "sunset"}]


class TestStoryboardHandler:
    """Test cases for the storyboard node."""

    @pytest.mark.asyncio
    async def test_creates_task_from_shots(self):
        """Test that shots and settings are sent as one storyboard."""
        provider = MultiShotProvider(storyboard_result=SubmitResult(success=True, task_id="sb-1"))
        handler = StoryboardHandler(provider)

        output = await handler(node("s", "storyboard", shots=SHOTS, orientation="portrait"), {"images": ["ref.png"]})

        assert output == {"task_ids": ["sb-1"], "results": []}
        assert provider.storyboards == [{"orientation": "portrait", "shots": SHOTS, "images": ["ref.png"]}]

    @pytest.mark.asyncio
    async def test_existing_tasks_are_republished(self):
        """Test that a node with task ids does not create another storyboard."""
        provider = MultiShotProvider(storyboard_result=SubmitResult(success=True, task_id="sb-1"))

        output = await StoryboardHandler(provider)(node("s", "storyboard", shots=SHOTS, task_ids=["old"]), {})

        assert output == {"task_ids": ["old"], "results": []}
        assert provider.storyboards == []

    @pytest.mark.asyncio
    async def test_rejected_storyboard(self):
        """Test that a provider rejection fails the node."""
        provider = MultiShotProvider(storyboard_result=SubmitResult(success=False, error="too long"))

        with pytest.raises(NodeExecutionError) as exc_info:
            await StoryboardHandler(provider)(node("s", "storyboard", shots=SHOTS), {})

        assert "too long" in exc_info.value.message


class TestCharacterCreateHandler:
    """Test cases for the characterCreate node."""

    @pytest.mark.asyncio
    async def test_creates_character_from_routed_task(self):
        """Test extraction from the upstream video task."""
        hero = {"id": "ch_1", "username": "hero"}
        provider = MultiShotProvider(character_result=CharacterResult(success=True, character=hero))

        output = await CharacterCreateHandler(provider)(
            node("c", "characterCreate", timestamps="1,3"), {"video_task_id": "vid_9"}
        )

        assert output == {"character": hero}
        assert provider.characters == [("1,3", None, "vid_9")]

    @pytest.mark.asyncio
    async def test_created_character_is_not_recreated(self):
        """Test that a stored character is published as-is."""
        hero = {"id": "ch_1", "username": "hero"}
        provider = MultiShotProvider(character_result=CharacterResult(success=True, character={"id": "other"}))

        output = await CharacterCreateHandler(provider)(
            node("c", "characterCreate", timestamps="1,3", created_character=hero), {}
        )

        assert output == {"character": hero}
        assert provider.characters == []

    @pytest.mark.asyncio
    async def test_rejected_character(self):
        """Test that a provider rejection fails the node."""
        provider = MultiShotProvider(character_result=CharacterResult(success=False, error="no face found"))

        with pytest.raises(NodeExecutionError) as exc_info:
            await CharacterCreateHandler(provider)(
                node("c", "characterCreate", timestamps="1,3", video_url="https://cdn.test/c.mp4"), {}
            )

        assert "no face found" in exc_info.value.message
