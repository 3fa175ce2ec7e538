"""Tests for the port data router."""

import pytest

from videoflow.core.port_router import DEFAULT_PORT_TABLE, PortDataRouter, PortMapping

from conftest import edge


@pytest.fixture
def router():
    """Create a router with the built-in port table."""
    return PortDataRouter()


class TestPortDataRouter:
    """Test cases for routing upstream outputs into node inputs."""

    def test_text_output_becomes_prompt(self, router):
        """Test the text port mapping."""
        inputs = router.resolve("2", [edge("1", "2", "text-output")], {"1": {"text": "hello"}})

        assert inputs == {"prompt": "hello"}

    @pytest.mark.parametrize("handle,output,expected", [
        ("images-output", {"images": ["a.png"]}, {"images": ["a.png"]}),
        ("character-output", {"character": {"id": "c1"}}, {"character": {"id": "c1"}}),
        ("video-output", {"task_id": "t-9"}, {"video_task_id": "t-9"}),
        ("characters-output", {"characters": [{"id": "c1"}]}, {"characters": [{"id": "c1"}]}),
    ])
    def test_builtin_ports(self, router, handle, output, expected):
        """Test every built-in port mapping."""
        assert router.resolve("t", [edge("s", "t", handle)], {"s": output}) == expected

    def test_missing_source_key_uses_default(self, router):
        """Test list ports default to an empty list and scalar ports to None."""
        edges = [edge("img", "t", "images-output"), edge("txt", "t", "text-output")]

        inputs = router.resolve("t", edges, {"img": {}, "txt": {}})

        assert inputs == {"images": [], "prompt": None}

    def test_defaults_are_not_shared(self, router):
        """Test that a routed default list is a fresh object."""
        inputs = router.resolve("t", [edge("s", "t", "images-output")], {"s": {}})
        inputs["images"].append("mutated")

        assert DEFAULT_PORT_TABLE["images-output"].default == []

    def test_unknown_handle_passes_whole_record(self, router):
        """Test that unrecognized handles carry the full source output."""
        output = {"a": 1, "b": 2}

        inputs = router.resolve("t", [edge("s", "t", "custom-port")], {"s": output})

        assert inputs == {"custom-port": output}

    def test_edge_without_handle_uses_output_port(self, router):
        """Test that a missing source handle falls back to the generic port name."""
        inputs = router.resolve("t", [edge("s", "t")], {"s": {"x": 1}})

        assert inputs == {"output": {"x": 1}}

    def test_source_without_output_is_skipped(self, router):
        """Test that edges from failed or unexecuted nodes contribute nothing."""
        edges = [edge("failed", "t", "text-output"), edge("ok", "t", "images-output")]

        inputs = router.resolve("t", edges, {"ok": {"images": ["x.png"]}})

        assert inputs == {"images": ["x.png"]}
        assert "prompt" not in inputs

    def test_only_edges_into_target_are_used(self, router):
        """Test that edges into other nodes are ignored."""
        edges = [edge("s", "other", "text-output")]

        assert router.resolve("t", edges, {"s": {"text": "x"}}) == {}

    def test_register_port(self, router):
        """Test adding a new port without touching router code."""
        router.register_port("audio-output", PortMapping(field="audio", source_key="audio_url"))

        inputs = router.resolve("t", [edge("s", "t", "audio-output")], {"s": {"audio_url": "a.mp3"}})

        assert inputs == {"audio": "a.mp3"}
        assert "audio-output" in router.ports

    def test_register_empty_port_rejected(self, router):
        """Test that a blank handle name is rejected."""
        with pytest.raises(ValueError):
            router.register_port("  ", PortMapping(field="x", source_key="y"))

    def test_injected_table_replaces_defaults(self):
        """Test that a custom port table is used instead of the built-in one."""
        router = PortDataRouter({"text-output": PortMapping(field="caption", source_key="text")})

        assert router.resolve("t", [edge("s", "t", "text-output")], {"s": {"text": "hi"}}) == {"caption": "hi"}
        assert router.mapping_for("images-output") is None
