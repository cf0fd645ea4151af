"""Tests for the tool registry and the built-in tools."""

import asyncio

import pytest

from openentity.energy import EnergyService
from openentity.memory import WorkingMemory
from openentity.tools import Tool, ToolRegistry, ToolResult
from openentity.tools.builtins import EnergyStatusTool, FocusTool, MemorySearchTool


def run(coro):
    return asyncio.run(coro)


class EchoTool(Tool):
    @property
    def name(self):
        return "echo"

    @property
    def description(self):
        return "Repeat the given text."

    @property
    def parameters(self):
        return {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]}

    async def execute(self, text):
        return ToolResult(success=True, output=text)


class BrokenTool(EchoTool):
    @property
    def name(self):
        return "broken"

    async def execute(self, **kwargs):
        raise RuntimeError("gears jammed")


@pytest.fixture
def registry():
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(BrokenTool())
    return registry


# ── registry ─────────────────────────────────────────────────────────────


def test_register_rejects_duplicates(registry):
    with pytest.raises(ValueError):
        registry.register(EchoTool())


def test_lookup(registry):
    assert "echo" in registry
    assert registry.has("broken")
    assert registry.get("missing") is None
    assert registry.list_names() == ["echo", "broken"]
    assert len(registry) == 2

    registry.unregister("broken")
    assert registry.list_names() == ["echo"]


def test_execute_success(registry):
    result = run(registry.execute("echo", {"text": "hello"}))
    assert result.success
    assert result.to_dict() == {"success": True, "result": "hello", "error": None}


def test_execute_unknown_tool(registry):
    result = run(registry.execute("teleport"))
    assert not result.success
    assert result.error_type == "tool_not_found"
    assert "echo" in result.error


def test_execute_with_bad_params(registry):
    result = run(registry.execute("echo", {"wrong": 1}))
    assert result.to_dict()["error"]["type"] == "invalid_params"


def test_execute_never_raises(registry):
    result = run(registry.execute("broken", {}))
    payload = result.to_dict()
    assert payload["success"] is False
    assert payload["result"] == ""
    assert payload["error"]["type"] == "execution_error"
    assert "gears jammed" in payload["error"]["message"]


def test_prompt_context(registry):
    assert registry.to_prompt_context().splitlines()[0] == "- echo: Repeat the given text. (params: text)"
    assert ToolRegistry().to_prompt_context() == "(no tools available)"


def test_result_to_message():
    assert ToolResult(success=True, output=42).to_message() == "42"
    assert ToolResult.failure("nope").to_message() == "Error: nope"


# ── builtins ─────────────────────────────────────────────────────────────


def test_focus_tool_adds_to_working_memory(cache):
    working = WorkingMemory(cache, None, max_items=5, ttl_minutes=10)
    tool = FocusTool(working)

    result = run(tool.execute(content="learn about tides", importance=3, category="plan"))
    assert result.success
    item = working.get_items()[0]
    assert item.content == "learn about tides"
    assert item.importance == 1.0
    assert item.category == "plan"

    assert run(tool.execute(content="  ")).error_type == "invalid_params"


def test_energy_status_tool(cache, clock):
    energy = EnergyService(cache, clock=clock)
    energy.set_energy(0.4)
    result = run(EnergyStatusTool(energy).execute())
    assert result.output["state"] == "tired"
    assert result.output["hours_until_depleted"] == pytest.approx(10.0)
    assert result.output["should_sleep"] is False


def test_memory_search_tool_recalls_results(semantic, memories):
    run(memories.create({"content": "The lighthouse keeper waved"}))
    tool = MemorySearchTool(semantic)

    result = run(tool.execute(query="lighthouse"))
    assert result.success
    assert result.metadata["count"] == 1
    assert result.output[0]["text"] == "The lighthouse keeper waved"
    assert run(memories.get(result.output[0]["id"])).recalled_count == 1

    assert run(tool.execute(query="")).error_type == "invalid_params"
