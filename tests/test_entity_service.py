"""Tests for the orchestrator: response parsing, think cycles, chat, tools, wake/sleep."""

import asyncio

import pytest

from openentity.cache import CacheStore
from openentity.container import create_container
from openentity.embedding import EmbeddingService, HashingEmbeddingDriver
from openentity.entity import parse_thought_response
from openentity.errors import GenerationBackendError
from openentity.llm import LLMService
from openentity.memory import ThoughtType


def run(coro):
    return asyncio.run(coro)


THOUGHT_WITH_TOOL = (
    "THOUGHT_TYPE: curiosity\n"
    "INTENSITY: 0.8\n"
    "THOUGHT: Why do owls hoot at night?\n"
    "WANTS_ACTION: yes\n"
    "TOOL: remember\n"
    'TOOL_PARAMS: {"content": "Owls hoot at night", "type": "learned"}\n'
    "ACTION: none"
)


@pytest.fixture
def container(entity_settings, llm_driver, clock):
    return run(create_container(
        entity_settings,
        llm=LLMService(llm_driver),
        embeddings=EmbeddingService(HashingEmbeddingDriver(dimensions=64)),
        cache=CacheStore(clock=clock),
    ))


@pytest.fixture
def entity(container):
    return container.entity


# ── parse_thought_response ───────────────────────────────────────────────


def test_parse_full_response():
    data = parse_thought_response(THOUGHT_WITH_TOOL)
    assert data["type"] == ThoughtType.CURIOSITY
    assert data["intensity"] == 0.8
    assert data["content"] == "Why do owls hoot at night?"
    assert data["wants_action"] is True
    assert data["tool"] == "remember"
    assert data["tool_params"] == {"content": "Owls hoot at night", "type": "learned"}


def test_parse_german_labels():
    data = parse_thought_response(
        "GEDANKEN_TYP: reflection\nINTENSITÄT: 0.3\nGEDANKE: Ich denke nach.\nWILL_HANDELN: ja\nTOOL: keins\nAKTION: spazieren"
    )
    assert data["type"] == ThoughtType.REFLECTION
    assert data["content"] == "Ich denke nach."
    assert data["wants_action"] is True
    assert data["tool"] is None
    assert data["action"] == "spazieren"


def test_parse_defaults_for_free_text():
    data = parse_thought_response("just rambling")
    assert data["type"] == ThoughtType.OBSERVATION
    assert data["intensity"] == 0.5
    assert data["content"] == "just rambling"
    assert data["wants_action"] is False


def test_parse_tolerates_garbage_values():
    data = parse_thought_response("THOUGHT_TYPE: daydream\nINTENSITY: lots\nINTENSITY: 7\nTOOL_PARAMS: [1, 2]")
    assert data["type"] == ThoughtType.OBSERVATION
    assert data["intensity"] == 1.0
    assert data["tool_params"] == {}


# ── think ────────────────────────────────────────────────────────────────


def test_think_while_asleep_does_nothing(entity, llm_driver):
    assert run(entity.think()) is None
    assert llm_driver.prompts == []


def test_think_records_thought_and_runs_tool(container, entity, llm_driver):
    llm_driver.responses = [THOUGHT_WITH_TOOL]

    async def scenario():
        await entity.wake()
        thought = await entity.think()
        learned = await container.memories.get_by_type("learned")
        experiences = await container.memories.get_by_type("experience")
        stored = await container.thoughts.get(thought.id)
        return thought, learned, experiences, stored

    thought, learned, experiences, stored = run(scenario())
    assert thought.type == ThoughtType.CURIOSITY
    assert "=== MY CAPABILITIES (TOOLS) ===" in llm_driver.prompts[0]
    assert "- remember:" in llm_driver.prompts[0]

    assert [m.content for m in learned] == ["Owls hoot at night"]
    assert experiences[0].content == "Tool 'remember' executed autonomously"
    assert stored.led_to_action
    assert stored.action_taken == "Tool 'remember' executed: successful"

    # thought (0.005 + 0.8 * 0.01) plus one tool call (0.02)
    assert container.energy.get_energy() == pytest.approx(0.7 - 0.013 - 0.02)
    assert container.working.has_topic("owls")
    assert entity.get_last_thought_at() is not None


def test_think_free_action_is_recorded(container, entity, llm_driver):
    llm_driver.responses = ["THOUGHT: I want to stretch.\nWANTS_ACTION: yes\nTOOL: none\nACTION: stretch"]

    async def scenario():
        await entity.wake()
        thought = await entity.think()
        return await container.thoughts.get(thought.id)

    assert run(scenario()).action_taken == "stretch"


def test_think_failure_returns_none(entity, llm_driver):
    llm_driver.responses = [GenerationBackendError("model unloaded")]

    async def scenario():
        await entity.wake()
        return await entity.think()

    assert run(scenario()) is None


# ── chat ─────────────────────────────────────────────────────────────────


def test_chat_keeps_history(container, entity, llm_driver):
    llm_driver.responses = ["Hello Alice!", "Still here."]

    async def scenario():
        first = await entity.chat("c1", "alice", "hi", channel="cli")
        second = await entity.chat("c1", "alice", "are you there?", channel="cli")
        return first, second

    first, second = run(scenario())
    assert first["message"] == "Hello Alice!"
    assert first["thought_process"] == "Conversation with alice: hi"
    assert "(New conversation)" in llm_driver.prompts[0]
    assert "alice: hi\nTesty: Hello Alice!\n" in llm_driver.prompts[1]
    assert second["metadata"]["thought_id"] > first["metadata"]["thought_id"]

    conversation = container.working.get_conversation_context("c1")
    assert conversation["channel"] == "cli"
    assert len(conversation["messages"]) == 4
    assert container.energy.get_energy() == pytest.approx(0.7 - 2 * 0.01)


def test_chat_failure_apologises(entity, llm_driver):
    llm_driver.responses = [GenerationBackendError("timeout")]
    reply = run(entity.chat("c1", "bob", "hello"))
    assert reply["message"] == "Sorry, I can't answer right now. Please try again later."
    assert reply["thought_process"] is None
    assert "timeout" in reply["metadata"]["error"]


def test_chat_context_failure_apologises(container, entity, llm_driver, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(entity.layers, "build_think_context", broken)
    reply = run(entity.chat("c1", "bob", "hello"))
    assert reply["message"] == "Sorry, I can't answer right now. Please try again later."
    assert reply["metadata"] == {"error": "database is locked"}
    assert llm_driver.prompts == []
    assert container.working.get_conversation_context("c1") is None


# ── tools ────────────────────────────────────────────────────────────────


def test_execute_tool_records_experience(container, entity):
    async def scenario():
        result = await entity.execute_tool("energy_status", triggered_by="alice")
        return result, await container.memories.get_related_to("alice")

    result, related = run(scenario())
    assert result.success
    assert related[0].content == "Tool 'energy_status' executed (triggered by alice)"
    assert related[0].context["tool"] == "energy_status"


def test_execute_unknown_tool_creates_no_memory(container, entity):
    result = run(entity.execute_tool("teleport"))
    assert result.error_type == "tool_not_found"
    assert run(container.memories.count()) == 0


# ── wake / sleep ─────────────────────────────────────────────────────────


def test_wake_and_sleep(container, entity, clock):
    assert entity.get_status() == "sleeping"

    wake_thought = run(entity.wake())
    assert entity.is_awake()
    assert wake_thought.content == "I am waking up. The world awaits."
    clock.advance(minutes=5)
    assert entity.get_uptime() == 300

    sleep_thought = run(entity.sleep())
    assert sleep_thought.type == ThoughtType.REFLECTION
    assert entity.get_status() == "sleeping"
    assert entity.get_uptime() is None
    assert container.energy.get_hours_asleep() == 0.0
