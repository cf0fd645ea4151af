"""Tests for the memory layer manager: budgets, layer routing, context assembly."""

import asyncio
from datetime import date

import pytest

from openentity.embedding import EmbeddingService
from openentity.entity import PersonalityService
from openentity.memory import (
    MemoryLayer,
    MemoryLayerManager,
    MemorySummary,
    PeriodType,
    SemanticMemory,
    WorkingMemory,
    estimate_tokens,
    truncate_to_budget,
)

from conftest import FailingEmbeddingDriver


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def personality():
    return PersonalityService(None, name="Testy")


@pytest.fixture
def working(cache, thoughts):
    return WorkingMemory(cache, thoughts, max_items=10, ttl_minutes=60)


def _manager(personality, semantic, memories, summaries, working, **budget):
    return MemoryLayerManager(
        personality, semantic, memories, summaries, working,
        budget={"total": 4000, "working_memory": 1000, "episodic": 1500, "semantic": 1000, **budget},
        episodic_max_in_context=10,
        episodic_threshold=0.0,
        semantic_max_in_context=5,
    )


# ── token helpers ────────────────────────────────────────────────────────


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_truncate_to_budget():
    assert truncate_to_budget("short", 10) == "short"
    long_text = "x" * 200
    assert truncate_to_budget(long_text, 20) == "x" * 80 + "..."


def test_truncate_to_empty_budget():
    assert truncate_to_budget("anything", 0) == ""
    assert truncate_to_budget("anything", -5) == ""



# ── build_think_context ──────────────────────────────────────────────────


def test_core_identity_always_first(personality, semantic, memories, summaries, working):
    manager = _manager(personality, semantic, memories, summaries, working)
    context = run(manager.build_think_context("", "en"))
    assert context.startswith("I am Testy.")


def test_working_memory_budget_truncates(personality, semantic, memories, summaries, working):
    for i in range(5):
        working.add(f"a rather long working memory item number {i} with some padding text", 0.5)
    full = run(working.to_prompt_context("en"))
    assert len(full) > 80

    manager = _manager(personality, semantic, memories, summaries, working, working_memory=20)
    context = run(manager.build_think_context("", "en"))

    truncated = full[:80] + "..."
    assert truncated in context
    assert full not in context
    assert len(truncated) <= 83


def test_episodic_layer_uses_situation(personality, semantic, memories, summaries, working):
    async def scenario():
        await semantic.create_with_embedding({"content": "Walked the dog in the park"}, sync=True)
        await semantic.create_with_embedding({"content": "Bought groceries"}, sync=True)
        manager = _manager(personality, semantic, memories, summaries, working)
        return await manager.build_think_context("dog park", "en")

    context = run(scenario())
    assert "Relevant memories (experiences):" in context
    assert "Walked the dog in the park" in context


def test_episodic_layer_without_situation_uses_importance(personality, semantic, memories, summaries, working):
    async def scenario():
        await memories.create({"content": "minor", "importance": 0.1})
        await memories.create({"content": "major", "importance": 0.9})
        manager = _manager(personality, semantic, memories, summaries, working)
        return await manager.build_think_context("", "en")

    context = run(scenario())
    assert context.index("major") < context.index("minor")


def test_episodic_layer_stops_at_budget(personality, semantic, memories, summaries, working):
    async def scenario():
        for i in range(10):
            await memories.create({"content": f"episode {i} " + "z" * 100, "importance": 0.5})
        manager = _manager(personality, semantic, memories, summaries, working, episodic=80)
        return await manager.build_think_context("", "en")

    context = run(scenario())
    shown = sum(1 for i in range(10) if f"episode {i} " in context)
    assert 1 <= shown < 10


def test_semantic_layer_with_summaries(personality, semantic, memories, summaries, working):
    async def scenario():
        await memories.create({"type": "learned", "content": "Owls are nocturnal", "layer": MemoryLayer.SEMANTIC})
        await summaries.create(MemorySummary(
            period_start=date(2024, 3, 1),
            period_end=date(2024, 3, 1),
            period_type=PeriodType.DAILY,
            summary="A day of reading about birds",
        ))
        manager = _manager(personality, semantic, memories, summaries, working)
        return await manager.build_think_context("", "en")

    context = run(scenario())
    assert "Learned knowledge:" in context
    assert "Owls are nocturnal" in context
    assert "- [daily] A day of reading about birds" in context


def test_german_headers(personality, semantic, memories, summaries, working):
    run(memories.create({"content": "Ein Spaziergang"}))
    manager = _manager(personality, semantic, memories, summaries, working)
    context = run(manager.build_think_context("", "de"))
    assert "Relevante Erinnerungen (Erlebnisse):" in context


def test_identity_larger_than_total_budget_leaves_nothing_else(personality, semantic, memories, summaries, working):
    working.add("a thought I keep having", 0.9)

    async def scenario():
        await memories.create({"content": "an episode", "importance": 0.9})
        await memories.create({"type": "learned", "content": "a fact", "layer": MemoryLayer.SEMANTIC})
        manager = _manager(personality, semantic, memories, summaries, working, total=10)
        return await manager.build_think_context("", "en")

    context = run(scenario())
    assert estimate_tokens(personality.to_prompt("en")) > 10
    assert context == personality.to_prompt("en").strip()
    assert "..." not in context


def test_episodic_fallback_leaves_out_consolidated(personality, memories, summaries, working):
    offline = SemanticMemory(memories, EmbeddingService(FailingEmbeddingDriver()))

    async def scenario():
        old = await memories.create({"content": "rainy walk last spring"})
        await memories.create({"content": "rainy walk this morning"})
        await memories.mark_consolidated([old.id], summary_id=1)
        manager = _manager(personality, offline, memories, summaries, working)
        return await manager.build_think_context("rainy", "en")

    context = run(scenario())
    assert "rainy walk this morning" in context
    assert "last spring" not in context



# ── routing ──────────────────────────────────────────────────────────────


def test_layer_for_type():
    assert MemoryLayerManager.layer_for_type("learned") == MemoryLayer.SEMANTIC
    assert MemoryLayerManager.layer_for_type("skill") == MemoryLayer.PROCEDURAL
    assert MemoryLayerManager.layer_for_type("conversation") == MemoryLayer.EPISODIC


def test_route_to_layer_persists_in_layer(personality, semantic, memories, summaries, working):
    manager = _manager(personality, semantic, memories, summaries, working)

    async def scenario():
        fact = await manager.route_to_layer({"type": "fact", "content": "Water is wet"}, sync=True)
        episode = await manager.route_to_layer({"type": "experience", "content": "Got rained on"}, sync=True)
        return fact, episode, await manager.get_by_layer("semantic")

    fact, episode, semantic_layer = run(scenario())
    assert fact.layer == MemoryLayer.SEMANTIC
    assert fact.embedded_at is not None
    assert episode.layer == MemoryLayer.EPISODIC
    assert [m.id for m in semantic_layer] == [fact.id]


def test_get_core_identity(personality, semantic, memories, summaries, working):
    manager = _manager(personality, semantic, memories, summaries, working)
    identity = manager.get_core_identity()
    assert identity["name"] == "Testy"
    assert identity["values"] == ["Curiosity", "Honesty", "Creativity", "Connection"]
    assert identity["traits"]["curiosity"] == 0.9
