"""Tests for memory consolidation: idempotence, empty periods, fallbacks, archiving."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from openentity.llm import LLMService
from openentity.memory import MemoryConsolidation, MemoryLifecycle, PeriodType, get_db
from openentity.memory.database import to_db_time

from conftest import FailingLLMDriver, FakeLLMDriver


def run(coro):
    return asyncio.run(coro)


DAY = date(2024, 3, 14)


async def _backdate(db_path, memory_id, when: datetime):
    async with get_db(db_path) as db:
        await db.execute("UPDATE memories SET created_at = ? WHERE id = ?", (to_db_time(when), memory_id))
        await db.commit()


async def _seed_day(memories, db_path, day=DAY, specs=None):
    specs = specs or [
        ("experience", "Went for a walk in the rain", 0.5, 9),
        ("learned", "Rain smells like petrichor", 0.7, 11),
        ("conversation", "Chatted with Alice about umbrellas", 0.4, 15),
    ]
    created = []
    for memory_type, content, importance, hour in specs:
        m = await memories.create({
            "type": memory_type,
            "content": content,
            "importance": importance,
            "emotional_valence": 0.2,
            "related_entity": "alice" if memory_type == "conversation" else None,
        })
        await _backdate(db_path, m.id, datetime.combine(day, datetime.min.time()).replace(hour=hour))
        created.append(m)
    return created


@pytest.fixture
def consolidation_llm():
    return FakeLLMDriver(responses=[
        '["weather", "learning", "friends"]',
        "It rained all day and I learned a new word.",
        "Petrichor is the smell of rain.",
    ])


@pytest.fixture
def consolidation(memories, summaries, consolidation_llm, embeddings):
    return MemoryConsolidation(memories, summaries, LLMService(consolidation_llm), embeddings)


# ── consolidate_period ───────────────────────────────────────────────────


def test_consolidate_creates_summary_and_marks_memories(consolidation, memories, db_path):
    async def scenario():
        created = await _seed_day(memories, db_path)
        summary = await consolidation.consolidate_period(DAY, DAY, PeriodType.DAILY)
        reloaded = [await memories.get(m.id) for m in created]
        return summary, reloaded

    summary, reloaded = run(scenario())
    assert summary.id is not None
    assert summary.themes == ["weather", "learning", "friends"]
    assert summary.summary == "It rained all day and I learned a new word."
    assert summary.key_insights == "Petrichor is the smell of rain."
    assert summary.source_memory_count == 3
    assert summary.entities_mentioned == ["alice"]
    assert summary.average_emotional_valence == pytest.approx(0.2)
    assert summary.embedding is not None
    assert all(m.lifecycle == MemoryLifecycle.CONSOLIDATED for m in reloaded)
    assert all(m.consolidated_into_id == summary.id for m in reloaded)


def test_consolidate_is_idempotent(consolidation, memories, summaries, db_path, consolidation_llm):
    async def scenario():
        await _seed_day(memories, db_path)
        first = await consolidation.consolidate_period(DAY, DAY, "daily")
        calls_after_first = len(consolidation_llm.prompts)
        second = await consolidation.consolidate_period(DAY, DAY, "daily")
        return first, second, calls_after_first

    first, second, calls_after_first = run(scenario())
    assert second.id == first.id
    assert len(consolidation_llm.prompts) == calls_after_first
    assert run(summaries.count()) == 1


def test_consolidate_empty_period_returns_none(consolidation, summaries):
    assert run(consolidation.consolidate_period(DAY, DAY, PeriodType.DAILY)) is None
    assert run(summaries.count()) == 0


def test_consolidate_accepts_datetimes(consolidation, memories, db_path):
    async def scenario():
        await _seed_day(memories, db_path)
        return await consolidation.consolidate_period(
            datetime.combine(DAY, datetime.min.time()),
            datetime.combine(DAY, datetime.max.time()),
        )

    summary = run(scenario())
    assert summary.period_start == DAY
    assert summary.period_end == DAY


def test_consolidate_skips_other_days(consolidation, memories, db_path):
    async def scenario():
        await _seed_day(memories, db_path, day=DAY - timedelta(days=1))
        return await consolidation.consolidate_period(DAY, DAY)

    assert run(scenario()) is None


def test_consolidate_survives_generation_failure(memories, summaries, embeddings, db_path):
    consolidation = MemoryConsolidation(memories, summaries, LLMService(FailingLLMDriver()), embeddings)

    async def scenario():
        await _seed_day(memories, db_path, specs=[
            ("experience", "First thing", 0.5, 8),
            ("learned", "Second thing", 0.8, 10),
        ])
        return await consolidation.consolidate_period(DAY, DAY)

    summary = run(scenario())
    assert summary is not None
    assert summary.themes == ["learned", "experience"]
    assert summary.summary.startswith("Day summary:")
    assert summary.key_insights is None


# ── extraction helpers ───────────────────────────────────────────────────


def test_extract_themes_parses_plain_lists(memories, summaries, embeddings):
    llm = LLMService(FakeLLMDriver(responses=["music, cooking\nsleep"]))
    consolidation = MemoryConsolidation(memories, summaries, llm, embeddings)
    m = run(memories.create({"content": "x"}))
    assert run(consolidation.extract_themes([m])) == ["music", "cooking", "sleep"]


def test_extract_themes_finds_embedded_json(memories, summaries, embeddings):
    llm = LLMService(FakeLLMDriver(responses=['Sure! Here you go: ["a", "b"] hope that helps']))
    consolidation = MemoryConsolidation(memories, summaries, llm, embeddings)
    m = run(memories.create({"content": "x"}))
    assert run(consolidation.extract_themes([m])) == ["a", "b"]


def test_generate_summary_orders_chronologically(memories, summaries, embeddings, db_path):
    driver = FakeLLMDriver(default="summary")
    consolidation = MemoryConsolidation(memories, summaries, LLMService(driver), embeddings)

    async def scenario():
        created = await _seed_day(memories, db_path, specs=[
            ("experience", "evening event", 0.9, 20),
            ("experience", "morning event", 0.1, 7),
        ])
        loaded = [await memories.get(m.id) for m in created]
        return await consolidation.generate_summary(loaded)

    run(scenario())
    prompt = driver.prompts[0]
    assert prompt.index("morning event") < prompt.index("evening event")


def test_key_insights_only_for_significant_memories(memories, summaries, embeddings):
    driver = FakeLLMDriver(default="insight")
    consolidation = MemoryConsolidation(memories, summaries, LLMService(driver), embeddings)
    trivial = run(memories.create({"type": "experience", "content": "meh", "importance": 0.3}))
    assert run(consolidation.extract_key_insights([trivial])) is None
    assert driver.prompts == []

    decision = run(memories.create({"type": "decision", "content": "chose tea", "importance": 0.3}))
    assert run(consolidation.extract_key_insights([trivial, decision])) == "insight"
    assert "chose tea" in driver.prompts[0]
    assert "meh" not in driver.prompts[0]


# ── archive / stats ──────────────────────────────────────────────────────


def test_archive_groups_old_memories_by_week(memories, summaries, embeddings, db_path):
    consolidation = MemoryConsolidation(memories, summaries, LLMService(FakeLLMDriver()), embeddings)
    old_monday = date.today() - timedelta(days=70)
    old_monday -= timedelta(days=old_monday.weekday())

    async def scenario():
        await _seed_day(memories, db_path, day=old_monday, specs=[("experience", "old a", 0.2, 9)])
        await _seed_day(memories, db_path, day=old_monday + timedelta(days=2), specs=[("experience", "old b", 0.3, 9)])
        await _seed_day(memories, db_path, day=old_monday + timedelta(days=14), specs=[("experience", "old c", 0.1, 9)])
        await _seed_day(memories, db_path, day=old_monday, specs=[("experience", "important", 0.9, 10)])
        await memories.create({"content": "fresh", "importance": 0.1})
        return await consolidation.archive_old_memories(days_old=30)

    assert run(scenario()) == 3
    assert run(summaries.count("weekly")) == 2
    week = run(summaries.find_for_period("weekly", old_monday, old_monday + timedelta(days=6)))
    # the weekly summary covers everything active in that week
    assert week.source_memory_count == 3


def test_archive_folds_late_memories_into_existing_week(memories, summaries, embeddings, db_path):
    consolidation = MemoryConsolidation(memories, summaries, LLMService(FakeLLMDriver()), embeddings)
    old_monday = date.today() - timedelta(days=70)
    old_monday -= timedelta(days=old_monday.weekday())

    async def scenario():
        await _seed_day(memories, db_path, day=old_monday, specs=[("experience", "early", 0.2, 9)])
        first = await consolidation.archive_old_memories(days_old=30)
        late = await _seed_day(memories, db_path, day=old_monday + timedelta(days=3), specs=[("experience", "late", 0.2, 9)])
        second = await consolidation.archive_old_memories(days_old=30)
        third = await consolidation.archive_old_memories(days_old=30)
        active = await memories.count(lifecycle=MemoryLifecycle.ACTIVE)
        week = await summaries.find_for_period("weekly", old_monday, old_monday + timedelta(days=6))
        return (first, second, third, active), await memories.get(late[0].id), week

    counts, late, week = run(scenario())
    assert counts == (1, 0, 0, 0)
    assert late.lifecycle == MemoryLifecycle.CONSOLIDATED
    assert late.consolidated_into_id == week.id
    assert run(summaries.count("weekly")) == 1


def test_stats_reports_counts(consolidation, memories, db_path):
    async def scenario():
        await _seed_day(memories, db_path)
        await memories.create({"content": "today"})
        await consolidation.consolidate_period(DAY, DAY)
        return await consolidation.get_stats()

    stats = run(scenario())
    assert stats["total_memories"] == 4
    assert stats["consolidated"] == 3
    assert stats["pending"] == 1
    assert stats["summaries"] == {"daily": 1, "weekly": 0, "monthly": 0}
    assert stats["last_consolidation"] is not None
    assert len(run(consolidation.get_recent_summaries())) == 1
