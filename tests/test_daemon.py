"""Tests for service wiring, the heartbeat loop and nightly maintenance."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from openentity.cache import CacheStore
from openentity.container import create_container
from openentity.daemon import EntityDaemon
from openentity.embedding import EmbeddingService, HashingEmbeddingDriver
from openentity.errors import GenerationBackendError
from openentity.llm import LLMService
from openentity.memory import get_db
from openentity.memory.database import to_db_time
from openentity.scheduler import nightly_maintenance, start_scheduler, stop_scheduler


def run(coro):
    return asyncio.run(coro)


def _container(cfg, llm_driver, clock):
    return run(create_container(
        cfg,
        llm=LLMService(llm_driver),
        embeddings=EmbeddingService(HashingEmbeddingDriver(dimensions=32)),
        cache=CacheStore(clock=clock),
    ))


@pytest.fixture
def container(entity_settings, llm_driver, clock):
    return _container(entity_settings, llm_driver, clock)


# ── container ────────────────────────────────────────────────────────────


def test_container_wires_services(container, entity_settings):
    assert container.tools.list_names() == ["memory_search", "remember", "focus", "energy_status", "goal"]
    assert container.personality.get_name() == "Testy"
    assert entity_settings.personality_path.exists()
    assert entity_settings.database_path.exists()
    assert container.semantic.queue is not None


# ── tick ─────────────────────────────────────────────────────────────────


def test_tick_wakes_a_fresh_entity(container):
    daemon = EntityDaemon(container, interval=1)
    assert run(daemon.tick()) == "wake"
    assert container.entity.is_awake()


def test_tick_thinks_while_awake(container, llm_driver):
    daemon = EntityDaemon(container, interval=1)
    llm_driver.responses = ["THOUGHT: The sky is quiet.", GenerationBackendError("gone")]

    async def scenario():
        await container.entity.wake()
        return await daemon.tick(), await daemon.tick()

    assert run(scenario()) == ("think", "idle")


def test_tired_entity_goes_to_sleep_and_consolidates_today(container):
    daemon = EntityDaemon(container, interval=1)

    async def scenario():
        await container.entity.wake()
        await container.memories.create({"content": "A long day of reading"})
        container.energy.set_energy(0.1)
        status = await daemon.tick()
        return status, await container.summaries.count("daily")

    status, daily = run(scenario())
    assert status == "sleep"
    assert daily == 1
    assert not container.entity.is_awake()


def test_sleeping_entity_wakes_once_rested(container, clock):
    daemon = EntityDaemon(container, interval=1)

    async def scenario():
        await container.entity.wake()
        container.energy.set_energy(0.4)
        await container.entity.sleep()
        first = await daemon.tick()
        clock.advance(hours=5)
        return first, await daemon.tick()

    assert run(scenario()) == ("sleeping", "wake")
    assert container.energy.get_energy() >= 0.5


def test_run_until_stopped(container):
    daemon = EntityDaemon(container, interval=60)

    async def scenario():
        task = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.2)
        daemon.stop()
        await task
        return await container.thoughts.get_recent(5)

    thoughts = run(scenario())
    assert [t.trigger for t in thoughts][-1] == "wake"
    assert not daemon.alive
    assert not container.semantic.queue.running


# ── scheduler ────────────────────────────────────────────────────────────


def test_nightly_maintenance_report(container):
    yesterday = datetime.combine(date.today() - timedelta(days=1), datetime.min.time()).replace(hour=10)

    async def scenario():
        memory = await container.memories.create({"content": "Yesterday's walk"})
        async with get_db(container.settings.database_path) as db:
            await db.execute("UPDATE memories SET created_at = ? WHERE id = ?", (to_db_time(yesterday), memory.id))
            await db.commit()
        return await nightly_maintenance(container)

    report = run(scenario())
    assert report["summary_id"] is not None
    assert report["archived"] == 0
    assert report["decayed"] >= 0


def test_nightly_maintenance_survives_failures(container, llm_driver, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(container.consolidation, "consolidate_daily", broken)
    report = run(nightly_maintenance(container))
    assert report["summary_id"] is None
    assert report["archived"] == 0


def test_scheduler_registers_nightly_job(container):
    async def scenario():
        scheduler = start_scheduler(container)
        jobs = scheduler.get_jobs()
        stop_scheduler(scheduler)
        return jobs, scheduler.running

    jobs, running = run(scenario())
    assert [job.id for job in jobs] == ["nightly_maintenance"]
    assert str(jobs[0].trigger.fields[5]) == "3"
    assert not running


def test_scheduler_without_consolidation(entity_settings, llm_driver, clock):
    cfg = entity_settings.model_copy(update={"consolidation_enabled": False})
    container = _container(cfg, llm_driver, clock)

    async def scenario():
        scheduler = start_scheduler(container)
        jobs = scheduler.get_jobs()
        stop_scheduler(scheduler)
        return jobs

    assert run(scenario()) == []
