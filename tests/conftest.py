"""Shared fakes and fixtures: no network, temporary SQLite files, a controllable clock."""

import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from openentity.cache import CacheStore
from openentity.config import Settings
from openentity.embedding import EmbeddingDriver, EmbeddingService, HashingEmbeddingDriver
from openentity.errors import EmbeddingBackendError, GenerationBackendError
from openentity.llm import LLMDriver, LLMService
from openentity.memory import (
    MemoryService,
    SemanticMemory,
    SummaryStore,
    ThoughtStore,
    init_database,
)


# ── fakes ────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 3, 15, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeLLMDriver(LLMDriver):
    """Returns queued responses in order, then a default; records prompts."""

    def __init__(self, responses: Optional[list] = None, default: str = "ok"):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: List[str] = []

    async def generate(self, prompt, options=None):
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response

    async def is_available(self):
        return True

    def get_model_name(self):
        return "fake-llm"


class FailingLLMDriver(LLMDriver):
    def __init__(self):
        self.calls = 0

    async def generate(self, prompt, options=None):
        self.calls += 1
        raise GenerationBackendError("backend down")

    async def is_available(self):
        return False

    def get_model_name(self):
        return "down-llm"


class FailingEmbeddingDriver(EmbeddingDriver):
    def __init__(self):
        self.calls = 0

    async def embed(self, text):
        self.calls += 1
        raise EmbeddingBackendError("embedding backend down")

    async def is_available(self):
        return False

    def get_model_name(self):
        return "down-embed"

    def get_dimensions(self):
        return 0


class StaticEmbeddingDriver(EmbeddingDriver):
    """Maps known texts to fixed vectors; anything else gets `default`."""

    def __init__(self, vectors: dict, default: List[float]):
        self.vectors = vectors
        self.default = default

    async def embed(self, text):
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        return list(self.default)

    async def is_available(self):
        return True

    def get_model_name(self):
        return "static"

    def get_dimensions(self):
        return len(self.default)


# ── fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(clock=clock)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "memory.db"
    asyncio.run(init_database(path))
    return path


@pytest.fixture
def embeddings():
    return EmbeddingService(HashingEmbeddingDriver(dimensions=128))


@pytest.fixture
def llm_driver():
    return FakeLLMDriver()


@pytest.fixture
def llm(llm_driver):
    return LLMService(llm_driver)


@pytest.fixture
def memories(db_path):
    return MemoryService(db_path)


@pytest.fixture
def summaries(db_path):
    return SummaryStore(db_path)


@pytest.fixture
def thoughts(db_path):
    return ThoughtStore(db_path)


@pytest.fixture
def semantic(memories, embeddings):
    return SemanticMemory(memories, embeddings, episodic_threshold=0.7)


@pytest.fixture
def entity_settings(tmp_path):
    return Settings(
        home_dir=tmp_path,
        database_path=tmp_path / "entity.db",
        state_path=tmp_path / "state.json",
        personality_path=tmp_path / "mind" / "personality.json",
        entity_name="Testy",
        default_lang="en",
    )
