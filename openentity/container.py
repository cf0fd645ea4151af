"""
服务装配

进程启动时构造一次，所有服务共享同一个缓存和数据库。
测试里可以注入假的 LLM / 嵌入后端和临时路径。
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .cache import CacheStore
from .config import Settings, settings as default_settings
from .embedding import EmbeddingService, create_embedding_service
from .energy import EnergyService
from .entity import EntityService, PersonalityService
from .llm import LLMService, create_llm_service
from .memory import (
    GoalStore,
    MemoryConsolidation,
    MemoryLayerManager,
    MemoryService,
    SemanticMemory,
    SummaryStore,
    ThoughtStore,
    WorkingMemory,
    init_database,
)
from .tools import ToolRegistry
from .tools.builtins import EnergyStatusTool, FocusTool, GoalTool, MemorySearchTool, RememberTool

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    cache: CacheStore
    llm: LLMService
    embeddings: EmbeddingService
    memories: MemoryService
    summaries: SummaryStore
    thoughts: ThoughtStore
    goals: GoalStore
    semantic: SemanticMemory
    consolidation: MemoryConsolidation
    working: WorkingMemory
    personality: PersonalityService
    layers: MemoryLayerManager
    energy: EnergyService
    tools: ToolRegistry
    entity: EntityService


async def create_container(
    cfg: Optional[Settings] = None,
    llm: Optional[LLMService] = None,
    embeddings: Optional[EmbeddingService] = None,
    cache: Optional[CacheStore] = None,
    personality_path: Optional[Path] = None,
    archive_dir: Optional[Path] = None,
) -> Container:
    """初始化数据库并装配全部服务"""
    cfg = cfg or default_settings
    db_path = cfg.database_path
    await init_database(db_path)

    cache = cache or CacheStore(cfg.state_path)
    llm = llm or create_llm_service(cfg)
    embeddings = embeddings or create_embedding_service(cfg)

    memories = MemoryService(db_path, archive_dir=archive_dir)
    summaries = SummaryStore(db_path)
    thoughts = ThoughtStore(db_path)
    goals = GoalStore(db_path)
    semantic = SemanticMemory(memories, embeddings, episodic_threshold=cfg.episodic_similarity_threshold)
    consolidation = MemoryConsolidation(memories, summaries, llm, embeddings)
    working = WorkingMemory(
        cache, thoughts,
        max_items=cfg.working_max_items,
        ttl_minutes=cfg.working_ttl_minutes,
    )
    personality = PersonalityService(personality_path or cfg.personality_path, name=cfg.entity_name)
    layers = MemoryLayerManager(
        personality, semantic, memories, summaries, working,
        budget={
            "total": cfg.budget_total,
            "working_memory": cfg.budget_working_memory,
            "episodic": cfg.budget_episodic,
            "semantic": cfg.budget_semantic,
        },
        episodic_max_in_context=cfg.episodic_max_in_context,
        episodic_threshold=cfg.episodic_similarity_threshold,
        semantic_max_in_context=cfg.semantic_max_in_context,
    )
    energy = EnergyService(cache, lang=cfg.default_lang)

    tools = ToolRegistry()
    tools.register(MemorySearchTool(semantic))
    tools.register(RememberTool(layers))
    tools.register(FocusTool(working))
    tools.register(EnergyStatusTool(energy))
    tools.register(GoalTool(goals, energy))

    entity = EntityService(
        cache=cache,
        llm=llm,
        memories=memories,
        thoughts=thoughts,
        working=working,
        layers=layers,
        energy=energy,
        tools=tools,
        personality=personality,
        lang=cfg.default_lang,
        goals=goals,
    )

    logger.debug(f"服务装配完成: db={db_path} tools={tools.list_names()}")
    return Container(
        settings=cfg,
        cache=cache,
        llm=llm,
        embeddings=embeddings,
        memories=memories,
        summaries=summaries,
        thoughts=thoughts,
        goals=goals,
        semantic=semantic,
        consolidation=consolidation,
        working=working,
        personality=personality,
        layers=layers,
        energy=energy,
        tools=tools,
        entity=entity,
    )
