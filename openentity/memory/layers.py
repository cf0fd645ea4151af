"""
记忆系统 - 分层管理

四层（从底到顶）：
1. 核心身份  - 人格、价值观、自我认知，总是加载
2. 工作记忆  - 当前关注点、最近的想法
3. 情景记忆  - 具体经历，按当前情境语义检索
4. 语义记忆  - 学到的知识 + 巩固摘要

在 token 预算内把各层拼成思考上下文。
"""
import logging
from typing import TYPE_CHECKING, List, Optional

from ..config import settings
from ..messages import render
from .models import Memory, MemoryLayer
from .semantic import SemanticMemory
from .store import MemoryService, SummaryStore
from .tokens import estimate_tokens, truncate_to_budget
from .working import WorkingMemory

if TYPE_CHECKING:
    from ..entity.personality import PersonalityService

logger = logging.getLogger(__name__)

SEMANTIC_TYPES = {"learned", "fact", "knowledge"}
PROCEDURAL_TYPES = {"procedure", "skill", "how_to"}


class MemoryLayerManager:
    """记忆分层管理器"""

    def __init__(
        self,
        personality: "PersonalityService",
        semantic: SemanticMemory,
        memories: MemoryService,
        summaries: SummaryStore,
        working: WorkingMemory,
        budget: Optional[dict] = None,
        episodic_max_in_context: Optional[int] = None,
        episodic_threshold: Optional[float] = None,
        semantic_max_in_context: Optional[int] = None,
    ):
        self.personality = personality
        self.semantic = semantic
        self.memories = memories
        self.summaries = summaries
        self.working = working
        self.budget = {
            "total": settings.budget_total,
            "working_memory": settings.budget_working_memory,
            "episodic": settings.budget_episodic,
            "semantic": settings.budget_semantic,
            **(budget or {}),
        }
        self.episodic_max_in_context = episodic_max_in_context or settings.episodic_max_in_context
        self.episodic_threshold = (
            episodic_threshold if episodic_threshold is not None
            else settings.episodic_similarity_threshold
        )
        self.semantic_max_in_context = semantic_max_in_context or settings.semantic_max_in_context

    async def build_think_context(self, situation: str = "", lang: str = "en") -> str:
        """按层拼装思考上下文"""
        total = self.budget["total"]
        parts: List[str] = []
        used = 0

        # 1. 核心身份（总是加载）
        core = self.personality.to_prompt(lang)
        core_tokens = estimate_tokens(core)
        parts.append(core)
        used += core_tokens
        logger.debug(f"记忆层 core_identity: {core_tokens} tokens")

        # 2. 工作记忆
        working_budget = max(0, min(self.budget["working_memory"], total - used))
        working = truncate_to_budget(await self.working.to_prompt_context(lang), working_budget)
        working_tokens = estimate_tokens(working)
        if working:
            parts.append(working)
            used += working_tokens
        logger.debug(f"记忆层 working: {working_tokens}/{working_budget} tokens")

        # 3. 情景记忆
        episodic_budget = max(0, min(self.budget["episodic"], total - used))
        episodic = await self._episodic_context(situation, episodic_budget, lang)
        episodic_tokens = estimate_tokens(episodic)
        if episodic:
            parts.append(episodic)
            used += episodic_tokens
        logger.debug(f"记忆层 episodic: {episodic_tokens}/{episodic_budget} tokens")

        # 4. 语义记忆
        semantic_budget = max(0, min(self.budget["semantic"], total - used))
        semantic = await self._semantic_context(semantic_budget, lang)
        semantic_tokens = estimate_tokens(semantic)
        if semantic:
            parts.append(semantic)
            used += semantic_tokens
        logger.debug(f"记忆层 semantic: {semantic_tokens}/{semantic_budget} tokens")

        logger.info(f"🧩 思考上下文已构建: {used}/{total} tokens")
        return "\n\n".join(parts).strip()

    # ── 各层渲染 ────────────────────────────────────────────

    async def _episodic_context(self, situation: str, token_budget: int, lang: str) -> str:
        if token_budget <= 0:
            return ""
        if not situation:
            memories = await self.memories.get_by_layer(MemoryLayer.EPISODIC.value, self.episodic_max_in_context)
        else:
            memories = await self.semantic.search(situation, self.episodic_max_in_context, self.episodic_threshold)

        if not memories:
            return ""

        context = render("layer.episodic_header", lang)
        used = estimate_tokens(context)
        for memory in memories:
            line = self._format_memory_line(memory, lang)
            line_tokens = estimate_tokens(line)
            if used + line_tokens > token_budget:
                break
            context += line
            used += line_tokens
        return context

    async def _semantic_context(self, token_budget: int, lang: str) -> str:
        if token_budget <= 0:
            return ""
        memories = await self.memories.get_by_layer(MemoryLayer.SEMANTIC.value, self.semantic_max_in_context)
        summaries = await self.summaries.get_recent(3)
        if not memories and not summaries:
            return ""

        context = render("layer.semantic_header", lang)
        used = estimate_tokens(context)
        for memory in memories:
            line = self._format_memory_line(memory, lang)
            line_tokens = estimate_tokens(line)
            if used + line_tokens > token_budget:
                break
            context += line
            used += line_tokens

        if summaries:
            header = render("layer.summaries_header", lang)
            context += header
            used += estimate_tokens(header)
            for summary in summaries:
                line = f"- [{summary.period_type.value}] {summary.summary}\n"
                line_tokens = estimate_tokens(line)
                if used + line_tokens > token_budget:
                    break
                context += line
                used += line_tokens

        return context

    @staticmethod
    def _format_memory_line(memory: Memory, lang: str) -> str:
        day = memory.created_at.strftime(render("date_format", lang))
        similarity = f" ({memory.similarity * 100:.0f}%)" if memory.similarity is not None else ""
        return f"- [{day}] {memory.display_text}{similarity}\n"

    # ── 路由与查询 ──────────────────────────────────────────

    @staticmethod
    def layer_for_type(memory_type: str) -> MemoryLayer:
        if memory_type in SEMANTIC_TYPES:
            return MemoryLayer.SEMANTIC
        if memory_type in PROCEDURAL_TYPES:
            return MemoryLayer.PROCEDURAL
        return MemoryLayer.EPISODIC

    async def route_to_layer(self, memory_data: dict, sync: bool = False) -> Memory:
        """按类型决定层，再创建并嵌入"""
        data = dict(memory_data)
        data["layer"] = self.layer_for_type(data.get("type") or "experience")
        return await self.semantic.create_with_embedding(data, sync=sync)

    async def get_by_layer(self, layer: str, limit: int = 10) -> List[Memory]:
        return await self.memories.get_by_layer(layer, limit)

    def get_core_identity(self) -> dict:
        return {
            "personality": self.personality.get(),
            "name": self.personality.get_name(),
            "values": self.personality.get_core_values(),
            "traits": self.personality.get_traits(),
        }
