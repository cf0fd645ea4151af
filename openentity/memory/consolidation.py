"""
记忆系统 - 巩固（相当于大脑的睡眠）

把一段时间内的原始记忆：
1. 提炼主题
2. 生成叙述性摘要
3. 提取关键洞察
4. 存为可检索的摘要，并把原始记忆标记为已巩固

每一步 LLM 调用都有兜底，生成后端失败不会中断巩固。
"""
import json
import logging
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from ..embedding import EmbeddingService
from ..llm import LLMService
from .models import Memory, MemoryLifecycle, MemorySummary, MemoryType, PeriodType
from .store import MemoryService, SummaryStore

logger = logging.getLogger(__name__)

DayLike = Union[date, datetime]

THEMES_PROMPT = """Analyze the following memories and extract 3-5 main themes or topics.
Return ONLY a JSON array of theme strings, no explanation.

Memories:
{memories}

Themes (JSON array):"""

SUMMARY_PROMPT = """You are an AI entity reflecting on your day. Summarize the following memories into a coherent narrative.
Focus on:
- What happened and what was learned
- Key interactions and insights
- Emotional tone of the day

Keep it concise (2-3 paragraphs max).

Memories:
{memories}

Summary:"""

INSIGHTS_PROMPT = """From these significant memories, extract 2-3 key insights or lessons learned.
Be specific and actionable.

Memories:
{memories}

Key insights:"""


def _as_date(value: DayLike) -> date:
    return value.date() if isinstance(value, datetime) else value


class MemoryConsolidation:
    """记忆巩固服务"""

    def __init__(
        self,
        memories: MemoryService,
        summaries: SummaryStore,
        llm: LLMService,
        embeddings: EmbeddingService,
    ):
        self.memories = memories
        self.summaries = summaries
        self.llm = llm
        self.embeddings = embeddings

    async def consolidate_daily(self) -> Optional[MemorySummary]:
        """巩固昨天的记忆（一夜睡眠）"""
        yesterday = date.today() - timedelta(days=1)
        return await self.consolidate_period(yesterday, yesterday, PeriodType.DAILY)

    async def consolidate_period(
        self,
        start: DayLike,
        end: DayLike,
        period_type: Union[PeriodType, str] = PeriodType.DAILY,
    ) -> Optional[MemorySummary]:
        """巩固某一时间段；同一 (类型, 起止日) 只会生成一次"""
        period_type = PeriodType(period_type)
        start_day, end_day = _as_date(start), _as_date(end)

        existing = await self.summaries.find_for_period(period_type.value, start_day, end_day)
        if existing:
            logger.info(f"该时段已有摘要: {period_type.value} {start_day} ~ {end_day}")
            return existing

        memories = await self.memories.get_unconsolidated_between(
            datetime.combine(start_day, time.min),
            datetime.combine(end_day, time.max),
        )
        if not memories:
            logger.info(f"没有需要巩固的记忆: {period_type.value} {start_day} ~ {end_day}")
            return None

        logger.info(f"🌙 开始巩固 {len(memories)} 条记忆: {period_type.value} {start_day} ~ {end_day}")

        themes = await self.extract_themes(memories)
        narrative = await self.generate_summary(memories)
        key_insights = await self.extract_key_insights(memories)
        avg_valence = sum(m.emotional_valence for m in memories) / len(memories)
        entities = self._extract_entities(memories)

        summary = await self.summaries.create(MemorySummary(
            period_start=start_day,
            period_end=end_day,
            period_type=period_type,
            summary=narrative,
            key_insights=key_insights,
            themes=themes,
            entities_mentioned=entities,
            average_emotional_valence=avg_valence,
            source_memory_count=len(memories),
        ))

        # 摘要向量失败不回滚
        try:
            embedding = await self.embeddings.embed(narrative)
            blob = self.embeddings.encode_to_binary(embedding)
            model = self.embeddings.get_model_name()
            await self.summaries.update_embedding(summary.id, blob, len(embedding), model)
            summary.embedding = blob
            summary.embedding_dimensions = len(embedding)
            summary.embedding_model = model
        except Exception as e:
            logger.warning(f"⚠️ 摘要 #{summary.id} 嵌入失败: {e}")

        await self.memories.mark_consolidated([m.id for m in memories], summary.id)

        logger.info(f"✅ 巩固完成: 摘要 #{summary.id}, {len(themes)} 个主题, {len(entities)} 个实体")
        return summary

    # ==================== 提炼 ====================

    async def extract_themes(self, memories: List[Memory]) -> List[str]:
        """让 LLM 提炼 3-5 个主题；失败时用记忆类型代替"""
        if not memories:
            return []

        lines = "\n".join(f"- [{m.type}] {m.display_text}" for m in memories)
        try:
            response = await self.llm.generate(THEMES_PROMPT.format(memories=lines))

            match = re.search(r"\[.*\]", response, re.DOTALL)
            if match:
                try:
                    themes = json.loads(match.group(0))
                except json.JSONDecodeError:
                    themes = None
                if isinstance(themes, list):
                    return [str(t) for t in themes]

            # 不是 JSON：按换行 / 逗号切
            return [t.strip() for t in re.split(r"[\n,]+", response) if t.strip()]
        except Exception as e:
            logger.warning(f"⚠️ 主题提炼失败: {e}")
            return list(dict.fromkeys(m.type for m in memories))

    async def generate_summary(self, memories: List[Memory]) -> str:
        """按时间顺序生成叙述性摘要"""
        if not memories:
            return "No memories to summarize."

        chronological = sorted(memories, key=lambda m: m.created_at)
        lines = "\n".join(f"- [{m.created_at:%H:%M}] {m.display_text}" for m in chronological)
        try:
            return await self.llm.generate(SUMMARY_PROMPT.format(memories=lines))
        except Exception as e:
            logger.warning(f"⚠️ 摘要生成失败: {e}")
            parts = [m.summary for m in memories[:5] if m.summary]
            return "Day summary: " + ". ".join(parts)

    async def extract_key_insights(self, memories: List[Memory]) -> Optional[str]:
        """只看重要记忆、学到的东西和决定"""
        significant = [
            m for m in memories
            if m.importance >= 0.6 or m.type in (MemoryType.LEARNED.value, MemoryType.DECISION.value)
        ]
        if not significant:
            return None

        lines = "\n".join(f"- {m.display_text}" for m in significant)
        try:
            return await self.llm.generate(INSIGHTS_PROMPT.format(memories=lines))
        except Exception as e:
            logger.warning(f"⚠️ 洞察提取失败: {e}")
            return None

    @staticmethod
    def _extract_entities(memories: List[Memory]) -> List[str]:
        return list(dict.fromkeys(m.related_entity for m in memories if m.related_entity))

    # ==================== 归档 ====================

    async def archive_old_memories(self, days_old: int = 30) -> int:
        """把陈旧且不重要的记忆按周巩固"""
        cutoff = datetime.now() - timedelta(days=days_old)
        candidates = await self.memories.get_archivable(cutoff, max_importance=0.5)
        if not candidates:
            return 0

        # 按所在周的周一分组
        weeks: dict[date, List[Memory]] = {}
        for memory in candidates:
            day = memory.created_at.date()
            week_start = day - timedelta(days=day.weekday())
            weeks.setdefault(week_start, []).append(memory)

        archived = 0
        for week_start, week_memories in weeks.items():
            week_end = week_start + timedelta(days=6)
            existing = await self.summaries.find_for_period(PeriodType.WEEKLY.value, week_start, week_end)
            if existing:
                # 已有周摘要：后来变旧的记忆并入它，不再计数
                await self.memories.mark_consolidated([m.id for m in week_memories], existing.id)
                logger.info(f"📎 {len(week_memories)} 条记忆并入已有周摘要 #{existing.id}")
                continue

            summary = await self.consolidate_period(week_start, week_end, PeriodType.WEEKLY)
            if summary:
                archived += len(week_memories)

        if archived:
            logger.info(f"📦 已归档 {archived} 条旧记忆")
        return archived

    # ==================== 统计 ====================

    async def get_recent_summaries(self, limit: int = 3) -> List[MemorySummary]:
        return await self.summaries.get_recent(limit)

    async def get_stats(self) -> dict:
        recent = await self.summaries.get_recent(1)
        return {
            "total_memories": await self.memories.count(),
            "consolidated": await self.memories.count(lifecycle=MemoryLifecycle.CONSOLIDATED),
            "pending": await self.memories.count(lifecycle=MemoryLifecycle.ACTIVE),
            "summaries": {
                period.value: await self.summaries.count(period.value)
                for period in PeriodType
            },
            "last_consolidation": recent[0].created_at.isoformat() if recent else None,
        }
