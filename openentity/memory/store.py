"""
记忆系统 - 持久化存储

MemoryService: 原子记忆的增删查、回忆强化、衰减
SummaryStore:  巩固摘要
"""
import json
import logging
import os
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite

from ..errors import NotFoundError
from ..messages import render
from .database import get_db, to_db_time, from_db_time
from .models import Memory, MemoryLayer, MemoryLifecycle, MemorySummary, MemoryType

logger = logging.getLogger(__name__)

# 回忆强化
RECALL_REINFORCE_AFTER = 5
RECALL_REINFORCE_STEP = 0.05
RECALL_IMPORTANCE_CAP = 0.9

# 衰减
DECAY_MAX_IMPORTANCE = 0.3
DECAY_MIN_AGE_DAYS = 30
DECAY_MAX_RECALLS = 3
DECAY_STEP = 0.1
DECAY_FLOOR = 0.1


def _row_to_memory(row: aiosqlite.Row) -> Memory:
    return Memory(
        id=row["id"],
        type=row["type"],
        layer=MemoryLayer(row["layer"]),
        content=row["content"],
        summary=row["summary"],
        importance=row["importance"],
        emotional_valence=row["emotional_valence"],
        context=json.loads(row["context"]) if row["context"] else None,
        related_entity=row["related_entity"],
        thought_id=row["thought_id"],
        embedding=row["embedding"],
        embedding_dimensions=row["embedding_dimensions"],
        embedding_model=row["embedding_model"],
        embedded_at=from_db_time(row["embedded_at"]),
        recalled_count=row["recalled_count"],
        last_recalled_at=from_db_time(row["last_recalled_at"]),
        lifecycle=MemoryLifecycle(row["lifecycle"]),
        consolidated_into_id=row["consolidated_into_id"],
        consolidated_at=from_db_time(row["consolidated_at"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


def _row_to_summary(row: aiosqlite.Row) -> MemorySummary:
    return MemorySummary(
        id=row["id"],
        period_start=date.fromisoformat(row["period_start"]),
        period_end=date.fromisoformat(row["period_end"]),
        period_type=row["period_type"],
        summary=row["summary"],
        key_insights=row["key_insights"],
        themes=json.loads(row["themes"] or "[]"),
        entities_mentioned=json.loads(row["entities_mentioned"] or "[]"),
        average_emotional_valence=row["average_emotional_valence"] or 0.0,
        source_memory_count=row["source_memory_count"] or 0,
        embedding=row["embedding"],
        embedding_dimensions=row["embedding_dimensions"],
        embedding_model=row["embedding_model"],
        created_at=from_db_time(row["created_at"]),
    )


class MemoryService:
    """
    原子记忆存储

    记忆是"我经历过什么"：经历、对话、学到的知识、社交互动。
    可选地把每条记忆另存为 JSON 文件（便于迁移）。
    """

    def __init__(self, db_path: Optional[Path] = None, archive_dir: Optional[Path] = None):
        self.db_path = db_path
        self.archive_dir = Path(archive_dir) if archive_dir else None

    # ── 内部查询 ────────────────────────────────────────────

    async def _select(
        self,
        conditions: Optional[List[str]] = None,
        params: Optional[List[Any]] = None,
        order_by: str = "created_at DESC, id DESC",
        limit: Optional[int] = None,
    ) -> List[Memory]:
        sql = "SELECT * FROM memories"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {order_by}"
        params = list(params or [])
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        async with get_db(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_memory(row) for row in rows]

    async def _count(self, conditions: Optional[List[str]] = None, params: Optional[List[Any]] = None) -> int:
        sql = "SELECT COUNT(*) FROM memories"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        async with get_db(self.db_path) as db:
            cursor = await db.execute(sql, list(params or []))
            row = await cursor.fetchone()
        return row[0]

    # ==================== 写入 ====================

    async def create(self, data: dict) -> Memory:
        """创建新记忆"""
        now = datetime.now()
        memory = Memory(
            type=data.get("type") or MemoryType.EXPERIENCE.value,
            layer=data.get("layer") or MemoryLayer.EPISODIC,
            content=data["content"],
            summary=data.get("summary"),
            importance=data.get("importance", 0.5),
            emotional_valence=data.get("emotional_valence", 0.0),
            context=data.get("context"),
            related_entity=data.get("related_entity"),
            thought_id=data.get("thought_id"),
            created_at=data.get("created_at") or now,
            updated_at=now,
        )

        async with get_db(self.db_path) as db:
            cursor = await db.execute("""
                INSERT INTO memories (
                    type, layer, content, summary, importance, emotional_valence,
                    context, related_entity, thought_id, lifecycle, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                memory.type,
                memory.layer.value,
                memory.content,
                memory.summary,
                memory.importance,
                memory.emotional_valence,
                json.dumps(memory.context, ensure_ascii=False, default=str) if memory.context is not None else None,
                memory.related_entity,
                memory.thought_id,
                memory.lifecycle.value,
                to_db_time(memory.created_at),
                to_db_time(memory.updated_at),
            ))
            await db.commit()
            memory.id = cursor.lastrowid

        self._save_to_file(memory)
        logger.debug(f"💾 新记忆 #{memory.id} [{memory.type}/{memory.layer.value}]")
        return memory

    async def create_from_conversation(
        self,
        participant: str,
        summary: str,
        channel: str = "cli",
        conversation_id: Optional[str] = None,
        sentiment: float = 0.0,
        message_count: int = 0,
    ) -> Memory:
        """从一次对话生成记忆"""
        return await self.create({
            "type": MemoryType.CONVERSATION.value,
            "content": summary,
            "summary": f"Conversation with {participant}",
            "importance": 0.6,
            "emotional_valence": sentiment,
            "related_entity": participant,
            "context": {
                "conversation_id": conversation_id,
                "channel": channel,
                "message_count": message_count,
            },
        })

    async def create_learned(self, content: str, context: Optional[dict] = None) -> Memory:
        """学到的知识"""
        return await self.create({
            "type": MemoryType.LEARNED.value,
            "content": content,
            "importance": 0.6,
            "context": context or {},
        })

    async def create_experience(self, content: str, context: Optional[dict] = None) -> Memory:
        """一次经历"""
        return await self.create({
            "type": MemoryType.EXPERIENCE.value,
            "content": content,
            "importance": 0.5,
            "context": context or {},
        })

    async def update_embedding(self, memory_id: int, embedding: bytes, dimensions: int, model: str) -> datetime:
        """写入向量；返回 embedded_at"""
        embedded_at = datetime.now()
        async with get_db(self.db_path) as db:
            await db.execute("""
                UPDATE memories
                SET embedding = ?, embedding_dimensions = ?, embedding_model = ?,
                    embedded_at = ?, updated_at = ?
                WHERE id = ?
            """, (embedding, dimensions, model, to_db_time(embedded_at), to_db_time(embedded_at), memory_id))
            await db.commit()
        return embedded_at

    async def mark_consolidated(self, memory_ids: List[int], summary_id: int) -> int:
        """批量标记为已巩固（单条 UPDATE，原子）"""
        if not memory_ids:
            return 0
        now = to_db_time(datetime.now())
        placeholders = ",".join("?" for _ in memory_ids)
        async with get_db(self.db_path) as db:
            cursor = await db.execute(f"""
                UPDATE memories
                SET lifecycle = ?, consolidated_into_id = ?, consolidated_at = ?, updated_at = ?
                WHERE id IN ({placeholders})
            """, (MemoryLifecycle.CONSOLIDATED.value, summary_id, now, now, *memory_ids))
            await db.commit()
            return cursor.rowcount

    # ==================== 查询 ====================

    async def get(self, memory_id: int) -> Memory:
        results = await self._select(["id = ?"], [memory_id], limit=1)
        if not results:
            raise NotFoundError("Memory", memory_id)
        return results[0]

    async def get_recent(self, limit: int = 20) -> List[Memory]:
        return await self._select(limit=limit)

    async def get_by_type(self, memory_type: str, limit: int = 20) -> List[Memory]:
        return await self._select(["type = ?"], [memory_type], limit=limit)

    async def get_most_important(self, limit: int = 10) -> List[Memory]:
        return await self._select(order_by="importance DESC, id ASC", limit=limit)

    async def get_important(self, min_importance: float = 0.7, limit: int = 20) -> List[Memory]:
        return await self._select(
            ["importance >= ?"], [min_importance],
            order_by="importance DESC, id ASC", limit=limit,
        )

    async def search(self, query: str, limit: int = 10, active_only: bool = False) -> List[Memory]:
        """关键词搜索（content / summary 子串匹配）"""
        pattern = f"%{query}%"
        conditions = ["(content LIKE ? OR summary LIKE ?)"]
        params: List[Any] = [pattern, pattern]
        if active_only:
            conditions.append("lifecycle = ?")
            params.append(MemoryLifecycle.ACTIVE.value)
        return await self._select(conditions, params, order_by="importance DESC, id ASC", limit=limit)

    async def get_related_to(self, entity_name: str, limit: int = 20) -> List[Memory]:
        """与某个人 / 实体相关的记忆"""
        return await self._select(["related_entity LIKE ?"], [f"%{entity_name}%"], limit=limit)

    async def get_by_layer(self, layer: str, limit: int = 10) -> List[Memory]:
        """某一层的活跃记忆（重要性优先，其次最新）"""
        return await self._select(
            ["layer = ?", "lifecycle = ?"], [MemoryLayer(layer).value, MemoryLifecycle.ACTIVE.value],
            order_by="importance DESC, created_at DESC, id DESC", limit=limit,
        )

    async def get_embedded(
        self,
        layer: Optional[str] = None,
        exclude_id: Optional[int] = None,
        active_only: bool = False,
    ) -> List[Memory]:
        """已有向量的记忆（语义检索候选集）"""
        conditions = ["embedding IS NOT NULL", "embedded_at IS NOT NULL"]
        params: List[Any] = []
        if layer:
            conditions.append("layer = ?")
            params.append(MemoryLayer(layer).value)
        if active_only:
            conditions.append("lifecycle = ?")
            params.append(MemoryLifecycle.ACTIVE.value)
        if exclude_id is not None:
            conditions.append("id != ?")
            params.append(exclude_id)
        return await self._select(conditions, params, order_by="id ASC")

    async def get_unembedded(self, limit: Optional[int] = None) -> List[Memory]:
        return await self._select(
            ["(embedding IS NULL OR embedded_at IS NULL)"], [],
            order_by="importance DESC, created_at DESC, id DESC", limit=limit,
        )

    async def get_unconsolidated_between(self, start: datetime, end: datetime) -> List[Memory]:
        return await self._select(
            ["lifecycle = ?", "created_at >= ?", "created_at <= ?"],
            [MemoryLifecycle.ACTIVE.value, to_db_time(start), to_db_time(end)],
            order_by="importance DESC, created_at ASC, id ASC",
        )

    async def get_archivable(self, cutoff: datetime, max_importance: float = 0.5) -> List[Memory]:
        return await self._select(
            ["lifecycle = ?", "created_at < ?", "importance < ?"],
            [MemoryLifecycle.ACTIVE.value, to_db_time(cutoff), max_importance],
            order_by="created_at ASC, id ASC",
        )

    async def count(self, lifecycle: Optional[MemoryLifecycle] = None, embedded: Optional[bool] = None) -> int:
        conditions, params = [], []
        if lifecycle is not None:
            conditions.append("lifecycle = ?")
            params.append(MemoryLifecycle(lifecycle).value)
        if embedded is True:
            conditions.append("embedded_at IS NOT NULL")
        elif embedded is False:
            conditions.append("embedded_at IS NULL")
        return await self._count(conditions, params)

    # ==================== 生命周期 ====================

    async def recall(self, memory: Memory) -> Memory:
        """回忆一次（强化记忆）"""
        memory.recalled_count += 1
        memory.last_recalled_at = datetime.now()

        # 反复回忆后重要性上升，封顶 0.9
        if memory.recalled_count > RECALL_REINFORCE_AFTER and memory.importance < RECALL_IMPORTANCE_CAP:
            memory.importance = min(RECALL_IMPORTANCE_CAP, memory.importance + RECALL_REINFORCE_STEP)

        async with get_db(self.db_path) as db:
            await db.execute("""
                UPDATE memories
                SET recalled_count = ?, last_recalled_at = ?, importance = ?, updated_at = ?
                WHERE id = ?
            """, (
                memory.recalled_count,
                to_db_time(memory.last_recalled_at),
                memory.importance,
                to_db_time(memory.last_recalled_at),
                memory.id,
            ))
            await db.commit()
        return memory

    async def decay(self) -> int:
        """让陈旧、不重要、很少被想起的记忆淡化"""
        cutoff = datetime.now() - timedelta(days=DECAY_MIN_AGE_DAYS)
        async with get_db(self.db_path) as db:
            cursor = await db.execute("""
                UPDATE memories
                SET importance = MAX(?, importance - ?), updated_at = ?
                WHERE importance < ? AND created_at < ? AND recalled_count < ?
            """, (
                DECAY_FLOOR,
                DECAY_STEP,
                to_db_time(datetime.now()),
                DECAY_MAX_IMPORTANCE,
                to_db_time(cutoff),
                DECAY_MAX_RECALLS,
            ))
            await db.commit()
            decayed = cursor.rowcount

        if decayed:
            logger.info(f"🍂 {decayed} 条记忆已淡化")
        return decayed

    # ==================== 渲染 ====================

    async def to_context_string(self, limit: int = 10) -> str:
        """简单上下文：- [type] text"""
        memories = await self.get_recent(limit)
        return "".join(f"- [{m.type}] {m.display_text}\n" for m in memories)

    async def to_prompt_context(self, lang: str = "en") -> str:
        """按类型分组的记忆上下文"""
        memories = await self._select(order_by="importance DESC, created_at DESC, id DESC", limit=20)
        if not memories:
            return render("memory.none", lang)

        by_type: dict[str, List[Memory]] = {}
        for m in memories:
            by_type.setdefault(m.type, []).append(m)

        date_format = render("date_format", lang)
        context = render("memory.header", lang)

        if MemoryType.EXPERIENCE.value in by_type:
            context += render("memory.experiences", lang)
            for m in by_type[MemoryType.EXPERIENCE.value]:
                context += f"- [{m.created_at.strftime(date_format)}] {m.display_text}\n"
            context += "\n"

        for memory_type, template_id, take in (
            (MemoryType.LEARNED.value, "memory.learned", None),
            (MemoryType.DECISION.value, "memory.decisions", None),
            (MemoryType.CONVERSATION.value, "memory.conversations", 5),
        ):
            if memory_type not in by_type:
                continue
            context += render(template_id, lang)
            for m in by_type[memory_type][:take]:
                context += f"- {m.display_text}\n"
            context += "\n"

        return context

    # ── JSON 副本 ───────────────────────────────────────────

    def _save_to_file(self, memory: Memory):
        """同时另存一份 JSON（可移植）"""
        if not self.archive_dir:
            return
        directory = self.archive_dir / memory.type
        os.makedirs(directory, exist_ok=True)
        filename = directory / f"{memory.created_at.strftime('%Y-%m-%d_%H-%M-%S')}_{memory.id}.json"
        with open(filename, "w", encoding="utf-8") as f:
            json.dump({
                "id": memory.id,
                "type": memory.type,
                "layer": memory.layer.value,
                "content": memory.content,
                "summary": memory.summary,
                "importance": memory.importance,
                "emotional_valence": memory.emotional_valence,
                "context": memory.context,
                "related_entity": memory.related_entity,
                "created_at": memory.created_at.isoformat(),
            }, f, ensure_ascii=False, indent=2, default=str)


class SummaryStore:
    """巩固摘要存储"""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path

    async def _select(self, conditions=None, params=None, order_by="created_at DESC, id DESC", limit=None):
        sql = "SELECT * FROM memory_summaries"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {order_by}"
        params = list(params or [])
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        async with get_db(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_summary(row) for row in rows]

    async def get(self, summary_id: int) -> MemorySummary:
        results = await self._select(["id = ?"], [summary_id], limit=1)
        if not results:
            raise NotFoundError("MemorySummary", summary_id)
        return results[0]

    async def find_for_period(self, period_type: str, start: date, end: date) -> Optional[MemorySummary]:
        results = await self._select(
            ["period_type = ?", "period_start = ?", "period_end = ?"],
            [period_type, start.isoformat(), end.isoformat()],
            limit=1,
        )
        return results[0] if results else None

    async def create(self, summary: MemorySummary) -> MemorySummary:
        async with get_db(self.db_path) as db:
            cursor = await db.execute("""
                INSERT INTO memory_summaries (
                    period_start, period_end, period_type, summary, key_insights,
                    themes, entities_mentioned, average_emotional_valence,
                    source_memory_count, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                summary.period_start.isoformat(),
                summary.period_end.isoformat(),
                summary.period_type.value,
                summary.summary,
                summary.key_insights,
                json.dumps(summary.themes, ensure_ascii=False),
                json.dumps(summary.entities_mentioned, ensure_ascii=False),
                summary.average_emotional_valence,
                summary.source_memory_count,
                to_db_time(summary.created_at),
            ))
            await db.commit()
            summary.id = cursor.lastrowid
        return summary

    async def update_embedding(self, summary_id: int, embedding: bytes, dimensions: int, model: str):
        async with get_db(self.db_path) as db:
            await db.execute("""
                UPDATE memory_summaries
                SET embedding = ?, embedding_dimensions = ?, embedding_model = ?
                WHERE id = ?
            """, (embedding, dimensions, model, summary_id))
            await db.commit()

    async def get_recent(self, limit: int = 3) -> List[MemorySummary]:
        return await self._select(limit=limit)

    async def count(self, period_type: Optional[str] = None) -> int:
        sql = "SELECT COUNT(*) FROM memory_summaries"
        params = []
        if period_type:
            sql += " WHERE period_type = ?"
            params.append(period_type)
        async with get_db(self.db_path) as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return row[0]
