"""
记忆系统 - 工作记忆

"当前在想什么"：最近的关注点、对话上下文。
放在带 TTL 的缓存里，不落库，过期自动消失。
"""
import logging
from datetime import timedelta
from typing import List, Optional

from ..cache import CacheStore
from ..config import settings
from ..messages import render
from .models import WorkingMemoryItem
from .thoughts import Thought, ThoughtStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "entity:working_memory:"
ITEMS_KEY = "items"
CONVERSATION_KEY = "conversation:"


class WorkingMemory:
    """工作记忆"""

    def __init__(
        self,
        cache: CacheStore,
        thoughts: Optional[ThoughtStore] = None,
        max_items: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
    ):
        self.cache = cache
        self.thoughts = thoughts
        self.max_items = max_items if max_items is not None else settings.working_max_items
        self.ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.working_ttl_minutes)

    # ── 条目 ────────────────────────────────────────────────

    def _raw_items(self) -> List[dict]:
        return list(self.cache.get(CACHE_PREFIX + ITEMS_KEY, []))

    def _save_items(self, items: List[dict]):
        self.cache.put(CACHE_PREFIX + ITEMS_KEY, items, self.ttl)

    def add(self, content: str, importance: float = 0.5, category: Optional[str] = None):
        """放进工作记忆（最新的在最前）"""
        items = self._raw_items()
        items.insert(0, {
            "content": content,
            "importance": importance,
            "category": category,
            "added_at": self.cache.clock().isoformat(),
        })

        # 超出容量：按 (重要性, 新近) 排序后截断
        if len(items) > self.max_items:
            items.sort(key=lambda i: (i.get("importance", 0.5), i.get("added_at", "")), reverse=True)
            items = items[:self.max_items]

        self._save_items(items)
        logger.debug(f"工作记忆 +1: {content[:50]} (importance={importance}, total={len(items)})")

    def get_items(self) -> List[WorkingMemoryItem]:
        return [WorkingMemoryItem(**item) for item in self._raw_items()]

    def get_current_focus(self, limit: int = 5) -> List[WorkingMemoryItem]:
        """最重要的几项"""
        items = sorted(self.get_items(), key=lambda i: i.importance, reverse=True)
        return items[:limit]

    def has_topic(self, topic: str) -> bool:
        topic = topic.lower()
        return any(topic in item.content.lower() for item in self.get_items())

    def clear(self):
        self.cache.forget(CACHE_PREFIX + ITEMS_KEY)
        logger.info("🧹 工作记忆已清空")

    # ── 对话上下文 ──────────────────────────────────────────

    def set_conversation_context(self, conversation_id: str, context: dict):
        self.cache.put(CACHE_PREFIX + CONVERSATION_KEY + str(conversation_id), context, self.ttl)
        logger.debug(f"对话上下文已更新: {conversation_id}")

    def get_conversation_context(self, conversation_id: str) -> Optional[dict]:
        return self.cache.get(CACHE_PREFIX + CONVERSATION_KEY + str(conversation_id))

    def clear_conversation_context(self, conversation_id: str):
        self.cache.forget(CACHE_PREFIX + CONVERSATION_KEY + str(conversation_id))

    def list_conversations(self) -> List[str]:
        """当前仍在 TTL 内的对话 id"""
        prefix = CACHE_PREFIX + CONVERSATION_KEY
        return [key[len(prefix):] for key in self.cache.keys(prefix)]

    # ── 渲染 ────────────────────────────────────────────────

    async def get_recent_thoughts(self, minutes: int = 30) -> List[Thought]:
        if not self.thoughts:
            return []
        return await self.thoughts.get_since(minutes, limit=10)

    async def get_working_memory(self) -> dict:
        return {
            "items": [item.model_dump(mode="json") for item in self.get_items()],
            "recent_thoughts": [t.model_dump(mode="json") for t in await self.get_recent_thoughts()],
        }

    async def to_prompt_context(self, lang: str = "en") -> str:
        items = self.get_items()
        thoughts = await self.get_recent_thoughts()
        if not items and not thoughts:
            return ""

        context = render("working.header", lang)
        for item in items:
            context += f"- [{item.category or 'note'}] {item.content}\n"

        if thoughts:
            context += render("working.recent_thoughts", lang)
            for thought in thoughts[:5]:
                preview = thought.content[:100]
                if len(thought.content) > 100:
                    preview += "..."
                context += f"- {preview}\n"

        return context
