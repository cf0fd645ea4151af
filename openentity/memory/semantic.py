"""
记忆系统 - 语义检索

向量检索优先，任何失败都退回关键词搜索：语义检索不能打断思考循环。
嵌入可以同步生成，也可以交给后台队列（写入后立即可被关键词搜到）。
"""
import asyncio
import contextlib
import logging
from typing import List, Optional

from ..config import settings
from ..embedding import EmbeddingService
from ..errors import NotFoundError
from .models import Memory
from .store import MemoryService
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)


class SemanticMemory:
    """语义记忆检索"""

    def __init__(
        self,
        memories: MemoryService,
        embeddings: EmbeddingService,
        episodic_threshold: Optional[float] = None,
        queue: Optional["EmbeddingQueue"] = None,
    ):
        self.memories = memories
        self.embeddings = embeddings
        self.episodic_threshold = (
            episodic_threshold if episodic_threshold is not None
            else settings.episodic_similarity_threshold
        )
        self.queue = queue or EmbeddingQueue(self)

    # ==================== 检索 ====================

    async def search(self, query: str, limit: int = 10, threshold: float = 0.5) -> List[Memory]:
        """语义搜索，失败时退回关键词搜索"""
        try:
            query_embedding = await self.embeddings.embed(query)
            candidates = await self.memories.get_embedded(active_only=True)

            if not candidates:
                logger.info("没有已嵌入的记忆，退回关键词搜索")
                return await self.memories.search(query, limit, active_only=True)

            return self.embeddings.find_similar(query_embedding, candidates, limit, threshold)
        except Exception as e:
            logger.error(f"❌ 语义搜索失败，退回关键词搜索: {e}")
            return await self.memories.search(query, limit, active_only=True)

    async def find_related_to(self, topic: str, limit: int = 10) -> List[Memory]:
        return await self.search(topic, limit, 0.6)

    async def get_contextual_memories(self, context: str, max_tokens: int = 2000) -> List[Memory]:
        """在 token 预算内取最相关的记忆；超预算即停"""
        found = await self.search(context, 20, self.episodic_threshold)

        selected = []
        total_tokens = 0
        for memory in found:
            tokens = estimate_tokens(memory.content)
            if total_tokens + tokens > max_tokens:
                break
            total_tokens += tokens
            selected.append(memory)
        return selected

    async def get_by_layer(
        self,
        layer: str,
        context_query: Optional[str] = None,
        limit: int = 10,
    ) -> List[Memory]:
        """某一层的记忆；有查询时按语义排序"""
        if context_query and await self.embeddings.is_available():
            candidates = await self.memories.get_embedded(layer=layer, active_only=True)
            if candidates:
                try:
                    query_embedding = await self.embeddings.embed(context_query)
                    return self.embeddings.find_similar(query_embedding, candidates, limit, 0.5)
                except Exception as e:
                    logger.warning(f"⚠️ 分层语义查询失败: {e}")

        return await self.memories.get_by_layer(layer, limit)

    async def find_similar_memories(self, memory: Memory, limit: int = 5) -> List[Memory]:
        """与某条记忆相似的其他记忆"""
        if not memory.embedding:
            await self.generate_embedding(memory)

        reference = self.embeddings.decode_binary(memory.embedding)
        candidates = await self.memories.get_embedded(exclude_id=memory.id)
        return self.embeddings.find_similar(reference, candidates, limit, 0.6)

    # ==================== 嵌入 ====================

    async def create_with_embedding(self, data: dict, sync: bool = False) -> Memory:
        """创建记忆并生成向量（同步或排队）"""
        memory = await self.memories.create(data)
        if sync:
            await self.generate_embedding(memory)
        else:
            self.queue.submit(memory.id)
        return memory

    async def generate_embedding(self, memory: Memory) -> Memory:
        """生成并保存向量；失败记录后继续抛出"""
        try:
            text = memory.display_text
            if memory.type:
                text = f"[{memory.type}] {text}"

            embedding = await self.embeddings.embed(text)
            blob = self.embeddings.encode_to_binary(embedding)
            model = self.embeddings.get_model_name()
            embedded_at = await self.memories.update_embedding(memory.id, blob, len(embedding), model)

            memory.embedding = blob
            memory.embedding_dimensions = len(embedding)
            memory.embedding_model = model
            memory.embedded_at = embedded_at
            logger.debug(f"记忆 #{memory.id} 已嵌入 ({len(embedding)} 维, {model})")
            return memory
        except Exception as e:
            logger.error(f"❌ 记忆 #{memory.id} 嵌入失败: {e}")
            raise

    async def backfill_embeddings(self, batch_size: int = 100) -> int:
        """为缺少向量的记忆补齐嵌入"""
        pending = await self.memories.get_unembedded()
        processed = 0

        for start in range(0, len(pending), batch_size):
            for memory in pending[start:start + batch_size]:
                try:
                    await self.generate_embedding(memory)
                    processed += 1
                except Exception as e:
                    logger.warning(f"⚠️ 跳过记忆 #{memory.id}: {e}")
            # 批次之间让出事件循环
            await asyncio.sleep(0)

        return processed

    async def get_stats(self) -> dict:
        total = await self.memories.count()
        embedded = await self.memories.count(embedded=True)
        return {
            "total_memories": total,
            "embedded": embedded,
            "pending": total - embedded,
            "coverage_percent": round(embedded / total * 100, 2) if total > 0 else 0,
            "embedding_model": self.embeddings.get_model_name(),
            "embedding_dimensions": self.embeddings.get_dimensions(),
        }


class EmbeddingQueue:
    """
    后台嵌入队列

    submit() 只登记 memory_id；由常驻 worker（start）或显式 drain() 处理。
    每条最多尝试 max_attempts 次；已有向量的直接跳过。
    """

    def __init__(self, semantic: SemanticMemory, max_attempts: int = 3, retry_delay: float = 10.0):
        self.semantic = semantic
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, memory_id: int):
        self._queue.put_nowait(memory_id)

    async def _process(self, memory_id: int) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            try:
                memory = await self.semantic.memories.get(memory_id)
            except NotFoundError:
                logger.warning(f"⚠️ 待嵌入的记忆 #{memory_id} 已不存在")
                return False

            if memory.embedded_at:
                logger.debug(f"记忆 #{memory_id} 已有向量，跳过")
                return True

            try:
                await self.semantic.generate_embedding(memory)
                logger.info(f"🧬 记忆 #{memory_id} 已在后台嵌入")
                return True
            except Exception as e:
                logger.error(f"❌ 后台嵌入失败 #{memory_id} (第 {attempt} 次): {e}")
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay)

        logger.error(f"❌ 记忆 #{memory_id} 嵌入彻底失败")
        return False

    async def drain(self) -> int:
        """处理完当前积压；返回成功数"""
        if self.running:
            await self._queue.join()
            return 0

        succeeded = 0
        while not self._queue.empty():
            memory_id = self._queue.get_nowait()
            try:
                if await self._process(memory_id):
                    succeeded += 1
            finally:
                self._queue.task_done()
        return succeeded

    async def _run(self):
        while True:
            memory_id = await self._queue.get()
            try:
                await self._process(memory_id)
            finally:
                self._queue.task_done()

    def start(self):
        if not self.running:
            self._worker = asyncio.create_task(self._run())

    async def stop(self):
        if self._worker:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
