"""
向量嵌入 - 网关

主后端 + 可选兜底后端；余弦相似度、相似检索、二进制编解码。
"""
import logging
from typing import Any, List, Optional, Sequence

import numpy as np

from ..config import Settings, settings as default_settings
from ..errors import DimensionMismatch
from .drivers import (
    EmbeddingDriver,
    HashingEmbeddingDriver,
    OllamaEmbeddingDriver,
    OpenAIEmbeddingDriver,
)

logger = logging.getLogger(__name__)

# packed little-endian float32，无头部
_BLOB_DTYPE = np.dtype("<f4")


class EmbeddingService:
    """嵌入网关"""

    def __init__(self, driver: EmbeddingDriver, fallback: Optional[EmbeddingDriver] = None):
        self.driver = driver
        self.fallback = fallback

    # ==================== 嵌入 ====================

    async def embed(self, text: str) -> List[float]:
        try:
            return await self.driver.embed(text)
        except Exception as e:
            if self.fallback and await self.fallback.is_available():
                logger.warning(f"⚠️ 主嵌入后端失败，改用兜底后端: {e}")
                return await self.fallback.embed(text)
            raise

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        try:
            return await self.driver.embed_batch(texts)
        except Exception as e:
            if self.fallback and await self.fallback.is_available():
                logger.warning(f"⚠️ 主嵌入后端批量失败，改用兜底后端: {e}")
                return await self.fallback.embed_batch(texts)
            raise

    async def is_available(self) -> bool:
        if await self.driver.is_available():
            return True
        return bool(self.fallback) and await self.fallback.is_available()

    def get_model_name(self) -> str:
        return self.driver.get_model_name()

    def get_dimensions(self) -> int:
        return self.driver.get_dimensions()

    # ==================== 相似度 ====================

    def cosine_similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        if len(a) != len(b):
            raise DimensionMismatch(len(a), len(b))
        if len(a) == 0:
            return 0.0

        va = np.asarray(a, dtype=np.float64)
        vb = np.asarray(b, dtype=np.float64)
        norm_a = np.linalg.norm(va)
        norm_b = np.linalg.norm(vb)
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0

        similarity = float(np.dot(va, vb) / (norm_a * norm_b))
        return max(-1.0, min(1.0, similarity))

    def find_similar(
        self,
        query_embedding: Sequence[float],
        candidates: List[Any],
        limit: int = 5,
        threshold: float = 0.7,
    ) -> List[Any]:
        """
        按相似度排序候选

        候选可以是带 embedding 属性的对象，也可以是含 "embedding" 键的 dict；
        embedding 可以是 float 列表或二进制 BLOB。
        结果写回候选的 similarity 字段。
        """
        scored = []
        for item in candidates:
            embedding = self._extract_embedding(item)
            if not embedding:
                continue
            if len(embedding) != len(query_embedding):
                logger.debug(
                    f"跳过维度不一致的候选: {len(embedding)} vs {len(query_embedding)}"
                )
                continue

            similarity = self.cosine_similarity(query_embedding, embedding)
            if isinstance(item, dict):
                item["similarity"] = similarity
            else:
                item.similarity = similarity

            if similarity >= threshold:
                scored.append((similarity, item))

        # sorted 是稳定的：同分保持输入顺序
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in scored[:limit]]

    def _extract_embedding(self, item: Any) -> List[float]:
        raw = item.get("embedding") if isinstance(item, dict) else getattr(item, "embedding", None)
        if raw is None:
            return []
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return self.decode_binary(bytes(raw))
        return list(raw)

    # ==================== 编解码 ====================

    @staticmethod
    def encode_to_binary(embedding: Sequence[float]) -> bytes:
        return np.asarray(embedding, dtype=_BLOB_DTYPE).tobytes()

    @staticmethod
    def decode_binary(blob: bytes) -> List[float]:
        if not blob:
            return []
        return np.frombuffer(blob, dtype=_BLOB_DTYPE).astype(np.float64).tolist()


def _build_driver(name: str, cfg: Settings) -> EmbeddingDriver:
    if name == "ollama":
        return OllamaEmbeddingDriver(
            base_url=cfg.ollama_base_url,
            model=cfg.embedding_ollama_model,
            dimensions=cfg.embedding_ollama_dimensions,
            timeout=cfg.embedding_timeout,
        )
    if name == "openai":
        return OpenAIEmbeddingDriver(
            api_key=cfg.openai_api_key,
            base_url=cfg.openai_base_url,
            model=cfg.embedding_openai_model,
            dimensions=cfg.embedding_openai_dimensions,
            timeout=cfg.embedding_timeout,
        )
    if name == "hashing":
        return HashingEmbeddingDriver(dimensions=cfg.hashing_dimensions)
    raise ValueError(f"Unknown embedding driver: {name}")


def create_embedding_service(cfg: Optional[Settings] = None) -> EmbeddingService:
    """按配置创建嵌入网关"""
    cfg = cfg or default_settings
    driver = _build_driver(cfg.embedding_driver, cfg)
    fallback = None
    if cfg.embedding_fallback_driver and cfg.embedding_fallback_driver != cfg.embedding_driver:
        fallback = _build_driver(cfg.embedding_fallback_driver, cfg)
    return EmbeddingService(driver, fallback)
