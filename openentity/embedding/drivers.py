"""
向量嵌入 - 后端驱动

每个驱动只负责一件事：文本 → float 列表。
网络 / API 失败统一转成 EmbeddingBackendError。
"""
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import List

import httpx
import numpy as np

from ..errors import EmbeddingBackendError

logger = logging.getLogger(__name__)


class EmbeddingDriver(ABC):
    """嵌入后端基类"""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        pass

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """默认逐条调用"""
        return [await self.embed(text) for text in texts]

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass

    @abstractmethod
    def get_dimensions(self) -> int:
        pass


class OllamaEmbeddingDriver(EmbeddingDriver):
    """本地 Ollama: POST /api/embeddings"""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        timeout: int = 120,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout

    async def embed(self, text: str) -> List[float]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self.base_url}/api/embeddings",
                    json={"model": self.model, "prompt": text},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise EmbeddingBackendError(f"Ollama embedding request failed: {e}") from e

        embedding = data.get("embedding") or []
        if not embedding:
            raise EmbeddingBackendError("Empty embedding returned from Ollama")
        return [float(x) for x in embedding]

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5, trust_env=False) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError:
            return False

    def get_model_name(self) -> str:
        return self.model

    def get_dimensions(self) -> int:
        return self.dimensions


class OpenAIEmbeddingDriver(EmbeddingDriver):
    """OpenAI 兼容: POST /v1/embeddings"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com",
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        timeout: int = 60,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout

    async def _request(self, payload_input) -> list:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{self.base_url}/v1/embeddings",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"model": self.model, "input": payload_input},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise EmbeddingBackendError(f"OpenAI embedding request failed: {e}") from e
        return data.get("data") or []

    async def embed(self, text: str) -> List[float]:
        items = await self._request(text)
        if not items or not items[0].get("embedding"):
            raise EmbeddingBackendError("Empty embedding returned from OpenAI")
        return [float(x) for x in items[0]["embedding"]]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        items = await self._request(texts)
        # 返回顺序不保证，按 index 还原
        items = sorted(items, key=lambda item: item["index"])
        return [[float(x) for x in item["embedding"]] for item in items]

    async def is_available(self) -> bool:
        return bool(self.api_key)

    def get_model_name(self) -> str:
        return self.model

    def get_dimensions(self) -> int:
        return self.dimensions


class HashingEmbeddingDriver(EmbeddingDriver):
    """
    离线哈希向量器

    分词 → md5 取模落桶 → L2 归一化。
    无需网络，总是可用；用作兜底后端和测试。
    """

    def __init__(self, dimensions: int = 256):
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        vec = np.zeros(self.dimensions, dtype=np.float32)
        for token in text.lower().split():
            h = int(hashlib.md5(token.encode()).hexdigest(), 16)
            vec[h % self.dimensions] += 1.0
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec = vec / norm
        return vec.tolist()

    async def is_available(self) -> bool:
        return True

    def get_model_name(self) -> str:
        return f"hashing-{self.dimensions}"

    def get_dimensions(self) -> int:
        return self.dimensions
