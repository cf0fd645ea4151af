"""
向量嵌入
"""
from .drivers import (
    EmbeddingDriver,
    HashingEmbeddingDriver,
    OllamaEmbeddingDriver,
    OpenAIEmbeddingDriver,
)
from .service import EmbeddingService, create_embedding_service

__all__ = [
    "EmbeddingDriver",
    "HashingEmbeddingDriver",
    "OllamaEmbeddingDriver",
    "OpenAIEmbeddingDriver",
    "EmbeddingService",
    "create_embedding_service",
]
