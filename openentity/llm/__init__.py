"""
LLM 模块
"""
from .client import LLMDriver, LLMService, OllamaDriver, OpenAIDriver, create_llm_service

__all__ = ["LLMDriver", "LLMService", "OllamaDriver", "OpenAIDriver", "create_llm_service"]
