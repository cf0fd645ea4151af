"""
OpenEntity 配置管理
"""
from pydantic_settings import BaseSettings
from typing import Literal, Optional
from pathlib import Path


ENTITY_HOME = Path.home() / ".openentity"


class Settings(BaseSettings):
    """应用配置"""

    # 实体身份
    entity_name: str = "OpenEntity"
    default_lang: str = "en"
    think_interval: int = 30  # 秒

    # 存储
    home_dir: Path = ENTITY_HOME
    database_path: Path = ENTITY_HOME / "memory.db"
    state_path: Path = ENTITY_HOME / "state.json"
    personality_path: Path = ENTITY_HOME / "mind" / "personality.json"

    # 生成后端
    llm_driver: Literal["ollama", "openai"] = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen-coder:30b"
    ollama_timeout: int = 600  # CPU 推理很慢
    llm_temperature: float = 0.8
    llm_top_p: float = 0.9
    llm_num_ctx: int = 4096
    llm_max_tokens: int = 4096
    openai_base_url: str = "https://api.openai.com"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_timeout: int = 60

    # 向量嵌入
    embedding_driver: Literal["ollama", "openai", "hashing"] = "ollama"
    embedding_fallback_driver: Optional[Literal["ollama", "openai", "hashing"]] = "hashing"
    embedding_ollama_model: str = "nomic-embed-text"
    embedding_ollama_dimensions: int = 768
    embedding_openai_model: str = "text-embedding-3-small"
    embedding_openai_dimensions: int = 1536
    embedding_timeout: int = 120
    hashing_dimensions: int = 256

    # 记忆分层
    working_max_items: int = 20
    working_ttl_minutes: int = 60
    episodic_max_in_context: int = 10
    episodic_similarity_threshold: float = 0.7
    semantic_max_in_context: int = 5

    # 记忆巩固（相当于睡眠）
    consolidation_enabled: bool = True
    consolidation_cron_hour: int = 3
    archive_after_days: int = 30

    # 上下文 token 预算
    budget_total: int = 4000
    budget_core_identity: int = 500
    budget_working_memory: int = 1000
    budget_episodic: int = 1500
    budget_semantic: int = 1000

    debug: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "ENTITY_"


settings = Settings()
