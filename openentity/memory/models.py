"""
记忆系统 - 数据模型
"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Optional, List
from enum import Enum


class MemoryType(str, Enum):
    """记忆类型"""
    EXPERIENCE = "experience"
    CONVERSATION = "conversation"
    LEARNED = "learned"
    DECISION = "decision"
    SOCIAL = "social"
    REFLECTION = "reflection"
    ACHIEVEMENT = "achievement"


class MemoryLayer(str, Enum):
    """记忆所在层"""
    EPISODIC = "episodic"      # 具体经历
    SEMANTIC = "semantic"      # 抽象知识
    PROCEDURAL = "procedural"  # 技能 / 做法


class MemoryLifecycle(str, Enum):
    """生命周期：被巩固后不再参与活跃检索"""
    ACTIVE = "active"
    CONSOLIDATED = "consolidated"


class PeriodType(str, Enum):
    """巩固周期"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Memory(BaseModel):
    """原子记忆"""
    id: Optional[int] = None
    type: str = MemoryType.EXPERIENCE.value
    layer: MemoryLayer = MemoryLayer.EPISODIC
    content: str
    summary: Optional[str] = None
    importance: float = Field(0.5, ge=0.0, le=1.0)
    emotional_valence: float = Field(0.0, ge=-1.0, le=1.0)
    context: Optional[dict[str, Any]] = None
    related_entity: Optional[str] = None
    thought_id: Optional[int] = None

    # 向量（packed float32 BLOB）
    embedding: Optional[bytes] = None
    embedding_dimensions: Optional[int] = None
    embedding_model: Optional[str] = None
    embedded_at: Optional[datetime] = None

    recalled_count: int = 0
    last_recalled_at: Optional[datetime] = None

    lifecycle: MemoryLifecycle = MemoryLifecycle.ACTIVE
    consolidated_into_id: Optional[int] = None
    consolidated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    # 检索时附加，不落库
    similarity: Optional[float] = None

    class Config:
        from_attributes = True

    @property
    def is_consolidated(self) -> bool:
        return self.lifecycle == MemoryLifecycle.CONSOLIDATED

    @property
    def display_text(self) -> str:
        """摘要优先，否则全文"""
        return self.summary if self.summary is not None else self.content


class MemorySummary(BaseModel):
    """一段时间内记忆的巩固摘要"""
    id: Optional[int] = None
    period_start: date
    period_end: date
    period_type: PeriodType = PeriodType.DAILY
    summary: str
    key_insights: Optional[str] = None
    themes: List[str] = []
    entities_mentioned: List[str] = []
    average_emotional_valence: float = 0.0
    source_memory_count: int = 0
    embedding: Optional[bytes] = None
    embedding_dimensions: Optional[int] = None
    embedding_model: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    @property
    def period_description(self) -> str:
        if self.period_type == PeriodType.DAILY:
            d = self.period_start
            return f"{d:%b} {d.day}, {d:%Y}"
        if self.period_type == PeriodType.WEEKLY:
            s, e = self.period_start, self.period_end
            return f"{s:%b} {s.day} - {e:%b} {e.day}, {e:%Y}"
        return self.period_start.strftime("%B %Y")

    def covers(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end


class WorkingMemoryItem(BaseModel):
    """工作记忆条目（不落库）"""
    content: str
    importance: float = 0.5
    category: Optional[str] = None
    added_at: datetime = Field(default_factory=datetime.now)
