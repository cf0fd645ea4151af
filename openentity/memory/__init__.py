"""
记忆系统

SQLite 存原子记忆、巩固摘要、思考记录和目标；
工作记忆放在带 TTL 的缓存里。
"""
from .consolidation import MemoryConsolidation
from .database import get_db, init_database
from .goals import Goal, GoalStatus, GoalStore, GoalType
from .layers import MemoryLayerManager
from .models import (
    Memory,
    MemoryLayer,
    MemoryLifecycle,
    MemorySummary,
    MemoryType,
    PeriodType,
    WorkingMemoryItem,
)
from .semantic import EmbeddingQueue, SemanticMemory
from .store import MemoryService, SummaryStore
from .thoughts import Thought, ThoughtStore, ThoughtType
from .tokens import estimate_tokens, truncate_to_budget
from .working import WorkingMemory

__all__ = [
    "get_db",
    "init_database",
    "Memory",
    "MemoryLayer",
    "MemoryLifecycle",
    "MemorySummary",
    "MemoryType",
    "PeriodType",
    "WorkingMemoryItem",
    "MemoryService",
    "SummaryStore",
    "SemanticMemory",
    "EmbeddingQueue",
    "MemoryConsolidation",
    "WorkingMemory",
    "MemoryLayerManager",
    "estimate_tokens",
    "truncate_to_budget",
    "Goal",
    "GoalStatus",
    "GoalStore",
    "GoalType",
    "Thought",
    "ThoughtStore",
    "ThoughtType",
]
