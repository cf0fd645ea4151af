"""
记忆系统 - 数据库操作

aiosqlite 异步访问；时间统一存 ISO-8601（带微秒），向量存 BLOB。
"""
import aiosqlite
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import settings


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """datetime → 定长 ISO 字符串（保证字典序 = 时间序）"""
    if value is None:
        return None
    return value.isoformat(sep=" ", timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def get_db(db_path: Optional[Path] = None) -> aiosqlite.Connection:
    """获取数据库连接（配合 async with 使用）"""
    path = Path(db_path or settings.database_path)
    # 确保数据目录存在
    path.parent.mkdir(parents=True, exist_ok=True)
    return aiosqlite.connect(path)


async def init_database(db_path: Optional[Path] = None):
    """初始化数据库表"""
    async with get_db(db_path) as db:
        # 原子记忆
        await db.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL DEFAULT 'experience',
                layer TEXT NOT NULL DEFAULT 'episodic',
                content TEXT NOT NULL,
                summary TEXT,
                importance REAL NOT NULL DEFAULT 0.5,
                emotional_valence REAL NOT NULL DEFAULT 0.0,
                context TEXT,
                related_entity TEXT,
                thought_id INTEGER,
                embedding BLOB,
                embedding_dimensions INTEGER,
                embedding_model TEXT,
                embedded_at TEXT,
                recalled_count INTEGER NOT NULL DEFAULT 0,
                last_recalled_at TEXT,
                lifecycle TEXT NOT NULL DEFAULT 'active',
                consolidated_into_id INTEGER REFERENCES memory_summaries(id),
                consolidated_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_layer ON memories (layer, lifecycle, importance)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_created ON memories (created_at)"
        )

        # 巩固摘要：每个 (period_type, start, end) 只能有一条
        await db.execute("""
            CREATE TABLE IF NOT EXISTS memory_summaries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                period_start TEXT NOT NULL,
                period_end TEXT NOT NULL,
                period_type TEXT NOT NULL DEFAULT 'daily',
                summary TEXT NOT NULL,
                key_insights TEXT,
                themes TEXT DEFAULT '[]',
                entities_mentioned TEXT DEFAULT '[]',
                average_emotional_valence REAL DEFAULT 0.0,
                source_memory_count INTEGER DEFAULT 0,
                embedding BLOB,
                embedding_dimensions INTEGER,
                embedding_model TEXT,
                created_at TEXT NOT NULL,
                UNIQUE (period_type, period_start, period_end)
            )
        """)

        # 思考记录
        await db.execute("""
            CREATE TABLE IF NOT EXISTS thoughts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'observation',
                trigger TEXT,
                context TEXT,
                intensity REAL NOT NULL DEFAULT 0.5,
                led_to_action INTEGER NOT NULL DEFAULT 0,
                action_taken TEXT,
                created_at TEXT NOT NULL
            )
        """)

        # 目标
        await db.execute("""
            CREATE TABLE IF NOT EXISTS goals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                motivation TEXT,
                type TEXT NOT NULL DEFAULT 'curiosity',
                priority REAL NOT NULL DEFAULT 0.5,
                status TEXT NOT NULL DEFAULT 'active',
                progress INTEGER NOT NULL DEFAULT 0,
                progress_notes TEXT DEFAULT '[]',
                origin TEXT NOT NULL DEFAULT 'self',
                completed_at TEXT,
                abandoned_reason TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_goals_status ON goals (status, priority)"
        )

        await db.commit()
