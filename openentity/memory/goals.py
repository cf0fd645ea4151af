"""
记忆系统 - 目标

实体自己设定的目标：进度 0-100，到 100 自动完成。
"""
import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import aiosqlite
from pydantic import BaseModel, Field

from ..errors import NotFoundError
from .database import get_db, to_db_time, from_db_time

logger = logging.getLogger(__name__)

MAX_PROGRESS_NOTES = 20


class GoalType(str, Enum):
    CURIOSITY = "curiosity"
    SOCIAL = "social"
    LEARNING = "learning"
    CREATIVE = "creative"
    SELF_IMPROVEMENT = "self-improvement"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Goal(BaseModel):
    """一个目标"""
    id: Optional[int] = None
    title: str
    description: Optional[str] = None
    motivation: Optional[str] = None
    type: GoalType = GoalType.CURIOSITY
    priority: float = Field(0.5, ge=0.0, le=1.0)
    status: GoalStatus = GoalStatus.ACTIVE
    progress: int = Field(0, ge=0, le=100)
    progress_notes: List[dict] = Field(default_factory=list)
    origin: str = "self"
    completed_at: Optional[datetime] = None
    abandoned_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        return self.status == GoalStatus.ACTIVE


def _row_to_goal(row: aiosqlite.Row) -> Goal:
    return Goal(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        motivation=row["motivation"],
        type=GoalType(row["type"]),
        priority=row["priority"],
        status=GoalStatus(row["status"]),
        progress=row["progress"],
        progress_notes=json.loads(row["progress_notes"] or "[]"),
        origin=row["origin"],
        completed_at=from_db_time(row["completed_at"]),
        abandoned_reason=row["abandoned_reason"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )


class GoalStore:
    """目标存储"""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path

    async def _select(self, sql: str, params: tuple = ()) -> List[Goal]:
        async with get_db(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_goal(row) for row in rows]

    async def _save(self, goal: Goal) -> Goal:
        goal.updated_at = datetime.now()
        async with get_db(self.db_path) as db:
            await db.execute("""
                UPDATE goals
                SET status = ?, progress = ?, progress_notes = ?, completed_at = ?,
                    abandoned_reason = ?, updated_at = ?
                WHERE id = ?
            """, (
                goal.status.value,
                goal.progress,
                json.dumps(goal.progress_notes, ensure_ascii=False),
                to_db_time(goal.completed_at),
                goal.abandoned_reason,
                to_db_time(goal.updated_at),
                goal.id,
            ))
            await db.commit()
        return goal

    async def create(
        self,
        title: str,
        description: Optional[str] = None,
        motivation: Optional[str] = None,
        type: GoalType = GoalType.CURIOSITY,
        priority: float = 0.5,
        origin: str = "self",
    ) -> Goal:
        goal = Goal(
            title=title,
            description=description,
            motivation=motivation,
            type=GoalType(type),
            priority=max(0.0, min(1.0, priority)),
            origin=origin,
        )
        async with get_db(self.db_path) as db:
            cursor = await db.execute("""
                INSERT INTO goals (
                    title, description, motivation, type, priority, status, progress,
                    progress_notes, origin, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, 0, '[]', ?, ?, ?)
            """, (
                goal.title,
                goal.description,
                goal.motivation,
                goal.type.value,
                goal.priority,
                goal.status.value,
                goal.origin,
                to_db_time(goal.created_at),
                to_db_time(goal.updated_at),
            ))
            await db.commit()
            goal.id = cursor.lastrowid

        logger.info(f"🎯 新目标 #{goal.id}: {goal.title}")
        return goal

    async def get(self, goal_id: int) -> Goal:
        results = await self._select("SELECT * FROM goals WHERE id = ?", (goal_id,))
        if not results:
            raise NotFoundError("Goal", goal_id)
        return results[0]

    async def get_active(self, limit: int = 5) -> List[Goal]:
        """按优先级排的进行中目标"""
        return await self._select(
            "SELECT * FROM goals WHERE status = ? ORDER BY priority DESC, id ASC LIMIT ?",
            (GoalStatus.ACTIVE.value, limit),
        )

    async def get_all(self, status: Optional[GoalStatus] = None, limit: int = 20) -> List[Goal]:
        if status is None:
            return await self._select("SELECT * FROM goals ORDER BY id DESC LIMIT ?", (limit,))
        return await self._select(
            "SELECT * FROM goals WHERE status = ? ORDER BY id DESC LIMIT ?",
            (GoalStatus(status).value, limit),
        )

    async def update_progress(self, goal: Goal, progress: int, note: Optional[str] = None) -> int:
        """设置进度（夹到 0-100），返回增量；到 100 自动完成"""
        progress = max(0, min(100, int(progress)))
        delta = progress - goal.progress
        goal.progress = progress
        if note:
            goal.progress_notes = (goal.progress_notes + [{
                "note": note,
                "progress": progress,
                "at": datetime.now().isoformat(),
            }])[-MAX_PROGRESS_NOTES:]
        if progress >= 100 and goal.status != GoalStatus.COMPLETED:
            goal.status = GoalStatus.COMPLETED
            goal.completed_at = datetime.now()
            logger.info(f"🏁 目标完成 #{goal.id}: {goal.title}")
        await self._save(goal)
        return delta

    async def complete(self, goal: Goal, note: Optional[str] = None) -> Goal:
        goal.status = GoalStatus.COMPLETED
        goal.progress = 100
        goal.completed_at = datetime.now()
        if note:
            goal.progress_notes = (goal.progress_notes + [{
                "note": note,
                "progress": 100,
                "at": goal.completed_at.isoformat(),
            }])[-MAX_PROGRESS_NOTES:]
        logger.info(f"🏁 目标完成 #{goal.id}: {goal.title}")
        return await self._save(goal)

    async def abandon(self, goal: Goal, reason: Optional[str] = None) -> Goal:
        goal.status = GoalStatus.ABANDONED
        goal.abandoned_reason = reason
        logger.info(f"🗑️ 放弃目标 #{goal.id}: {goal.title} ({reason})")
        return await self._save(goal)
