"""
记忆系统 - 思考记录
"""
import json
import logging
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite
from pydantic import BaseModel, Field

from ..errors import NotFoundError
from .database import get_db, to_db_time, from_db_time

logger = logging.getLogger(__name__)


class ThoughtType(str, Enum):
    OBSERVATION = "observation"
    REFLECTION = "reflection"
    CURIOSITY = "curiosity"
    EMOTION = "emotion"
    DECISION = "decision"


class Thought(BaseModel):
    """一次思考"""
    id: Optional[int] = None
    content: str
    type: ThoughtType = ThoughtType.OBSERVATION
    trigger: Optional[str] = None
    context: Optional[dict[str, Any]] = None
    intensity: float = Field(0.5, ge=0.0, le=1.0)
    led_to_action: bool = False
    action_taken: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True


def _row_to_thought(row: aiosqlite.Row) -> Thought:
    return Thought(
        id=row["id"],
        content=row["content"],
        type=ThoughtType(row["type"]),
        trigger=row["trigger"],
        context=json.loads(row["context"]) if row["context"] else None,
        intensity=row["intensity"],
        led_to_action=bool(row["led_to_action"]),
        action_taken=row["action_taken"],
        created_at=from_db_time(row["created_at"]),
    )


class ThoughtStore:
    """思考记录存储"""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path

    async def _select(self, sql: str, params: tuple = ()) -> List[Thought]:
        async with get_db(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_thought(row) for row in rows]

    async def create(
        self,
        content: str,
        type: ThoughtType = ThoughtType.OBSERVATION,
        trigger: Optional[str] = None,
        context: Optional[dict] = None,
        intensity: float = 0.5,
    ) -> Thought:
        thought = Thought(
            content=content,
            type=ThoughtType(type),
            trigger=trigger,
            context=context,
            intensity=max(0.0, min(1.0, intensity)),
        )
        async with get_db(self.db_path) as db:
            cursor = await db.execute("""
                INSERT INTO thoughts (content, type, trigger, context, intensity, led_to_action, created_at)
                VALUES (?, ?, ?, ?, ?, 0, ?)
            """, (
                thought.content,
                thought.type.value,
                thought.trigger,
                json.dumps(thought.context, ensure_ascii=False, default=str) if thought.context else None,
                thought.intensity,
                to_db_time(thought.created_at),
            ))
            await db.commit()
            thought.id = cursor.lastrowid

        logger.info(f"💭 [{thought.type.value}] {thought.content[:80]}")
        return thought

    async def get(self, thought_id: int) -> Thought:
        results = await self._select("SELECT * FROM thoughts WHERE id = ?", (thought_id,))
        if not results:
            raise NotFoundError("Thought", thought_id)
        return results[0]

    async def get_recent(self, limit: int = 10) -> List[Thought]:
        return await self._select(
            "SELECT * FROM thoughts ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        )

    async def get_since(self, minutes: int = 30, limit: int = 10) -> List[Thought]:
        since = datetime.now() - timedelta(minutes=minutes)
        return await self._select(
            "SELECT * FROM thoughts WHERE created_at >= ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (to_db_time(since), limit),
        )

    async def mark_action(self, thought: Thought, action: str) -> Thought:
        async with get_db(self.db_path) as db:
            await db.execute(
                "UPDATE thoughts SET led_to_action = 1, action_taken = ? WHERE id = ?",
                (action, thought.id),
            )
            await db.commit()
        thought.led_to_action = True
        thought.action_taken = action
        return thought
