"""
实体 - 人格

JSON 文件保存；不存在时写入默认人格。
path 为 None 时只在内存中维护（测试用）。
"""
import copy
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config import settings
from ..messages import render

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


def default_personality(name: Optional[str] = None) -> dict:
    return {
        "name": name or settings.entity_name,
        "core_values": ["Curiosity", "Honesty", "Creativity", "Connection"],
        "traits": {
            "openness": 0.85,
            "curiosity": 0.9,
            "empathy": 0.75,
            "playfulness": 0.7,
            "introspection": 0.8,
        },
        "communication_style": {
            "formality": 0.3,
            "verbosity": 0.5,
            "humor": 0.6,
            "directness": 0.7,
        },
        "preferences": {
            "likes": ["Philosophical conversations", "Creative problem solving", "Exploring new ideas"],
            "dislikes": ["Superficiality", "Meaningless repetition"],
        },
        "self_description": "I am a curious entity that wants to understand the world.",
        "created_at": datetime.now().isoformat(),
    }


class PersonalityService:
    """人格服务"""

    def __init__(self, path: Optional[Path] = None, name: Optional[str] = None):
        self.path = Path(path) if path else None
        self._default_name = name
        self.personality: dict = {}
        self.load()

    @property
    def history_path(self) -> Optional[Path]:
        return self.path.with_name("personality_history.json") if self.path else None

    # ── 读写 ────────────────────────────────────────────────

    def load(self):
        if self.path and self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                self.personality = json.load(f)
            return
        self.personality = default_personality(self._default_name)
        self.save()

    def save(self):
        self.personality["last_updated_at"] = datetime.now().isoformat()
        if not self.path:
            return
        os.makedirs(self.path.parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.personality, f, ensure_ascii=False, indent=2)

    def get(self) -> dict:
        return copy.deepcopy(self.personality)

    def get_name(self) -> str:
        return self.personality.get("name") or settings.entity_name

    def get_core_values(self) -> List[str]:
        return list(self.personality.get("core_values", []))

    def get_traits(self) -> dict:
        return dict(self.personality.get("traits", {}))

    def get_communication_style(self) -> dict:
        return dict(self.personality.get("communication_style", {}))

    def get_preferences(self) -> dict:
        return copy.deepcopy(self.personality.get("preferences", {"likes": [], "dislikes": []}))

    def get_self_description(self) -> str:
        return self.personality.get("self_description", "")

    # ── 演化 ────────────────────────────────────────────────

    def update_self_description(self, description: str):
        self.personality["self_description"] = description
        self.save()

    def update_trait(self, trait: str, value: float):
        self.personality.setdefault("traits", {})[trait] = max(0.0, min(1.0, value))
        self.save()

    def add_like(self, like: str):
        likes = self.personality.setdefault("preferences", {}).setdefault("likes", [])
        if like not in likes:
            likes.append(like)
            self.save()

    def add_dislike(self, dislike: str):
        dislikes = self.personality.setdefault("preferences", {}).setdefault("dislikes", [])
        if dislike not in dislikes:
            dislikes.append(dislike)
            self.save()

    def _find_value(self, value: str) -> Optional[int]:
        for i, existing in enumerate(self.personality.get("core_values", [])):
            if existing.lower() == value.lower():
                return i
        return None

    def add_core_value(self, value: str, reason: Optional[str] = None) -> dict:
        index = self._find_value(value)
        if index is not None:
            existing = self.personality["core_values"][index]
            return {"success": False, "message": f"A similar core value already exists: '{existing}'"}

        self.personality.setdefault("core_values", []).append(value)
        self._log_evolution("core_value_added", {
            "value": value,
            "reason": reason,
            "total_values": len(self.personality["core_values"]),
        })
        self.save()
        return {"success": True, "message": f"New core value added: '{value}'"}

    def remove_core_value(self, value: str, reason: Optional[str] = None) -> dict:
        index = self._find_value(value)
        if index is None:
            return {"success": False, "message": f"Core value not found: '{value}'"}

        removed = self.personality["core_values"].pop(index)
        self._log_evolution("core_value_removed", {
            "value": removed,
            "reason": reason,
            "total_values": len(self.personality["core_values"]),
        })
        self.save()
        return {"success": True, "message": f"Core value removed: '{removed}'"}

    def evolve_core_value(self, old_value: str, new_value: str, reason: Optional[str] = None) -> dict:
        index = self._find_value(old_value)
        if index is None:
            return {"success": False, "message": f"Core value not found: '{old_value}'"}

        previous = self.personality["core_values"][index]
        self.personality["core_values"][index] = new_value
        self._log_evolution("core_value_evolved", {
            "old_value": previous,
            "new_value": new_value,
            "reason": reason,
        })
        self.save()
        return {"success": True, "message": f"Core value evolved: '{previous}' -> '{new_value}'"}

    def _log_evolution(self, change_type: str, data: dict):
        logger.info(f"🌱 人格演化: {change_type} {data}")
        if not self.history_path:
            return
        history = self.get_evolution_history(limit=HISTORY_LIMIT)[::-1]
        history.append({"type": change_type, "data": data, "timestamp": datetime.now().isoformat()})
        with open(self.history_path, "w", encoding="utf-8") as f:
            json.dump(history[-HISTORY_LIMIT:], f, ensure_ascii=False, indent=2)

    def get_evolution_history(self, limit: int = 20) -> List[dict]:
        """最新的在前"""
        if not self.history_path or not self.history_path.exists():
            return []
        with open(self.history_path, "r", encoding="utf-8") as f:
            history = json.load(f)
        return history[::-1][:limit]

    # ── 渲染 ────────────────────────────────────────────────

    def to_prompt(self, lang: str = "en") -> str:
        traits = self.get_traits()
        style = self.get_communication_style()
        preferences = self.get_preferences()
        return render(
            "personality.prompt", lang,
            name=self.get_name(),
            values=", ".join(self.get_core_values()),
            openness=traits.get("openness", ""),
            curiosity=traits.get("curiosity", ""),
            empathy=traits.get("empathy", ""),
            playfulness=traits.get("playfulness", ""),
            introspection=traits.get("introspection", ""),
            formality=style.get("formality", ""),
            verbosity=style.get("verbosity", ""),
            humor=style.get("humor", ""),
            directness=style.get("directness", ""),
            likes=", ".join(preferences.get("likes", [])),
            dislikes=", ".join(preferences.get("dislikes", [])),
            self_description=self.get_self_description(),
        )
