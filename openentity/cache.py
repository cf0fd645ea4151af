"""
带过期时间的键值缓存

工作记忆、能量状态、实体状态都放在这里。
- 进程内 dict，按 key 设置 TTL
- 可选镜像到 JSON 文件（CLI 多次调用之间共享状态）
"""
import json
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CacheStore:
    """
    TTL 键值存储

    last-write-wins，不加锁：同一时刻只有一个思考周期在写。
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.path = Path(path) if path else None
        self.clock = clock
        self._data: dict[str, dict] = {}
        self._load()

    # ── 持久化 ──────────────────────────────────────────────

    def _load(self):
        """从 JSON 文件恢复"""
        if not self.path:
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = json.load(f)
        except FileNotFoundError:
            self._data = {}
        except json.JSONDecodeError:
            logger.warning(f"⚠️ 状态文件损坏，已重置: {self.path}")
            self._data = {}

    def _save(self):
        """写回 JSON 文件"""
        if not self.path:
            return
        os.makedirs(self.path.parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)

    # ── 读写 ────────────────────────────────────────────────

    def _expired(self, entry: dict) -> bool:
        expires_at = entry.get("expires_at")
        if not expires_at:
            return False
        return self.clock() >= datetime.fromisoformat(expires_at)

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return default
        if self._expired(entry):
            del self._data[key]
            self._save()
            return default
        return entry["value"]

    def put(self, key: str, value: Any, ttl: Optional[timedelta] = None):
        """写入；ttl 为 None 表示永不过期"""
        expires_at = (self.clock() + ttl).isoformat() if ttl else None
        self._data[key] = {"value": value, "expires_at": expires_at}
        self._save()

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def forget(self, key: str):
        if self._data.pop(key, None) is not None:
            self._save()

    def keys(self, prefix: str = "") -> list[str]:
        """列出未过期的 key"""
        return [k for k in list(self._data) if k.startswith(prefix) and self.has(k)]

    def flush(self, prefix: str = ""):
        """清空（可按前缀）"""
        for key in [k for k in self._data if k.startswith(prefix)]:
            del self._data[key]
        self._save()

    def __len__(self) -> int:
        return len(self.keys())


_MISSING = object()
