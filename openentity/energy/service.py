"""
能量模型

一个进程级的可变标量 + 簿记，存在 TTL 缓存里：
- 醒着时随时间疲劳（读取时惰性结算）
- 思考、对话、工具调用消耗能量
- 目标进展、积极互动、回忆带来能量
- 睡眠恢复，醒来至少有一半能量
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..cache import CacheStore
from ..messages import render

logger = logging.getLogger(__name__)

CACHE_PREFIX = "entity:energy:"
ENERGY_KEY = CACHE_PREFIX + "current"
LAST_UPDATE_KEY = CACHE_PREFIX + "last_update"
SLEEP_START_KEY = CACHE_PREFIX + "sleep_start"
WAKE_TIME_KEY = CACHE_PREFIX + "wake_time"
ENERGY_LOG_KEY = CACHE_PREFIX + "log"

CACHE_TTL = timedelta(days=7)
LOG_LIMIT = 100

# 能量范围
MAX_ENERGY = 1.0
MIN_ENERGY = 0.0
DEFAULT_ENERGY = 0.7

# 疲劳：每小时 -0.04，约 24 小时耗尽
FATIGUE_RATE_PER_HOUR = 0.04
FATIGUE_MIN_HOURS = 0.05

# 消耗
COST_TOOL_EXECUTION = 0.02
COST_THOUGHT_BASE = 0.005
COST_THOUGHT_INTENSITY_MULTIPLIER = 0.01
COST_CONVERSATION_MESSAGE = 0.01

# 收益
GAIN_GOAL_PROGRESS = 0.03  # 每 10% 进度
GAIN_GOAL_COMPLETED = 0.15
GAIN_POSITIVE_INTERACTION = 0.02
GAIN_MEMORY_RECALL = 0.005

# 睡眠
SLEEP_RECOVERY_PER_HOUR = 0.15
WAKE_ENERGY_MINIMUM = 0.5

# 状态阈值（从高到低）
STATES = (
    (0.9, "energized"),
    (0.7, "alert"),
    (0.5, "normal"),
    (0.3, "tired"),
    (0.15, "exhausted"),
)


def _clamp(value: float) -> float:
    return max(MIN_ENERGY, min(MAX_ENERGY, value))


def state_for(energy: float) -> str:
    for threshold, state in STATES:
        if energy >= threshold:
            return state
    return "depleted"


class EnergyService:
    """能量服务"""

    def __init__(
        self,
        cache: CacheStore,
        clock: Optional[Callable[[], datetime]] = None,
        lang: str = "en",
    ):
        self.cache = cache
        self.clock = clock or cache.clock
        self.lang = lang

    # ── 内部 ────────────────────────────────────────────────

    def _now_iso(self) -> str:
        return self.clock().isoformat()

    def _hours_since(self, iso: str) -> float:
        """整分钟数 / 60"""
        minutes = int((self.clock() - datetime.fromisoformat(iso)).total_seconds() // 60)
        return minutes / 60

    def _raw_energy(self) -> float:
        return float(self.cache.get(ENERGY_KEY, DEFAULT_ENERGY))

    def _apply_fatigue(self):
        last_update = self.cache.get(LAST_UPDATE_KEY)
        if not last_update:
            self.cache.put(LAST_UPDATE_KEY, self._now_iso(), CACHE_TTL)
            return

        hours = self._hours_since(last_update)
        if hours < FATIGUE_MIN_HOURS:
            return

        self.modify_energy(-hours * FATIGUE_RATE_PER_HOUR, "fatigue", log=False)
        self.cache.put(LAST_UPDATE_KEY, self._now_iso(), CACHE_TTL)

    def _log_change(self, delta: float, reason: str, old: float, new: float):
        log = list(self.cache.get(ENERGY_LOG_KEY, []))
        log.append({
            "time": self._now_iso(),
            "delta": round(delta, 4),
            "reason": reason,
            "from": round(old, 4),
            "to": round(new, 4),
        })
        self.cache.put(ENERGY_LOG_KEY, log[-LOG_LIMIT:], CACHE_TTL)
        logger.debug(f"⚡ 能量变化 {delta:+.4f} ({reason}) → {new:.4f}")

    # ==================== 读取 ====================

    def get_energy(self) -> float:
        self._apply_fatigue()
        return self._raw_energy()

    def get_energy_percent(self) -> int:
        return round(self.get_energy() * 100)

    def get_energy_state(self) -> dict:
        energy = self.get_energy()
        hours_awake = self.get_hours_awake()
        state = state_for(energy)
        return {
            "level": energy,
            "percent": round(energy * 100),
            "state": state,
            "hours_awake": round(hours_awake, 1),
            "needs_sleep": energy < 0.2 or hours_awake > 16,
            "description": render(f"energy.{state}", self.lang),
        }

    def get_energy_log(self, limit: int = 20) -> List[dict]:
        return list(self.cache.get(ENERGY_LOG_KEY, []))[-limit:]

    # ==================== 修改 ====================

    def modify_energy(self, delta: float, reason: str = "", log: bool = True) -> float:
        current = self._raw_energy()
        new = _clamp(current + delta)
        self.cache.put(ENERGY_KEY, new, CACHE_TTL)

        if log and abs(delta) >= 0.01:
            self._log_change(delta, reason, current, new)
        return new

    def set_energy(self, value: float, reason: str = ""):
        old = self.get_energy()
        new = _clamp(value)
        self.cache.put(ENERGY_KEY, new, CACHE_TTL)
        self.cache.put(LAST_UPDATE_KEY, self._now_iso(), CACHE_TTL)
        self._log_change(new - old, reason, old, new)

    # ── 消耗 ────────────────────────────────────────────────

    def cost_tool_execution(self, tool_name: str):
        self.modify_energy(-COST_TOOL_EXECUTION, f"tool:{tool_name}")

    def cost_thought(self, intensity: float):
        self.modify_energy(-(COST_THOUGHT_BASE + intensity * COST_THOUGHT_INTENSITY_MULTIPLIER), "thinking")

    def cost_conversation(self):
        self.modify_energy(-COST_CONVERSATION_MESSAGE, "conversation")

    # ── 收益 ────────────────────────────────────────────────

    def gain_goal_progress(self, progress_increment: int):
        self.modify_energy(progress_increment / 10 * GAIN_GOAL_PROGRESS, "goal_progress")

    def gain_goal_completed(self, goal_title: str):
        self.modify_energy(GAIN_GOAL_COMPLETED, f"goal_completed:{goal_title}")

    def gain_positive_interaction(self):
        self.modify_energy(GAIN_POSITIVE_INTERACTION, "positive_interaction")

    def gain_memory_recall(self):
        self.modify_energy(GAIN_MEMORY_RECALL, "memory_recall")

    # ==================== 睡眠 ====================

    def start_sleep(self):
        self.cache.put(SLEEP_START_KEY, self._now_iso(), CACHE_TTL)
        self.cache.forget(WAKE_TIME_KEY)
        logger.info(f"😴 开始睡眠 (能量 {self.get_energy():.2f})")

    def wake(self) -> float:
        sleep_start = self.cache.get(SLEEP_START_KEY)
        current = self._raw_energy()

        if sleep_start:
            sleep_hours = self._hours_since(sleep_start)
            recovery = min(MAX_ENERGY - current, sleep_hours * SLEEP_RECOVERY_PER_HOUR)
            # 醒来至少有一半能量
            new = max(WAKE_ENERGY_MINIMUM, current + recovery)
            self.set_energy(new, f"sleep_recovery:{sleep_hours}h")
            logger.info(f"🌅 醒来: 睡了 {sleep_hours:.2f}h, 恢复 {recovery:.4f}, 能量 {new:.4f}")
        else:
            self.set_energy(DEFAULT_ENERGY, "wake_no_sleep_record")

        self.cache.put(WAKE_TIME_KEY, self._now_iso(), CACHE_TTL)
        self.cache.forget(SLEEP_START_KEY)
        return self.get_energy()

    def get_hours_awake(self) -> float:
        wake_time = self.cache.get(WAKE_TIME_KEY)
        if not wake_time:
            return 0.0
        return self._hours_since(wake_time)

    def get_hours_asleep(self) -> float:
        sleep_start = self.cache.get(SLEEP_START_KEY)
        if not sleep_start:
            return 0.0
        return self._hours_since(sleep_start)

    def is_rested(self) -> bool:
        """睡到能量可以恢复满"""
        if not self.cache.get(SLEEP_START_KEY):
            return True
        projected = self._raw_energy() + self.get_hours_asleep() * SLEEP_RECOVERY_PER_HOUR
        return projected >= MAX_ENERGY

    def get_hours_until_depleted(self) -> float:
        current = self.get_energy()
        if current <= MIN_ENERGY:
            return 0.0
        return current / FATIGUE_RATE_PER_HOUR

    def should_sleep(self) -> bool:
        """建议性：调用方决定是否真的去睡"""
        energy = self.get_energy()
        if energy < 0.15:
            return True
        return self.get_hours_awake() > 18 and energy < 0.4

    def reset(self):
        for key in (ENERGY_KEY, LAST_UPDATE_KEY, SLEEP_START_KEY, WAKE_TIME_KEY, ENERGY_LOG_KEY):
            self.cache.forget(key)
        self.set_energy(DEFAULT_ENERGY, "reset")
