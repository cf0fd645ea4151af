"""
OpenEntity CLI — 公共常量与工具函数
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

from rich.console import Console

from .. import __version__
from ..config import settings

# ── 全局单例 ──────────────────────────────────────────────
console = Console()

VERSION = __version__

ENTITY_HOME = settings.home_dir

T = TypeVar("T")


# ── 路径辅助 ──────────────────────────────────────────────

def ensure_entity_home():
    """确保家目录存在"""
    ENTITY_HOME.mkdir(parents=True, exist_ok=True)
    (ENTITY_HOME / "logs").mkdir(exist_ok=True)
    (ENTITY_HOME / "memory").mkdir(exist_ok=True)
    settings.personality_path.parent.mkdir(parents=True, exist_ok=True)


# ── 运行辅助 ──────────────────────────────────────────────

def run_with_container(fn: Callable[..., Awaitable[T]]) -> T:
    """装配服务后在新事件循环里执行 fn(container)"""
    from ..container import create_container

    ensure_entity_home()

    async def runner():
        container = await create_container(settings, archive_dir=ENTITY_HOME / "memory")
        return await fn(container)

    return asyncio.run(runner())


def format_energy_bar(percent: int, width: int = 20) -> str:
    filled = round(width * percent / 100)
    color = "green" if percent >= 50 else "yellow" if percent >= 30 else "red"
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}] {percent}%"


def importance_stars(importance: float) -> str:
    return "⭐" * max(1, round(importance * 5))
