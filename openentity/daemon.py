"""
心跳进程

醒着：每 think_interval 秒一次思考周期，累了就去睡（睡前巩固记忆）。
睡着：等能量能恢复满再醒来。
后台嵌入队列和夜间调度器跟着进程一起启停。
"""
import asyncio
import logging
import signal
from datetime import date
from typing import TYPE_CHECKING, Optional

from .memory import PeriodType
from .scheduler import start_scheduler, stop_scheduler

if TYPE_CHECKING:
    from .container import Container

logger = logging.getLogger(__name__)


class EntityDaemon:
    """实体心跳"""

    def __init__(self, container: "Container", interval: Optional[int] = None):
        self.container = container
        self.interval = interval or container.settings.think_interval
        self.alive = False
        self._stop_event: Optional[asyncio.Event] = None
        self._scheduler = None

    async def run(self):
        self.alive = True
        self._stop_event = asyncio.Event()
        entity = self.container.entity

        logger.info(f"🫀 心跳启动: 思考间隔 {self.interval}s, LLM {self.container.llm.get_model_name()}")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)

        self.container.semantic.queue.start()
        self._scheduler = start_scheduler(self.container)

        if not entity.is_awake():
            await entity.wake()

        try:
            while self.alive:
                await self.tick()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self._shutdown()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    def stop(self):
        self.alive = False
        if self._stop_event:
            self._stop_event.set()

    async def tick(self) -> Optional[str]:
        """一次心跳；返回本次做了什么"""
        entity = self.container.entity
        energy = self.container.energy

        try:
            if entity.is_awake():
                if energy.should_sleep():
                    await self.go_to_sleep()
                    return "sleep"
                thought = await entity.think()
                return "think" if thought else "idle"

            if energy.is_rested():
                await entity.wake()
                return "wake"
            return "sleeping"
        except Exception as e:
            logger.error(f"❌ 心跳错误: {e}", exc_info=True)
            return None

    async def go_to_sleep(self):
        """入睡，然后趁睡着巩固今天的记忆"""
        await self.container.entity.sleep()
        if not self.container.settings.consolidation_enabled:
            return
        try:
            today = date.today()
            summary = await self.container.consolidation.consolidate_period(today, today, PeriodType.DAILY)
            if summary:
                logger.info(f"🌙 睡眠巩固完成: summary #{summary.id}")
        except Exception as e:
            logger.error(f"❌ 睡眠巩固失败: {e}", exc_info=True)

    async def _shutdown(self):
        logger.info("🛑 心跳停止中...")
        self.alive = False
        if self._scheduler:
            stop_scheduler(self._scheduler)
            self._scheduler = None
        await self.container.semantic.queue.drain()
        await self.container.semantic.queue.stop()
        logger.info("👋 实体已停止心跳")
