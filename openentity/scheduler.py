"""
夜间维护任务调度器

每天凌晨：巩固昨天的记忆 → 归档旧记忆 → 衰减。
"""
import logging
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from .container import Container

logger = logging.getLogger(__name__)


async def nightly_maintenance(container: "Container") -> dict:
    """一次完整的夜间维护；各步骤互不影响"""
    cfg = container.settings
    report = {"summary_id": None, "archived": 0, "decayed": 0}

    try:
        summary = await container.consolidation.consolidate_daily()
        report["summary_id"] = summary.id if summary else None
    except Exception as e:
        logger.error(f"❌ 每日巩固失败: {e}", exc_info=True)

    try:
        report["archived"] = await container.consolidation.archive_old_memories(cfg.archive_after_days)
    except Exception as e:
        logger.error(f"❌ 归档失败: {e}", exc_info=True)

    try:
        report["decayed"] = await container.memories.decay()
    except Exception as e:
        logger.error(f"❌ 记忆衰减失败: {e}", exc_info=True)

    logger.info(
        f"🌙 夜间维护完成: summary={report['summary_id']} "
        f"archived={report['archived']} decayed={report['decayed']}"
    )
    return report


def start_scheduler(container: "Container", scheduler: Optional[AsyncIOScheduler] = None) -> AsyncIOScheduler:
    """启动调度器；需要在事件循环内调用"""
    scheduler = scheduler or AsyncIOScheduler()
    cfg = container.settings

    if cfg.consolidation_enabled:
        scheduler.add_job(
            nightly_maintenance,
            trigger=CronTrigger(hour=cfg.consolidation_cron_hour, minute=0),
            args=[container],
            id="nightly_maintenance",
            name="夜间记忆巩固",
            replace_existing=True,
        )

    scheduler.start()
    logger.info("📅 调度器已启动，已注册任务:")
    for job in scheduler.get_jobs():
        logger.info(f"  - {job.name} ({job.id})")
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler):
    if scheduler.running:
        scheduler.shutdown(wait=False)
