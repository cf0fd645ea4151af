"""
OpenEntity - 进程入口

日志配置 + 常驻运行。
"""
import asyncio
import logging
from typing import Optional

from .config import Settings, settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(cfg: Optional[Settings] = None, to_file: bool = True):
    """配置日志；常驻进程额外写一份到 ~/.openentity/logs/entity.log"""
    cfg = cfg or settings
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if to_file:
        log_dir = cfg.home_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "entity.log", encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if cfg.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # httpx 每个请求都会打 INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def run_daemon(cfg: Optional[Settings] = None, interval: Optional[int] = None):
    """装配服务并运行思考循环直到收到停止信号"""
    from .container import create_container
    from .daemon import EntityDaemon

    cfg = cfg or settings
    logger.info("🚀 OpenEntity 启动中...")
    container = await create_container(cfg)
    logger.info("✅ 数据库初始化完成")

    daemon = EntityDaemon(container, interval=interval)
    await daemon.run()
    logger.info("👋 OpenEntity 已关闭")


def main():
    setup_logging()
    asyncio.run(run_daemon())


if __name__ == "__main__":
    main()
