"""
OpenEntity CLI 入口

模块划分:
  common.py       — console、家目录、服务装配辅助
  entity_cmds.py  — 实体生命周期 (think/wake/sleep/status/energy/chat/daemon)
  memory_cmds.py  — 记忆系统 (consolidate/embed-backfill/recall/remember/import)
"""
import logging

import typer

from .common import console, VERSION
from ..config import settings


# ── Typer App ─────────────────────────────────────────────

app = typer.Typer(
    name="openentity",
    help="🫀 一个会思考、会累、会做梦的自主实体",
    invoke_without_command=True,
    no_args_is_help=False,
)


# ── 注册子命令模块 ─────────────────────────────────────────

from . import entity_cmds, memory_cmds  # noqa: E402

entity_cmds.register(app)
memory_cmds.register(app)


# ── 主入口 callback ────────────────────────────────────────

@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="显示版本"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
):
    """
    🫀 OpenEntity

      openentity wake        唤醒
      openentity think       思考一次
      openentity chat        对话
      openentity status      查看状态
      openentity daemon      前台运行心跳
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose or settings.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if version:
        console.print(f"OpenEntity v{VERSION}")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
