"""
OpenEntity CLI — 实体生命周期命令 (think/wake/sleep/status/energy/chat/daemon)
"""
import asyncio
import uuid
from datetime import date
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from ..memory import PeriodType, Thought
from .common import console, format_energy_bar, run_with_container

THOUGHT_STYLES = {
    "observation": ("👀", "cyan"),
    "reflection": ("🪞", "magenta"),
    "curiosity": ("❓", "yellow"),
    "emotion": ("💗", "red"),
    "decision": ("🎯", "green"),
}


# ── 内部实现 ──────────────────────────────────────────────

def _print_thought(thought: Thought):
    icon, color = THOUGHT_STYLES.get(thought.type.value, ("💭", "white"))
    body = f"{thought.content}\n\n[dim]强度 {thought.intensity:.2f}"
    if thought.led_to_action:
        body += f" · 行动: {thought.action_taken}"
    body += "[/dim]"
    console.print(Panel(
        body,
        title=f"{icon} {thought.type.value} #{thought.id}",
        border_style=color,
    ))


async def _do_think(container, continuous: bool, interval: int):
    entity = container.entity
    if not entity.is_awake():
        console.print("[yellow]😴 实体在睡觉，先运行 openentity wake[/yellow]")
        return

    while True:
        console.print("\n[bold cyan]💭 正在思考...[/bold cyan]")
        thought = await entity.think()
        if thought:
            _print_thought(thought)
        else:
            console.print("[dim]💤 这一轮没有产生想法[/dim]")

        if not continuous:
            return
        await asyncio.sleep(interval)


async def _do_sleep(container, consolidate: bool, archive: bool):
    thought = await container.entity.sleep()
    console.print(f"[bold]😴 {thought.content}[/bold]")

    if consolidate:
        today = date.today()
        summary = await container.consolidation.consolidate_period(today, today, PeriodType.DAILY)
        if summary:
            console.print(f"[green]🌙 已巩固 {summary.source_memory_count} 条记忆 → summary #{summary.id}[/green]")
        else:
            console.print("[dim]今天没有需要巩固的记忆[/dim]")

    if archive:
        archived = await container.consolidation.archive_old_memories(container.settings.archive_after_days)
        console.print(f"[green]📦 已归档 {archived} 条旧记忆[/green]")


async def _do_status(container):
    entity = container.entity
    status = entity.get_status()
    uptime = entity.get_uptime()
    state = container.energy.get_energy_state()

    table = Table(box=None, padding=(0, 2), show_header=False)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("名字", container.personality.get_name())
    table.add_row("状态", "🟢 醒着" if status == "awake" else "😴 睡着")
    if uptime is not None:
        table.add_row("已醒来", f"{uptime // 3600}h {uptime % 3600 // 60}m")
    table.add_row("最后思考", entity.get_last_thought_at() or "-")
    table.add_row("能量", format_energy_bar(state["percent"]))
    table.add_row("能量状态", f"{state['state']} · {state['description']}")
    table.add_row("记忆", str(await container.memories.count()))
    table.add_row("已嵌入", str(await container.memories.count(embedded=True)))
    table.add_row("工作记忆", str(len(container.working.get_items())))
    table.add_row("LLM", container.llm.get_model_name())
    table.add_row("嵌入模型", container.embeddings.get_model_name())
    console.print(Panel(table, title="🫀 实体状态", border_style="cyan"))

    thoughts = await entity.get_recent_thoughts(5)
    if thoughts:
        console.print("\n[bold]最近的想法:[/bold]")
        for t in thoughts:
            icon, _ = THOUGHT_STYLES.get(t.type.value, ("💭", "white"))
            console.print(f"  {icon} [dim]{t.created_at:%m-%d %H:%M}[/dim] {t.content[:80]}")


async def _do_energy(container, value: Optional[float], reset: bool, show_log: bool):
    energy = container.energy
    if reset:
        energy.reset()
        console.print("[green]⚡ 能量已重置[/green]")
    elif value is not None:
        energy.set_energy(value, "manual")
        console.print(f"[green]⚡ 能量已设置为 {value:.2f}[/green]")

    state = energy.get_energy_state()
    console.print(f"\n⚡ {format_energy_bar(state['percent'])}  [bold]{state['state']}[/bold]")
    console.print(f"[dim]{state['description']}[/dim]")
    console.print(
        f"[dim]醒了 {state['hours_awake']}h · "
        f"约 {energy.get_hours_until_depleted():.1f}h 后耗尽 · "
        f"{'需要睡觉' if state['needs_sleep'] else '精神尚可'}[/dim]"
    )

    if show_log:
        table = Table(box=None, padding=(0, 1))
        table.add_column("时间", style="dim")
        table.add_column("变化")
        table.add_column("原因", style="cyan")
        table.add_column("结果")
        for entry in energy.get_energy_log(20):
            color = "green" if entry["delta"] >= 0 else "red"
            table.add_row(
                entry["time"][:19],
                f"[{color}]{entry['delta']:+.4f}[/{color}]",
                entry["reason"],
                f"{entry['to']:.4f}",
            )
        console.print(table)


async def _do_chat(container, participant: str, channel: str, message: Optional[str]):
    entity = container.entity
    conversation_id = f"cli-{uuid.uuid4().hex[:8]}"
    name = container.personality.get_name()

    async def send(text: str):
        reply = await entity.chat(conversation_id, participant, text, channel)
        console.print(f"[bold cyan]{name}[/bold cyan]: {reply['message']}")
        if reply["metadata"].get("error"):
            console.print(f"[dim red]{reply['metadata']['error']}[/dim red]")

    if message:
        await send(message)
        return

    console.print(f"[dim]和 {name} 聊天，输入 exit 退出[/dim]\n")
    while True:
        text = await asyncio.to_thread(console.input, f"[bold]{participant}[/bold] > ")
        text = text.strip()
        if not text:
            continue
        if text.lower() in ("exit", "quit", "/exit", "/quit"):
            break
        await send(text)
    container.working.clear_conversation_context(conversation_id)


# ── 命令注册 ──────────────────────────────────────────────

def register(app: typer.Typer):
    """注册实体生命周期子命令"""

    @app.command()
    def think(
        continuous: bool = typer.Option(False, "--continuous", "-c", help="持续思考直到 Ctrl+C"),
        interval: int = typer.Option(30, "--interval", "-i", help="持续模式下的间隔（秒）"),
    ):
        """💭 触发一次思考周期"""
        try:
            run_with_container(lambda c: _do_think(c, continuous, interval))
        except KeyboardInterrupt:
            console.print("\n[dim]停止思考[/dim]")

    @app.command()
    def wake():
        """🌅 唤醒实体"""
        async def _wake(container):
            thought = await container.entity.wake()
            console.print(f"[bold green]🌅 {thought.content}[/bold green]")
            console.print(f"⚡ {format_energy_bar(container.energy.get_energy_percent())}")

        run_with_container(_wake)

    @app.command()
    def sleep(
        no_consolidate: bool = typer.Option(False, "--no-consolidate", help="睡前不巩固记忆"),
        archive: bool = typer.Option(False, "--archive", help="顺便归档旧记忆"),
    ):
        """😴 让实体入睡"""
        run_with_container(lambda c: _do_sleep(c, not no_consolidate, archive))

    @app.command()
    def status():
        """🫀 查看实体状态"""
        run_with_container(_do_status)

    @app.command()
    def energy(
        set_value: Optional[float] = typer.Option(None, "--set", help="设置能量 (0-1)"),
        reset: bool = typer.Option(False, "--reset", help="重置能量"),
        log: bool = typer.Option(False, "--log", help="显示能量变化记录"),
    ):
        """⚡ 查看或调整能量"""
        if set_value is not None and not 0.0 <= set_value <= 1.0:
            console.print("[red]能量必须在 0 到 1 之间[/red]")
            raise typer.Exit(1)
        run_with_container(lambda c: _do_energy(c, set_value, reset, log))

    @app.command()
    def chat(
        message: Optional[str] = typer.Argument(None, help="单条消息（不进入对话循环）"),
        participant: str = typer.Option("user", "--as", help="对话者名字"),
        channel: str = typer.Option("cli", "--channel", help="渠道"),
    ):
        """💬 和实体对话"""
        try:
            run_with_container(lambda c: _do_chat(c, participant, channel, message))
        except (KeyboardInterrupt, EOFError):
            console.print("\n[dim]再见 👋[/dim]")

    @app.command()
    def daemon(
        interval: Optional[int] = typer.Option(None, "--interval", "-i", help="思考间隔（秒）"),
    ):
        """🫀 前台运行心跳进程"""
        from ..main import run_daemon, setup_logging

        setup_logging()
        asyncio.run(run_daemon(interval=interval))
