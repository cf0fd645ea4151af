"""
OpenEntity CLI — 记忆相关命令 (consolidate/embed-backfill/recall/remember/import)
"""
import json
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from ..memory import MemoryType, PeriodType
from .common import console, importance_stars, run_with_container


# ── 内部实现 ──────────────────────────────────────────────

def _period_bounds(day: date, period: PeriodType) -> tuple[date, date]:
    """day 所在的日 / 周（周一开始）/ 月"""
    if period == PeriodType.WEEKLY:
        start = day - timedelta(days=day.weekday())
        return start, start + timedelta(days=6)
    if period == PeriodType.MONTHLY:
        start = day.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return start, next_month - timedelta(days=1)
    return day, day


async def _show_consolidation_stats(container):
    stats = await container.consolidation.get_stats()
    table = Table(box=None, padding=(0, 2), show_header=False)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("记忆总数", str(stats["total_memories"]))
    table.add_row("已巩固", str(stats["consolidated"]))
    table.add_row("待巩固", str(stats["pending"]))
    for period, count in stats["summaries"].items():
        table.add_row(f"{period} 摘要", str(count))
    table.add_row("最近巩固", stats["last_consolidation"] or "-")
    console.print(Panel(table, title="🌙 记忆巩固", border_style="magenta"))

    summaries = await container.consolidation.get_recent_summaries(3)
    for s in summaries:
        console.print(f"\n[bold]{s.period_description}[/bold] [dim]({s.source_memory_count} 条)[/dim]")
        console.print(f"  {s.summary[:200]}")
        if s.themes:
            console.print("  " + " ".join(f"[cyan]#{t}[/cyan]" for t in s.themes[:5]))


async def _do_consolidate(container, day: Optional[date], period: PeriodType, archive: bool, stats: bool):
    if stats:
        await _show_consolidation_stats(container)
        return

    day = day or date.today() - timedelta(days=1)
    start, end = _period_bounds(day, period)
    console.print(f"\n[bold magenta]🌙 巩固 {period.value}: {start} ~ {end}[/bold magenta]")

    summary = await container.consolidation.consolidate_period(start, end, period)
    if summary:
        console.print(Panel(
            f"{summary.summary}\n\n"
            f"[dim]主题: {', '.join(summary.themes) or '-'}[/dim]\n"
            f"[dim]洞察: {summary.key_insights or '-'}[/dim]",
            title=f"📝 {summary.period_description} · {summary.source_memory_count} 条记忆",
            border_style="magenta",
        ))
    else:
        console.print("[dim]这段时间没有需要巩固的记忆[/dim]")

    if archive:
        archived = await container.consolidation.archive_old_memories(container.settings.archive_after_days)
        console.print(f"[green]📦 已归档 {archived} 条旧记忆[/green]")


async def _do_backfill(container, batch_size: int, stats_only: bool):
    semantic = container.semantic
    if not stats_only:
        if not await container.embeddings.is_available():
            console.print("[yellow]⚠️ 嵌入后端不可用，将使用备用后端[/yellow]")
        console.print("[bold]🧬 正在补全向量...[/bold]")
        processed = await semantic.backfill_embeddings(batch_size)
        console.print(f"[green]✅ 已处理 {processed} 条记忆[/green]")

    stats = await semantic.get_stats()
    console.print(
        f"\n嵌入覆盖率: [bold]{stats['coverage_percent']}%[/bold] "
        f"({stats['embedded']}/{stats['total_memories']}, 待处理 {stats['pending']})"
    )
    console.print(f"[dim]模型 {stats['embedding_model']} · {stats['embedding_dimensions']} 维[/dim]")


async def _do_recall(container, query: str, limit: int):
    console.print(f"\n[bold]🔍 搜索: [cyan]{query}[/cyan][/bold]\n")
    results = await container.semantic.search(query, limit=limit)
    semantic_hit = any(m.similarity is not None for m in results)

    if not results:
        console.print("[yellow]未找到相关记忆[/yellow]")
        console.print("[dim]试试其他关键词？[/dim]")
        return

    table = Table(box=None, padding=(0, 1))
    table.add_column("日期", style="dim")
    table.add_column("类型", style="cyan")
    table.add_column("相似度" if semantic_hit else "重要性")
    table.add_column("内容")
    for m in results:
        score = f"{m.similarity:.2f}" if m.similarity is not None else importance_stars(m.importance)
        text = m.display_text
        table.add_row(
            m.created_at.strftime("%m-%d"),
            m.type,
            score,
            text[:80] + "..." if len(text) > 80 else text,
        )
    console.print(table)
    console.print(f"\n[dim]共 {len(results)} 条{'语义' if semantic_hit else '关键词'}匹配[/dim]")


async def _do_remember(container, content: str, memory_type: str, importance: float):
    memory = await container.layers.route_to_layer(
        {"type": memory_type, "content": content, "importance": importance},
        sync=True,
    )
    console.print(
        f"[green]💾 已记住 #{memory.id}[/green] "
        f"[dim]({memory.type} → {memory.layer.value}, {importance_stars(memory.importance)})[/dim]"
    )


async def _do_import(container, file: Path):
    with open(file, "r", encoding="utf-8") as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        console.print("[red]文件必须是记忆对象组成的 JSON 列表[/red]")
        raise typer.Exit(1)

    imported = skipped = 0
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("content"):
            skipped += 1
            continue
        data = dict(entry)
        if isinstance(data.get("created_at"), str):
            data["created_at"] = datetime.fromisoformat(data["created_at"])
        await container.layers.route_to_layer(data)
        imported += 1

    embedded = await container.semantic.queue.drain()
    console.print(f"[green]📥 导入 {imported} 条记忆，已嵌入 {embedded} 条[/green]")
    if skipped:
        console.print(f"[yellow]跳过 {skipped} 条无效记录[/yellow]")


# ── 命令注册 ──────────────────────────────────────────────

def register(app: typer.Typer):
    """注册记忆相关子命令"""

    @app.command()
    def consolidate(
        day: Optional[datetime] = typer.Option(None, "--date", formats=["%Y-%m-%d"], help="日期（默认昨天）"),
        period: PeriodType = typer.Option(PeriodType.DAILY, "--period", "-p", help="daily / weekly / monthly"),
        archive: bool = typer.Option(False, "--archive", help="同时归档旧记忆"),
        stats: bool = typer.Option(False, "--stats", help="只看统计"),
    ):
        """🌙 巩固一段时间的记忆"""
        run_with_container(lambda c: _do_consolidate(c, day.date() if day else None, period, archive, stats))

    @app.command("embed-backfill")
    def embed_backfill(
        batch_size: int = typer.Option(100, "--batch-size", "-b", help="每批数量"),
        stats: bool = typer.Option(False, "--stats", help="只看覆盖率"),
    ):
        """🧬 为缺少向量的记忆补全嵌入"""
        run_with_container(lambda c: _do_backfill(c, batch_size, stats))

    @app.command()
    def recall(
        query: str = typer.Argument(..., help="搜索内容"),
        limit: int = typer.Option(10, "-n", "--limit", help="结果数量"),
    ):
        """🧠 语义搜索记忆"""
        run_with_container(lambda c: _do_recall(c, query, limit))

    @app.command()
    def remember(
        content: str = typer.Argument(..., help="要记住的内容"),
        memory_type: MemoryType = typer.Option(MemoryType.EXPERIENCE, "--type", "-t", help="记忆类型"),
        importance: float = typer.Option(0.5, "--importance", "-i", min=0.0, max=1.0, help="重要性 (0-1)"),
    ):
        """💾 写入一条记忆"""
        run_with_container(lambda c: _do_remember(c, content, memory_type.value, importance))

    @app.command("import")
    def import_memories(
        file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON 文件（记忆列表）"),
    ):
        """📥 从 JSON 文件批量导入记忆"""
        run_with_container(lambda c: _do_import(c, file))
