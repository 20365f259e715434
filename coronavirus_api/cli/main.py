"""
CoronaVirus API CLI - 命令行接口

提供命令行工具来运行后台服务、手动刷新/清理以及查询归档数据
"""

import asyncio
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from coronavirus_api.core import AppSettings, ConfigurationError, load_config, utc_now
from coronavirus_api.domain import DateRange, Granularity

app = typer.Typer(
    name="coronavirus-api",
    help="CoronaVirus API - COVID-19 开放数据刷新与缓存服务",
    add_completion=False,
)
console = Console()


def _load_settings() -> AppSettings:
    """加载配置，配置错误直接退出"""
    try:
        return load_config()
    except ConfigurationError as e:
        console.print(f"[bold red]✗ 配置错误: {e}[/bold red]")
        raise typer.Exit(1)


def _date_range(start: Optional[datetime], end: Optional[datetime]) -> Optional[DateRange]:
    if start is None and end is None:
        return None
    try:
        return DateRange(
            start=start.date() if start else None,
            end=end.date() if end else None,
        )
    except ValueError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(2)


def _open_runtime(settings: AppSettings, dry_run: bool = False):
    from coronavirus_api.archive import InMemoryArchiveStore
    from coronavirus_api.runtime import Runtime

    return Runtime(settings, store=InMemoryArchiveStore() if dry_run else None)


async def _load_archived(runtime) -> None:
    """从归档加载最新快照到缓存"""
    await runtime.prepare_storage()
    if not await runtime.warm_start():
        console.print("[yellow]⚠️  归档中没有可用快照，请先运行 refresh[/yellow]")


@app.command()
def version():
    """显示版本信息"""
    from coronavirus_api import __version__
    console.print(f"[bold cyan]CoronaVirusApi[/bold cyan] [green]v{__version__}[/green]")


@app.command()
def config():
    """显示当前配置"""
    cfg = _load_settings()

    table = Table(title="CoronaVirusApi 配置", show_header=True, header_style="bold magenta")
    table.add_column("配置项", style="cyan", width=30)
    table.add_column("值", style="white")

    table.add_row("应用名称", cfg.app_name)
    table.add_row("版本", cfg.version)
    table.add_row("环境", cfg.app_env)
    table.add_row("日志级别", cfg.log_level)
    table.add_row("", "")
    table.add_row("数据源", cfg.source.url)
    table.add_row("API Key", "✓ 已配置" if cfg.source.api_key else "✗ 未配置")
    table.add_row("", "")
    table.add_row("刷新周期", str(cfg.refresh.interval))
    table.add_row("退避", f"{cfg.refresh.backoff_base} ~ {cfg.refresh.backoff_max} (±{cfg.refresh.backoff_jitter:.0%})")
    table.add_row("预热", "✓" if cfg.refresh.warm_start else "✗")
    table.add_row("", "")
    table.add_row("归档", f"{cfg.archive.backend}" if cfg.archive.enabled else "✗ 已禁用")
    if cfg.archive.backend == "filesystem":
        table.add_row("归档目录", str(cfg.archive.directory))
    elif cfg.archive.backend == "database":
        url = cfg.archive.database_url
        table.add_row("数据库", url.split("@")[1] if "@" in url else url)
    table.add_row("清理周期", str(cfg.retention.interval))
    table.add_row("保留期限", str(cfg.retention.horizon))

    console.print(table)


@app.command()
def run():
    """启动刷新和清理两个后台服务，直到收到 Ctrl+C / SIGTERM"""
    cfg = _load_settings()
    runtime = _open_runtime(cfg)

    console.print(f"[bold blue]🚀 Starting {cfg.app_name} (refresh every {cfg.refresh.interval})...[/bold blue]")
    asyncio.run(runtime.serve())
    console.print("[bold green]✓ Stopped[/bold green]")


@app.command()
def refresh(
    dry_run: bool = typer.Option(False, "--dry-run", help="不写入持久化归档"),
):
    """执行一次刷新周期"""
    cfg = _load_settings()
    runtime = _open_runtime(cfg, dry_run=dry_run)

    async def _refresh():
        try:
            await runtime.initialize()
            return await runtime.refresh_scheduler.run_cycle()
        finally:
            await runtime.stop()

    try:
        result = asyncio.run(_refresh())
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Refresh interrupted by user[/yellow]")
        raise typer.Exit(130)

    status = runtime.query.get_status()
    console.print(f"[bold green]✓ Generation {result.generation}[/bold green] after {result.attempts} attempt(s)")
    console.print(f"  Countries: [cyan]{status.get('countries', 0)}[/cyan]")
    console.print(f"  Records: [cyan]{status.get('records', 0)}[/cyan]")
    if result.archive_entry:
        console.print(f"  Archived: [cyan]{result.archive_entry.key}[/cyan] ({result.archive_entry.size_bytes} bytes)")
    if result.durability_degraded:
        console.print("[yellow]⚠️  Archive write failed, snapshot is not durable[/yellow]")


@app.command()
def cleanup():
    """执行一次归档保留清理"""
    cfg = _load_settings()
    runtime = _open_runtime(cfg)

    async def _cleanup():
        try:
            await runtime.prepare_storage()
            return await runtime.retention_scheduler.run_cycle()
        finally:
            await runtime.stop()

    report = asyncio.run(_cleanup())

    table = Table(title=f"Retention (horizon {cfg.retention.horizon})", show_header=True, header_style="bold magenta")
    table.add_column("Result", style="cyan")
    table.add_column("Count", justify="right")
    for name, count in report.to_dict().items():
        table.add_row(name, str(count))
    console.print(table)

    for key in report.failed:
        console.print(f"[red]✗ {key}[/red]")
    if report.failed:
        raise typer.Exit(1)


@app.command("archive-list")
def archive_list():
    """列出归档条目"""
    cfg = _load_settings()
    runtime = _open_runtime(cfg)

    async def _list():
        try:
            await runtime.prepare_storage()
            return await runtime.archive_writer.list_entries()
        finally:
            await runtime.stop()

    entries = asyncio.run(_list())
    now = utc_now()

    table = Table(title="Snapshot archive", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Generation", justify="right")
    table.add_column("Fetched at")
    table.add_column("Age", justify="right")
    for entry in entries:
        age = now - entry.fetched_at
        expired = age > cfg.retention.horizon
        table.add_row(
            str(entry),
            str(entry.generation),
            entry.fetched_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[red]{age.days}d[/red]" if expired else f"{age.days}d",
        )
    console.print(table)
    console.print(f"[dim]{len(entries)} entries[/dim]")


@app.command()
def countries():
    """列出最新归档快照中的国家/地区"""
    cfg = _load_settings()
    runtime = _open_runtime(cfg)

    async def _query():
        try:
            await _load_archived(runtime)
            return runtime.query.get_countries()
        finally:
            await runtime.stop()

    result = asyncio.run(_query())
    if not result.is_ready:
        raise typer.Exit(1)

    table = Table(title=f"Countries (generation {result.generation})", show_header=True, header_style="bold magenta")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Lat", justify="right")
    table.add_column("Long", justify="right")
    for country in result:
        table.add_row(
            country.code,
            country.display_name,
            "" if country.latitude is None else f"{country.latitude:.4f}",
            "" if country.longitude is None else f"{country.longitude:.4f}",
        )
    console.print(table)


@app.command()
def records(
    code: str = typer.Argument(..., help="国家代码"),
    start: Optional[datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="开始日期"),
    end: Optional[datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="结束日期"),
):
    """查询某国家/地区的逐日记录"""
    cfg = _load_settings()
    date_range = _date_range(start, end)
    runtime = _open_runtime(cfg)

    async def _query():
        try:
            await _load_archived(runtime)
            return runtime.query.get_records(code, date_range)
        finally:
            await runtime.stop()

    result = asyncio.run(_query())
    if not result.is_ready:
        raise typer.Exit(1)
    if not result.items:
        console.print(f"[yellow]No records for {code.upper()}[/yellow]")
        return

    table = Table(title=f"{code.upper()} (generation {result.generation})", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="cyan")
    table.add_column("Confirmed", justify="right")
    table.add_column("Recovered", justify="right")
    table.add_column("Deceased", justify="right")
    for record in result:
        table.add_row(record.date.isoformat(), f"{record.confirmed:,}", f"{record.recovered:,}", f"{record.deceased:,}")
    console.print(table)


@app.command()
def buckets(
    scope: str = typer.Argument("global", help="国家代码或 global"),
    granularity: Granularity = typer.Option(Granularity.MONTH, help="聚合粒度"),
    start: Optional[datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="开始日期"),
    end: Optional[datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="结束日期"),
):
    """查询聚合桶"""
    cfg = _load_settings()
    date_range = _date_range(start, end)
    runtime = _open_runtime(cfg)

    async def _query():
        try:
            await _load_archived(runtime)
            return runtime.query.get_buckets(scope, granularity, date_range)
        finally:
            await runtime.stop()

    result = asyncio.run(_query())
    if not result.is_ready:
        raise typer.Exit(1)

    table = Table(
        title=f"{scope} by {granularity.value} (generation {result.generation})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Period", style="cyan")
    table.add_column("Confirmed", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Recovered", justify="right")
    table.add_column("Deceased", justify="right")
    table.add_column("New", justify="right")
    for bucket in result:
        table.add_row(
            f"{bucket.start} ~ {bucket.end}",
            f"{bucket.confirmed:,}",
            f"{bucket.new_confirmed:+,}",
            f"{bucket.recovered:,}",
            f"{bucket.deceased:,}",
            f"{bucket.new_deceased:+,}",
        )
    console.print(table)


if __name__ == "__main__":
    app()
