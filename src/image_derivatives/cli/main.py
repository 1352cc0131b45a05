"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from image_derivatives.core.config import JobConfig
from image_derivatives.core.exceptions import FilesystemError
from image_derivatives.core.models import BatchResult, ProgressUpdate
from image_derivatives.processing.pipeline import process_batch
from image_derivatives.utils.logging import setup_logging

app = typer.Typer(help="批量压缩网页图片并生成响应式衍生图。")

DEFAULT_SOURCE = Path("public/images")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("压缩图片", total=update.total)
        progress.update(task_id, completed=update.completed)

    return callback


def _run(job: JobConfig, verbose: bool) -> BatchResult:
    console = Console(stderr=True)
    setup_logging(logging.DEBUG if verbose else logging.INFO, console=console)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
    )

    try:
        with progress:
            return process_batch(job, progress_callback=_build_progress_callback(progress))
    except FilesystemError as exc:
        typer.echo(f"Error compressing images: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_result(result: BatchResult) -> None:
    typer.echo(
        f"处理完成：成功 {len(result.succeeded)} 张，未压缩 {len(result.skipped)} 张，失败 {len(result.failed)} 张。"
    )
    if result.summary is not None:
        typer.echo(result.summary.describe())


@app.command("replace")
def replace_cli(
    source: Path = typer.Argument(DEFAULT_SOURCE, help="源图片目录"),
    exclude: List[str] = typer.Option(["logo.jpeg"], "--exclude", "-x", help="不处理的文件名，可指定多个"),
    max_workers: int = typer.Option(4, "--workers", "-w", help="并发进程数量"),
    report: Optional[str] = typer.Option(None, "--report", help="CSV 报告文件名（写入源目录）"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """原地压缩：仅当结果严格变小时覆盖原文件。"""

    job = JobConfig(
        source_dir=source.expanduser().resolve(),
        mode="replace",
        excluded_names=tuple(exclude),
        max_workers=max_workers,
        report_filename=report,
    )
    _echo_result(_run(job, verbose))


@app.command("responsive")
def responsive_cli(
    source: Path = typer.Argument(DEFAULT_SOURCE, help="源图片目录"),
    output_subdir: str = typer.Option("compressed", "--output-subdir", help="衍生图输出子目录"),
    exclude: List[str] = typer.Option(["logo.jpeg"], "--exclude", "-x", help="不处理的文件名，可指定多个"),
    max_workers: int = typer.Option(4, "--workers", "-w", help="并发进程数量"),
    report: Optional[str] = typer.Option(None, "--report", help="CSV 报告文件名（写入输出目录）"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """生成 web/thumb/medium/ultra 衍生图，原图保持不变。"""

    job = JobConfig(
        source_dir=source.expanduser().resolve(),
        mode="responsive",
        output_subdir=output_subdir,
        excluded_names=tuple(exclude),
        max_workers=max_workers,
        report_filename=report,
    )
    _echo_result(_run(job, verbose))


if __name__ == "__main__":
    app()
