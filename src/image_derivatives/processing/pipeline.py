"""批处理驱动：扫描、规划、并发编码、体积比较与汇总。"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Union

from image_derivatives.core.config import JobConfig
from image_derivatives.core.exceptions import FilesystemError
from image_derivatives.core.metrics import MetricsAggregator
from image_derivatives.core.models import BatchResult, FileOutcome, ProgressUpdate, SourceAsset
from image_derivatives.core.profiles import BEST, DEFAULT_REGISTRY, ProfileRegistry
from image_derivatives.core.report import write_csv_report
from image_derivatives.core.scanner import collect_source_assets, remove_stale_temp_files
from image_derivatives.processing.planner import plan
from image_derivatives.processing.worker import (
    ReplaceTask,
    ResponsiveTask,
    run_replace_task,
    run_responsive_task,
)

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]
Task = Union[ReplaceTask, ResponsiveTask]

SUCCESS_STATUSES = {"committed", "processed", "partial"}
SKIPPED_STATUSES = {"discarded"}


def process_batch(
    config: JobConfig,
    registry: ProfileRegistry = DEFAULT_REGISTRY,
    progress_callback: ProgressCallback = None,
) -> BatchResult:
    """批量处理入口。源目录不存在时抛出 SourceDirectoryError，其余错误按文件隔离。"""

    LOGGER.info("开始扫描源目录 %s", config.source_dir)
    sources = collect_source_assets(config)
    total = len(sources)
    LOGGER.info("Found %d images to compress", total)

    remove_stale_temp_files(config.source_dir, config.temp_prefix, config.extensions)
    if config.mode == "responsive":
        _prepare_output_dir(config.output_dir)
        remove_stale_temp_files(config.output_dir, config.temp_prefix, config.extensions)

    outcomes: list[FileOutcome] = []
    tasks: list[Task] = []

    if config.mode == "replace":
        profile = registry.get(BEST)
        for source in sources:
            if not profile.supports(source.image_format):
                outcomes.append(_failure(source, "error-encode", f"{BEST} 配置不支持 {source.image_format.value}"))
                continue
            tasks.append(ReplaceTask(source=source, profile=profile, temp_prefix=config.temp_prefix))
    else:
        claimed: set[Path] = set()
        for source in sources:
            specs = plan(source, registry, config.output_dir)
            conflicts = [spec.output_path.name for spec in specs if spec.output_path in claimed]
            if conflicts:
                outcomes.append(_failure(source, "error-conflict", "衍生图文件名冲突: " + ", ".join(conflicts)))
                continue
            claimed.update(spec.output_path for spec in specs)
            tasks.append(ResponsiveTask(source=source, specs=specs, temp_prefix=config.temp_prefix))

    completed = len(outcomes)
    _emit_progress(progress_callback, completed, total, "开始执行处理任务")

    if config.max_workers <= 1 or len(tasks) <= 1:
        for task in tasks:
            try:
                outcome = _run(task)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("任务执行异常：%s", exc)
                outcome = _failure(task.source, "error-worker", str(exc))
            outcomes.append(outcome)
            completed += 1
            _emit_progress(progress_callback, completed, total, f"完成 {task.source.name}")
    else:
        with ProcessPoolExecutor(max_workers=config.max_workers) as executor:
            future_map = {executor.submit(_run, task): task for task in tasks}
            for future in as_completed(future_map):
                task = future_map[future]
                try:
                    outcome = future.result()
                except Exception as exc:  # noqa: BLE001
                    LOGGER.exception("任务执行异常：%s", exc)
                    outcome = _failure(task.source, "error-worker", str(exc))
                outcomes.append(outcome)
                completed += 1
                _emit_progress(progress_callback, completed, total, f"完成 {task.source.name}")

    result = _aggregate(outcomes)
    assert result.summary is not None
    LOGGER.info(result.summary.describe())

    if config.report_filename:
        report_dir = config.output_dir if config.mode == "responsive" else config.source_dir
        _write_report(result, report_dir, config.report_filename)

    _emit_progress(progress_callback, total, total, "处理完成", status="done")
    return result


def _run(task: Task) -> FileOutcome:
    if isinstance(task, ReplaceTask):
        return run_replace_task(task)
    return run_responsive_task(task)


def _prepare_output_dir(output_dir: Path) -> None:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"无法创建输出目录: {output_dir}") from exc


def _failure(source: SourceAsset, status: str, message: str) -> FileOutcome:
    return FileOutcome(source_path=source.path, status=status, original_size=source.size, message=message)


def _aggregate(outcomes: list[FileOutcome]) -> BatchResult:
    """按文件名顺序记录日志与统计，保证输出顺序与完成顺序无关。"""

    metrics = MetricsAggregator()
    succeeded: list[FileOutcome] = []
    skipped: list[FileOutcome] = []
    failed: list[FileOutcome] = []

    for outcome in sorted(outcomes, key=lambda x: str(x.source_path).lower()):
        name = outcome.source_path.name
        _log_outcome(outcome)

        if outcome.status == "discarded":
            metrics.record(outcome.original_size, outcome.original_size, name)
        elif outcome.status in SUCCESS_STATUSES and outcome.output_size is not None:
            metrics.record(outcome.original_size, outcome.output_size, name)

        if outcome.status in SUCCESS_STATUSES:
            succeeded.append(outcome)
        elif outcome.status in SKIPPED_STATUSES:
            skipped.append(outcome)
        else:
            failed.append(outcome)

    return BatchResult(succeeded=succeeded, skipped=skipped, failed=failed, summary=metrics.summary())


def format_ratio(original: int, compressed: int) -> str:
    if original <= 0:
        return "0%"
    return f"{round(compressed / original * 100)}%"


def _log_outcome(outcome: FileOutcome) -> None:
    name = outcome.source_path.name

    if outcome.status == "discarded":
        LOGGER.info("%s: No compression needed (%d bytes)", name, outcome.original_size)
        return

    if outcome.status in SUCCESS_STATUSES:
        if outcome.output_size is not None:
            LOGGER.info(
                "%s: %d bytes -> %d bytes (%s)",
                name,
                outcome.original_size,
                outcome.output_size,
                format_ratio(outcome.original_size, outcome.output_size),
            )
        for derivative in outcome.derivatives:
            if derivative.ok:
                LOGGER.debug("  %s: %d bytes", derivative.output_path.name, derivative.size)
            else:
                LOGGER.warning("  %s 失败: %s", derivative.output_path.name, derivative.error)
        return

    LOGGER.error("Error processing %s: %s", name, outcome.message)


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    status: str = "running",
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, message=message, status=status))


def _write_report(result: BatchResult, output_dir: Path, filename: str) -> None:
    try:
        write_csv_report(result.all_outcomes(), output_dir, filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)

