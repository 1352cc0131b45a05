"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from image_derivatives.core.metrics import percent_saved
from image_derivatives.core.models import FileOutcome

HEADER = ["source_path", "status", "original_size", "output_size", "percent_saved", "output_path", "message"]


def write_csv_report(outcomes: Iterable[FileOutcome], output_dir: Path, filename: str) -> Path:
    """将处理结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    str(record.source_path),
                    record.status,
                    record.original_size,
                    _format_size(record.output_size),
                    _format_percent(record),
                    str(record.output_path) if record.output_path else "",
                    record.message or "",
                ]
            )
    return report_path


def _format_size(value: int | None) -> str:
    if value is None:
        return ""
    return str(value)


def _format_percent(record: FileOutcome) -> str:
    if record.output_size is None:
        return ""
    return f"{percent_saved(record.original_size, record.output_size):.1f}"
