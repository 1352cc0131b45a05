"""压缩效果统计。"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

BYTES_PER_MB = 1024 * 1024


def percent_saved(original: int, kept: int) -> float:
    """(1 - kept/original) * 100，original 为 0 时返回 0。"""

    if original <= 0:
        return 0.0
    return (1 - kept / original) * 100


@dataclass(frozen=True, slots=True)
class FileSaving:
    name: Optional[str]
    original_size: int
    kept_size: int
    percent_saved: float


@dataclass(frozen=True, slots=True)
class BatchSummary:
    """批次汇总：总原始字节、总保留字节、节省百分比与逐文件明细。"""

    total_original: int
    total_kept: int
    percent_saved: float
    files: tuple[FileSaving, ...] = ()

    def describe(self) -> str:
        return (
            f"Total: {self.total_original / BYTES_PER_MB:.2f} MB -> "
            f"{self.total_kept / BYTES_PER_MB:.2f} MB ({self.percent_saved:.1f}% saved)"
        )


class MetricsAggregator:
    """线程安全的累加器，只支持追加记录；新批次需新建实例。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_original = 0
        self._total_kept = 0
        self._files: list[FileSaving] = []

    def record(self, source_size: int, result_size: int, name: Optional[str] = None) -> None:
        if source_size < 0 or result_size < 0:
            raise ValueError("字节数不能为负数")

        saving = FileSaving(
            name=name,
            original_size=source_size,
            kept_size=result_size,
            percent_saved=percent_saved(source_size, result_size),
        )
        with self._lock:
            self._total_original += source_size
            self._total_kept += result_size
            self._files.append(saving)

    def summary(self) -> BatchSummary:
        with self._lock:
            return BatchSummary(
                total_original=self._total_original,
                total_kept=self._total_kept,
                percent_saved=percent_saved(self._total_original, self._total_kept),
                files=tuple(self._files),
            )
