"""源目录扫描与排除规则。"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from image_derivatives.core.config import JobConfig
from image_derivatives.core.exceptions import SourceDirectoryError
from image_derivatives.core.models import ImageFormat, SourceAsset

LOGGER = logging.getLogger(__name__)

# 衍生图命名约定：<base>_<tag>.<ext>
DERIVATIVE_TAGS = ("web", "thumb", "medium", "ultra")
DERIVATIVE_NAME_RE = re.compile(
    r"_(?:%s)\.(?:jpe?g|png|webp|avif)$" % "|".join(DERIVATIVE_TAGS),
    re.IGNORECASE,
)

# 衍生图输出格式，临时文件可能带这些扩展名
TEMP_OUTPUT_EXTENSIONS = (".jpg", ".png", ".webp", ".avif")


@dataclass(frozen=True, slots=True)
class ExclusionRule:
    """排除规则：固定名单、衍生图命名、临时文件前缀，每个文件只判定一次。"""

    excluded_names: frozenset[str]
    temp_prefix: str

    @classmethod
    def from_config(cls, config: JobConfig) -> "ExclusionRule":
        return cls(
            excluded_names=frozenset(name.lower() for name in config.excluded_names),
            temp_prefix=config.temp_prefix,
        )

    def reason(self, name: str) -> str | None:
        """返回排除原因；不排除时返回 None。"""

        if name.lower() in self.excluded_names:
            return "excluded"
        if name.startswith(self.temp_prefix):
            return "temporary"
        if DERIVATIVE_NAME_RE.search(name):
            return "derivative"
        return None

    def __call__(self, name: str) -> bool:
        return self.reason(name) is not None


def _iter_files(directory: Path) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name.lower())
    except OSError as exc:
        raise SourceDirectoryError(f"无法读取源目录: {directory}") from exc

    for entry in entries:
        if entry.is_file():
            yield entry


def _matches_extension(path: Path, extensions: Sequence[str]) -> bool:
    return path.suffix.lower() in {ext.lower() for ext in extensions}


def collect_source_assets(config: JobConfig) -> list[SourceAsset]:
    """扫描源目录（不递归），返回需要处理的源图片列表，按文件名排序。"""

    directory = config.source_dir
    if not directory.is_dir():
        raise SourceDirectoryError(f"源目录不存在: {directory}")

    rule = ExclusionRule.from_config(config)
    collected: list[SourceAsset] = []

    for candidate in _iter_files(directory):
        name = candidate.name
        if not _matches_extension(candidate, config.extensions):
            LOGGER.debug("忽略非图片文件: %s", name)
            continue

        reason = rule.reason(name)
        if reason:
            LOGGER.debug("排除 %s (%s)", name, reason)
            continue

        image_format = ImageFormat.from_path(candidate)
        if image_format is None:
            continue

        try:
            size = candidate.stat().st_size
        except OSError as exc:
            LOGGER.warning("无法读取文件信息 %s: %s", name, exc)
            continue

        collected.append(SourceAsset(path=candidate, size=size, image_format=image_format))

    return collected


def temp_name_pattern(prefix: str, extensions: Sequence[str]) -> re.Pattern[str]:
    """本工具写出的临时文件名：<prefix> + tempfile 的 8 位随机串 + 图片扩展名。"""

    suffixes = sorted({ext.lower() for ext in extensions} | set(TEMP_OUTPUT_EXTENSIONS))
    return re.compile(
        r"^%s[a-z0-9_]{8}(?:%s)$" % (re.escape(prefix), "|".join(re.escape(s) for s in suffixes)),
        re.IGNORECASE,
    )


def remove_stale_temp_files(directory: Path, prefix: str, extensions: Sequence[str]) -> list[Path]:
    """删除上次中断遗留的临时文件，删除失败只记录日志。

    只匹配本工具可能写出的文件名，目录中其他以 prefix 开头的文件保持不变。
    """

    removed: list[Path] = []
    if not directory.is_dir():
        return removed

    pattern = temp_name_pattern(prefix, extensions)
    for candidate in directory.glob(f"{prefix}*"):
        if not candidate.is_file() or not pattern.match(candidate.name):
            continue
        try:
            candidate.unlink()
        except OSError as exc:
            LOGGER.warning("无法删除遗留临时文件 %s: %s", candidate, exc)
            continue
        LOGGER.info("已删除遗留临时文件: %s", candidate.name)
        removed.append(candidate)
    return removed
