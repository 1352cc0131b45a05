"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from image_derivatives.core.config import EncodingProfile
    from image_derivatives.core.metrics import BatchSummary


class ImageFormat(str, Enum):
    """支持的输出格式。"""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    AVIF = "avif"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @classmethod
    def from_path(cls, path: Path) -> Optional["ImageFormat"]:
        """根据扩展名推断格式，无法识别时返回 None。"""

        return _SUFFIX_LOOKUP.get(path.suffix.lower())


_EXTENSIONS = {
    ImageFormat.JPEG: ".jpg",
    ImageFormat.PNG: ".png",
    ImageFormat.WEBP: ".webp",
    ImageFormat.AVIF: ".avif",
}

_SUFFIX_LOOKUP = {
    ".jpg": ImageFormat.JPEG,
    ".jpeg": ImageFormat.JPEG,
    ".png": ImageFormat.PNG,
    ".webp": ImageFormat.WEBP,
    ".avif": ImageFormat.AVIF,
}


@dataclass(frozen=True, slots=True)
class SourceAsset:
    """扫描阶段得到的源图片信息，批处理期间不可变。"""

    path: Path
    size: int
    image_format: ImageFormat

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True, slots=True)
class DerivativeSpec:
    """一张衍生图的完整描述。

    ``compare_to_source`` 为 True 的衍生图用于与原图比较体积，其大小计入汇总。
    """

    source: SourceAsset
    profile: "EncodingProfile"
    target_format: ImageFormat
    output_path: Path
    compare_to_source: bool = False


@dataclass(slots=True)
class DerivativeResult:
    """单个 DerivativeSpec 的执行结果。"""

    output_path: Path
    target_format: ImageFormat
    profile_name: str
    size: Optional[int] = None
    error: Optional[str] = None
    compare_to_source: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class FileOutcome:
    """记录单个源文件的处理结果（用于汇总/日志/报告）。"""

    source_path: Path
    status: str
    original_size: int = 0
    output_size: Optional[int] = None
    output_path: Optional[Path] = None
    message: Optional[str] = None
    derivatives: list[DerivativeResult] = field(default_factory=list)


@dataclass(slots=True)
class BatchResult:
    """批处理的最终产出。"""

    succeeded: list[FileOutcome]
    skipped: list[FileOutcome]
    failed: list[FileOutcome]
    summary: Optional["BatchSummary"] = None

    def all_outcomes(self) -> list[FileOutcome]:
        """返回所有结果记录，按源文件名排序，方便生成报告。"""

        outcomes = [*self.succeeded, *self.skipped, *self.failed]
        outcomes.sort(key=lambda x: str(x.source_path).lower())
        return outcomes


@dataclass(slots=True)
class ProgressUpdate:
    """批处理过程中的进度信息。"""

    total: int
    completed: int
    message: Optional[str] = None
    status: str = "running"
