"""编码参数与批处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from image_derivatives.core.exceptions import InvalidConfigurationError
from image_derivatives.core.models import ImageFormat

VALID_FIT_MODES = {"cover", "contain"}
VALID_BATCH_MODES = {"replace", "responsive"}


@dataclass(frozen=True, slots=True)
class FormatOptions:
    """单一输出格式的编码参数。

    ``effort`` 对应 WebP 的 method（0~6）与 AVIF 的编码力度（speed = 10 - effort）；
    ``compression_level`` 仅用于 PNG 的 zlib 压缩等级；``palette`` 表示 PNG 调色板量化。
    """

    quality: int
    progressive: bool = False
    effort: Optional[int] = None
    compression_level: Optional[int] = None
    palette: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.quality <= 100:
            raise InvalidConfigurationError(f"quality 必须位于 1~100: {self.quality}")
        if self.effort is not None and not 0 <= self.effort <= 9:
            raise InvalidConfigurationError(f"effort 必须位于 0~9: {self.effort}")
        if self.compression_level is not None and not 0 <= self.compression_level <= 9:
            raise InvalidConfigurationError(f"compression_level 必须位于 0~9: {self.compression_level}")


@dataclass(frozen=True, slots=True)
class ResizeSpec:
    """目标尺寸与适配策略。"""

    width: int
    height: int
    fit: str = "cover"  # cover | contain
    background_color: str = "#FFFFFF"

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidConfigurationError(f"目标尺寸必须大于 0: {self.width}x{self.height}")
        if self.fit not in VALID_FIT_MODES:
            raise InvalidConfigurationError(f"未知的尺寸模式: {self.fit}")

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True, slots=True)
class EncodingProfile:
    """命名的编码配置：可选的缩放要求与各输出格式的参数。"""

    name: str
    formats: tuple[tuple[ImageFormat, FormatOptions], ...]
    resize: Optional[ResizeSpec] = None

    def __post_init__(self) -> None:
        # 构造时接受 dict，统一冻结为 (格式, 参数) 元组
        pairs = self.formats.items() if isinstance(self.formats, Mapping) else self.formats
        object.__setattr__(self, "formats", tuple((ImageFormat(fmt), options) for fmt, options in pairs))
        if not self.formats:
            raise InvalidConfigurationError(f"编码配置 {self.name} 至少需要一种输出格式")

    def options_for(self, image_format: ImageFormat) -> FormatOptions:
        try:
            return dict(self.formats)[image_format]
        except KeyError as exc:
            raise InvalidConfigurationError(
                f"编码配置 {self.name} 未定义 {image_format.value} 格式"
            ) from exc

    def supports(self, image_format: ImageFormat) -> bool:
        return any(fmt is image_format for fmt, _ in self.formats)


@dataclass(slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    source_dir: Path
    mode: str = "responsive"  # replace | responsive
    output_subdir: str = "compressed"
    excluded_names: Sequence[str] = field(default_factory=lambda: ("logo.jpeg",))
    extensions: Sequence[str] = field(default_factory=lambda: (".jpg", ".jpeg", ".png"))
    temp_prefix: str = "temp_"
    max_workers: int = 4
    report_filename: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mode not in VALID_BATCH_MODES:
            raise InvalidConfigurationError(f"未知的批处理模式: {self.mode}")
        if not self.temp_prefix:
            raise InvalidConfigurationError("temp_prefix 不能为空")

    @property
    def output_dir(self) -> Path:
        """衍生图的输出目录（仅 responsive 模式使用）。"""

        return self.source_dir / self.output_subdir
