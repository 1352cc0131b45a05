"""衍生图规划：为每张源图确定需要输出的 (配置, 格式, 文件名) 列表。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from image_derivatives.core import profiles
from image_derivatives.core.exceptions import InvalidConfigurationError
from image_derivatives.core.models import DerivativeSpec, ImageFormat, SourceAsset
from image_derivatives.core.profiles import ProfileRegistry


@dataclass(frozen=True, slots=True)
class PlanStep:
    profile_name: str
    tag: str
    formats: tuple[ImageFormat, ...]
    compare_to_source: bool = False


# web 配置按可用格式逐一输出；_ultra 排在最后，用于与原图比较
RESPONSIVE_PLAN: tuple[PlanStep, ...] = (
    PlanStep(profiles.WEB, "web", (ImageFormat.JPEG, ImageFormat.WEBP, ImageFormat.AVIF)),
    PlanStep(profiles.THUMBNAIL, "thumb", (ImageFormat.WEBP,)),
    PlanStep(profiles.MEDIUM, "medium", (ImageFormat.WEBP,)),
    PlanStep(profiles.ULTRA, "ultra", (ImageFormat.JPEG,), compare_to_source=True),
)


def derivative_name(source: SourceAsset, tag: str, image_format: ImageFormat) -> str:
    return f"{source.path.stem}_{tag}{image_format.extension}"


def plan(
    source: SourceAsset,
    registry: ProfileRegistry,
    output_dir: Path,
    steps: tuple[PlanStep, ...] = RESPONSIVE_PLAN,
) -> list[DerivativeSpec]:
    """按固定顺序生成该源图的全部 DerivativeSpec。"""

    specs: list[DerivativeSpec] = []
    seen: set[str] = set()

    for step in steps:
        profile = registry.get(step.profile_name)
        for image_format in step.formats:
            if not profile.supports(image_format):
                continue
            name = derivative_name(source, step.tag, image_format)
            key = name.lower()
            if key in seen:
                raise InvalidConfigurationError(f"衍生图文件名冲突: {name}")
            seen.add(key)
            specs.append(
                DerivativeSpec(
                    source=source,
                    profile=profile,
                    target_format=image_format,
                    output_path=output_dir / name,
                    compare_to_source=step.compare_to_source,
                )
            )

    return specs
