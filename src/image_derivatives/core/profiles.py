"""内置编码配置与只读注册表。"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from image_derivatives.core.config import EncodingProfile, FormatOptions, ResizeSpec
from image_derivatives.core.exceptions import InvalidConfigurationError, UnknownProfileError
from image_derivatives.core.models import ImageFormat

WEB = "web"
THUMBNAIL = "thumbnail"
MEDIUM = "medium"
ULTRA = "ultra"
BEST = "best"


def _build_default_profiles() -> list[EncodingProfile]:
    return [
        EncodingProfile(
            name=WEB,
            formats={
                ImageFormat.JPEG: FormatOptions(quality=65, progressive=True),
                ImageFormat.PNG: FormatOptions(quality=70, palette=True, compression_level=9),
                ImageFormat.WEBP: FormatOptions(quality=60, effort=4),
                ImageFormat.AVIF: FormatOptions(quality=50, effort=4),
            },
        ),
        EncodingProfile(
            name=THUMBNAIL,
            resize=ResizeSpec(width=400, height=300, fit="cover"),
            formats={
                ImageFormat.JPEG: FormatOptions(quality=70, progressive=True),
                ImageFormat.WEBP: FormatOptions(quality=65, effort=4),
            },
        ),
        EncodingProfile(
            name=MEDIUM,
            resize=ResizeSpec(width=800, height=600, fit="cover"),
            formats={
                ImageFormat.JPEG: FormatOptions(quality=75, progressive=True),
                ImageFormat.WEBP: FormatOptions(quality=70, effort=4),
            },
        ),
        # responsive 模式下与原图比较体积的 _ultra.jpg
        EncodingProfile(
            name=ULTRA,
            formats={ImageFormat.JPEG: FormatOptions(quality=55, progressive=True)},
        ),
        # replace 模式：保持原格式，大小严格变小才覆盖
        EncodingProfile(
            name=BEST,
            formats={
                ImageFormat.JPEG: FormatOptions(quality=80, progressive=True),
                ImageFormat.PNG: FormatOptions(quality=80, palette=True, compression_level=9),
            },
        ),
    ]


class ProfileRegistry:
    """按名称查找编码配置；构造后不可修改。"""

    def __init__(self, profiles: Iterable[EncodingProfile]) -> None:
        table: dict[str, EncodingProfile] = {}
        for profile in profiles:
            if profile.name in table:
                raise InvalidConfigurationError(f"重复的编码配置名称: {profile.name}")
            table[profile.name] = profile
        self._profiles: Mapping[str, EncodingProfile] = MappingProxyType(table)

    def get(self, name: str) -> EncodingProfile:
        try:
            return self._profiles[name]
        except KeyError as exc:
            raise UnknownProfileError(f"未知的编码配置: {name}") from exc

    def names(self) -> list[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles


DEFAULT_REGISTRY = ProfileRegistry(_build_default_profiles())
