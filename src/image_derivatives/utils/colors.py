"""颜色工具函数。"""

from __future__ import annotations

from typing import Tuple

from PIL import ImageColor

from image_derivatives.core.exceptions import InvalidConfigurationError


def parse_color(value: str) -> Tuple[int, int, int]:
    """将 HEX 或 CSS 颜色名解析为 RGB 三元组（忽略 Alpha）。"""

    if not value or not value.strip():
        raise InvalidConfigurationError("颜色值不能为空")

    try:
        rgb = ImageColor.getrgb(value.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}") from exc
    return rgb[0], rgb[1], rgb[2]
