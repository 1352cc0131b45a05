"""基于 Pillow 的解码、缩放与编码适配层。"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

from PIL import Image, ImageOps, UnidentifiedImageError, features

from image_derivatives.core.config import FormatOptions, ResizeSpec
from image_derivatives.core.exceptions import DecodeError, EncodeError, FilesystemError
from image_derivatives.core.models import ImageFormat
from image_derivatives.utils.colors import parse_color

LOGGER = logging.getLogger(__name__)

Encoder = Callable[[Image.Image, FormatOptions], bytes]


def load_image(path: Path) -> Image.Image:
    """加载单张图片并执行 EXIF 旋转校正。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(path) as img:
            img.load()
            transposed = ImageOps.exif_transpose(img)
            return transposed.copy() if transposed is img else transposed
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise DecodeError(f"无法加载图像: {path.name}") from exc


def resize_image(image: Image.Image, resize: ResizeSpec) -> Image.Image:
    """按 cover（裁剪填满）或 contain（留边居中）适配到目标尺寸。"""

    if resize.fit == "cover":
        return ImageOps.fit(image, resize.size, Image.LANCZOS, centering=(0.5, 0.5))

    background = parse_color(resize.background_color)
    has_alpha = _has_alpha(image)
    canvas_mode = "RGBA" if has_alpha else "RGB"
    fill = (*background, 0) if has_alpha else background
    canvas = Image.new(canvas_mode, resize.size, fill)

    resized = ImageOps.contain(image.convert(canvas_mode), resize.size, Image.LANCZOS)
    offset = (
        (resize.width - resized.width) // 2,
        (resize.height - resized.height) // 2,
    )
    canvas.paste(resized, offset)
    return canvas


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in {"RGBA", "LA", "PA"} or (image.mode == "P" and "transparency" in image.info)


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGB，Alpha 通道以白色背景混合。"""

    if image.mode == "RGB":
        return image

    if _has_alpha(image):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    return image.convert("RGB")


def _to_rgb_or_rgba(image: Image.Image) -> Image.Image:
    if image.mode in {"RGB", "RGBA"}:
        return image
    return image.convert("RGBA" if _has_alpha(image) else "RGB")


def _encode_jpeg(image: Image.Image, options: FormatOptions) -> bytes:
    buffer = io.BytesIO()
    _flatten_to_rgb(image).save(
        buffer,
        format="JPEG",
        quality=options.quality,
        progressive=options.progressive,
        optimize=True,
    )
    return buffer.getvalue()


def _palette_colors(quality: int) -> int:
    # quality 线性映射到调色板颜色数，最少 16 色
    return max(16, min(256, round(256 * quality / 100)))


def _encode_png(image: Image.Image, options: FormatOptions) -> bytes:
    prepared = _to_rgb_or_rgba(image)
    if options.palette:
        method = Image.Quantize.FASTOCTREE if prepared.mode == "RGBA" else Image.Quantize.MEDIANCUT
        prepared = prepared.quantize(
            colors=_palette_colors(options.quality),
            method=method,
            dither=Image.Dither.NONE,
        )

    save_params: dict[str, object] = {}
    if options.compression_level is not None:
        save_params["compress_level"] = options.compression_level

    buffer = io.BytesIO()
    prepared.save(buffer, format="PNG", **save_params)
    return buffer.getvalue()


def _encode_webp(image: Image.Image, options: FormatOptions) -> bytes:
    save_params: dict[str, object] = {"quality": options.quality}
    if options.effort is not None:
        save_params["method"] = min(options.effort, 6)

    buffer = io.BytesIO()
    _to_rgb_or_rgba(image).save(buffer, format="WEBP", **save_params)
    return buffer.getvalue()


def _encode_avif(image: Image.Image, options: FormatOptions) -> bytes:
    if not features.check("avif"):
        raise EncodeError("当前 Pillow 未启用 AVIF 编码支持")

    save_params: dict[str, object] = {"quality": options.quality}
    if options.effort is not None:
        save_params["speed"] = 10 - options.effort

    buffer = io.BytesIO()
    _to_rgb_or_rgba(image).save(buffer, format="AVIF", **save_params)
    return buffer.getvalue()


ENCODERS: dict[ImageFormat, Encoder] = {
    ImageFormat.JPEG: _encode_jpeg,
    ImageFormat.PNG: _encode_png,
    ImageFormat.WEBP: _encode_webp,
    ImageFormat.AVIF: _encode_avif,
}


def encode_image(
    image: Image.Image,
    target_format: ImageFormat,
    options: FormatOptions,
    resize: Optional[ResizeSpec] = None,
) -> bytes:
    """对已解码的图像执行可选缩放并编码为目标格式。"""

    encoder = ENCODERS[target_format]
    working = resize_image(image, resize) if resize else image
    try:
        return encoder(working, options)
    except EncodeError:
        raise
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"{target_format.value} 编码失败: {exc}") from exc
    finally:
        if working is not image:
            working.close()


def encode(
    source_path: Path,
    target_format: ImageFormat,
    options: FormatOptions,
    resize: Optional[ResizeSpec] = None,
) -> bytes:
    """解码源文件一次，缩放（可选）后编码为目标格式，返回字节串。"""

    image = load_image(source_path)
    try:
        return encode_image(image, target_format, options, resize)
    finally:
        image.close()


def write_temp(data: bytes, directory: Path, prefix: str, suffix: str = "") -> Path:
    """将字节写入目录下唯一命名的临时文件，失败时不留下残留。"""

    try:
        fd, raw_path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
    except OSError as exc:
        raise FilesystemError(f"无法在 {directory} 创建临时文件") from exc

    temp_path = Path(raw_path)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
    except OSError as exc:
        discard_temp(temp_path)
        raise FilesystemError(f"写入临时文件失败: {temp_path.name}") from exc
    return temp_path


def discard_temp(path: Path) -> None:
    """尽力删除临时文件；删除失败只记录日志。"""

    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("无法删除临时文件 %s: %s", path, exc)


def commit_temp(temp_path: Path, destination: Path) -> None:
    """原子地将临时文件移动到目标位置。"""

    try:
        os.replace(temp_path, destination)
    except OSError as exc:
        discard_temp(temp_path)
        raise FilesystemError(f"重命名失败: {temp_path.name} -> {destination.name}") from exc


def write_atomic(data: bytes, destination: Path, temp_prefix: str) -> int:
    """先写临时文件再原子替换到目标路径，返回写入的字节数。"""

    temp_path = write_temp(data, destination.parent, temp_prefix, destination.suffix)
    commit_temp(temp_path, destination)
    return len(data)
