"""测试 Pillow 编解码适配层。"""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image, features

from image_derivatives.core.config import FormatOptions, ResizeSpec
from image_derivatives.core.exceptions import DecodeError, FilesystemError
from image_derivatives.core.models import ImageFormat
from image_derivatives.processing import codec
from image_derivatives.processing.codec import encode, load_image, resize_image, write_atomic


def _gradient(size: tuple[int, int]) -> Image.Image:
    return Image.linear_gradient("L").resize(size).convert("RGB")


def test_cover_crops_to_exact_size() -> None:
    resized = resize_image(_gradient((1000, 500)), ResizeSpec(width=400, height=300, fit="cover"))
    assert resized.size == (400, 300)


def test_contain_letterboxes_with_background() -> None:
    image = Image.new("RGB", (100, 50), "blue")
    resized = resize_image(image, ResizeSpec(width=100, height=100, fit="contain", background_color="#FF0000"))

    assert resized.size == (100, 100)
    assert resized.getpixel((50, 2)) == (255, 0, 0)
    assert resized.getpixel((50, 50)) == (0, 0, 255)


def test_jpeg_encoding_is_progressive_and_rgb(tmp_path: Path) -> None:
    source = tmp_path / "alpha.png"
    Image.new("RGBA", (64, 64), (10, 20, 30, 128)).save(source)

    data = encode(source, ImageFormat.JPEG, FormatOptions(quality=70, progressive=True))

    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.format == "JPEG"
        assert decoded.mode == "RGB"
        assert decoded.info.get("progressive")


def test_png_palette_reduction(tmp_path: Path) -> None:
    source = tmp_path / "gradient.png"
    _gradient((200, 200)).save(source, compress_level=0)

    data = encode(source, ImageFormat.PNG, FormatOptions(quality=70, palette=True, compression_level=9))

    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.format == "PNG"
        assert decoded.mode == "P"
    assert len(data) < source.stat().st_size


def test_webp_with_resize(tmp_path: Path) -> None:
    source = tmp_path / "wide.jpg"
    _gradient((1200, 900)).save(source, quality=95)

    data = encode(
        source,
        ImageFormat.WEBP,
        FormatOptions(quality=65, effort=4),
        ResizeSpec(width=400, height=300, fit="cover"),
    )

    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.format == "WEBP"
        assert decoded.size == (400, 300)


@pytest.mark.skipif(not features.check("avif"), reason="当前 Pillow 未启用 AVIF")
def test_avif_encoding(tmp_path: Path) -> None:
    source = tmp_path / "photo.jpg"
    _gradient((120, 80)).save(source)

    data = encode(source, ImageFormat.AVIF, FormatOptions(quality=50, effort=4))

    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.format == "AVIF"
        assert decoded.size == (120, 80)


def test_encoding_is_deterministic(tmp_path: Path) -> None:
    source = tmp_path / "photo.jpg"
    _gradient((300, 200)).save(source, quality=100)
    options = FormatOptions(quality=60, effort=4)

    assert encode(source, ImageFormat.WEBP, options) == encode(source, ImageFormat.WEBP, options)


def test_exif_orientation_is_corrected(tmp_path: Path) -> None:
    source = tmp_path / "rotated.jpg"
    exif = Image.Exif()
    exif[274] = 6  # 顺时针 90 度
    Image.new("RGB", (80, 40), "red").save(source, exif=exif.tobytes())

    image = load_image(source)
    assert image.size == (40, 80)
    image.close()


def test_corrupted_source_raises_decode_error(tmp_path: Path) -> None:
    source = tmp_path / "broken.png"
    source.write_text("not an image")

    with pytest.raises(DecodeError):
        encode(source, ImageFormat.PNG, FormatOptions(quality=80))


def test_write_atomic_leaves_no_temp_files(tmp_path: Path) -> None:
    destination = tmp_path / "out.webp"
    destination.write_bytes(b"old")

    written = write_atomic(b"new-bytes", destination, "temp_")

    assert written == len(b"new-bytes")
    assert destination.read_bytes() == b"new-bytes"
    assert list(tmp_path.glob("temp_*")) == []


def test_write_atomic_into_missing_directory_fails(tmp_path: Path) -> None:
    with pytest.raises(FilesystemError):
        write_atomic(b"data", tmp_path / "missing" / "out.jpg", "temp_")


def test_write_atomic_failed_rename_removes_temp(tmp_path: Path, monkeypatch) -> None:
    destination = tmp_path / "out.webp"
    destination.write_bytes(b"old")

    def failing_replace(src, dst):
        raise OSError("rename refused")

    monkeypatch.setattr(codec.os, "replace", failing_replace)

    with pytest.raises(FilesystemError):
        write_atomic(b"new-bytes", destination, "temp_")

    assert destination.read_bytes() == b"old"
    assert list(tmp_path.glob("temp_*")) == []
