"""测试响应式衍生图模式：完整衍生图集合、逐项失败隔离、可重复执行。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image, features

from image_derivatives.core.config import JobConfig
from image_derivatives.core.exceptions import EncodeError
from image_derivatives.core.models import ImageFormat
from image_derivatives.processing import codec, worker
from image_derivatives.processing.pipeline import process_batch

EXPECTED_SUFFIXES = ["_medium.webp", "_thumb.webp", "_ultra.jpg", "_web.avif", "_web.jpg", "_web.webp"]

requires_avif = pytest.mark.skipif(not features.check("avif"), reason="当前 Pillow 未启用 AVIF")


def make_config(source: Path, **kwargs) -> JobConfig:
    kwargs.setdefault("max_workers", 1)
    return JobConfig(source_dir=source, mode="responsive", **kwargs)


def _save_photo(path: Path, size: tuple[int, int] = (1200, 900)) -> None:
    Image.linear_gradient("L").resize(size).convert("RGB").save(path, quality=100)


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {p.name: p.read_bytes() for p in sorted(directory.iterdir())}


@requires_avif
def test_responsive_set_is_complete_and_stable(tmp_path: Path) -> None:
    _save_photo(tmp_path / "c.jpg")
    (tmp_path / "logo.jpeg").write_text("brand")
    original = (tmp_path / "c.jpg").read_bytes()

    first = process_batch(make_config(tmp_path))

    output = tmp_path / "compressed"
    assert sorted(p.name for p in output.iterdir()) == [f"c{suffix}" for suffix in EXPECTED_SUFFIXES]
    assert [o.status for o in first.succeeded] == ["processed"]
    assert (tmp_path / "c.jpg").read_bytes() == original

    with Image.open(output / "c_thumb.webp") as thumb:
        assert thumb.size == (400, 300)
    with Image.open(output / "c_medium.webp") as medium:
        assert medium.size == (800, 600)
    with Image.open(output / "c_web.jpg") as web:
        assert web.size == (1200, 900)

    snapshot = _snapshot(output)
    second = process_batch(make_config(tmp_path))

    assert [o.source_path.name for o in second.all_outcomes()] == ["c.jpg"]
    assert _snapshot(output) == snapshot
    assert list(tmp_path.rglob("temp_*")) == []


def test_derivatives_in_source_directory_are_not_reprocessed(tmp_path: Path) -> None:
    _save_photo(tmp_path / "c.jpg", size=(300, 200))
    _save_photo(tmp_path / "c_web.jpg", size=(300, 200))
    _save_photo(tmp_path / "c_ultra.jpg", size=(300, 200))

    result = process_batch(make_config(tmp_path))

    assert [o.source_path.name for o in result.all_outcomes()] == ["c.jpg"]


def test_failed_spec_does_not_abort_others(tmp_path: Path, monkeypatch) -> None:
    _save_photo(tmp_path / "c.jpg", size=(500, 400))
    _save_photo(tmp_path / "d.jpg", size=(500, 400))
    real_encode = codec.encode_image

    def flaky_encode(image, target_format, options, resize=None):
        if target_format is ImageFormat.AVIF:
            raise EncodeError("avif rejected")
        return real_encode(image, target_format, options, resize)

    monkeypatch.setattr(worker, "encode_image", flaky_encode)

    result = process_batch(make_config(tmp_path))

    assert [o.status for o in result.succeeded] == ["partial", "partial"]
    output = tmp_path / "compressed"
    for stem in ("c", "d"):
        for suffix in EXPECTED_SUFFIXES:
            assert (output / f"{stem}{suffix}").exists() == (suffix != "_web.avif")
    outcome = result.succeeded[0]
    assert outcome.message is not None and "c_web.avif" in outcome.message
    assert outcome.output_path == output / "c_ultra.jpg"


def test_corrupt_source_is_isolated(tmp_path: Path) -> None:
    (tmp_path / "bad.png").write_text("not an image")
    _save_photo(tmp_path / "good.jpg", size=(400, 300))

    result = process_batch(make_config(tmp_path))

    assert [(o.source_path.name, o.status) for o in result.failed] == [("bad.png", "error-decode")]
    assert [o.source_path.name for o in result.succeeded] == ["good.jpg"]
    assert not any(p.name.startswith("bad_") for p in (tmp_path / "compressed").iterdir())


def test_same_stem_sources_do_not_collide(tmp_path: Path) -> None:
    _save_photo(tmp_path / "hero.jpg", size=(300, 200))
    Image.new("RGB", (300, 200), "green").save(tmp_path / "hero.png")

    result = process_batch(make_config(tmp_path))

    assert [o.source_path.name for o in result.succeeded] == ["hero.jpg"]
    assert [(o.source_path.name, o.status) for o in result.failed] == [("hero.png", "error-conflict")]


def test_summary_tracks_ultra_against_original(tmp_path: Path) -> None:
    _save_photo(tmp_path / "a.jpg", size=(640, 480))
    _save_photo(tmp_path / "b.jpg", size=(320, 240))

    result = process_batch(make_config(tmp_path))

    summary = result.summary
    assert summary is not None
    output = tmp_path / "compressed"
    expected_kept = (output / "a_ultra.jpg").stat().st_size + (output / "b_ultra.jpg").stat().st_size
    expected_original = (tmp_path / "a.jpg").stat().st_size + (tmp_path / "b.jpg").stat().st_size
    assert summary.total_kept == expected_kept
    assert summary.total_original == expected_original
    assert [f.name for f in summary.files] == ["a.jpg", "b.jpg"]


def test_process_pool_execution(tmp_path: Path) -> None:
    for name in ("one.jpg", "two.jpg", "three.png"):
        _save_photo(tmp_path / name, size=(320, 240))

    updates = []
    result = process_batch(make_config(tmp_path, max_workers=2), progress_callback=updates.append)

    assert len(result.succeeded) == 3
    assert not result.failed
    assert updates[-1].completed == updates[-1].total == 3
    assert updates[-1].status == "done"
    assert (tmp_path / "compressed" / "three_thumb.webp").exists()
