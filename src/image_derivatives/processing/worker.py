"""并发处理的工作单元。

每个任务只处理一个源文件，所有异常在文件边界内转换为 FileOutcome，
不会影响其他文件。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from image_derivatives.core.config import EncodingProfile
from image_derivatives.core.exceptions import (
    DecodeError,
    EncodeError,
    FilesystemError,
    InvalidConfigurationError,
)
from image_derivatives.core.models import DerivativeResult, DerivativeSpec, FileOutcome, SourceAsset
from image_derivatives.processing.codec import (
    commit_temp,
    discard_temp,
    encode_image,
    load_image,
    write_atomic,
    write_temp,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReplaceTask:
    """原地替换任务：编码为同格式，严格变小才覆盖原文件。"""

    source: SourceAsset
    profile: EncodingProfile
    temp_prefix: str


@dataclass(slots=True)
class ResponsiveTask:
    """响应式衍生图任务：执行规划好的全部 DerivativeSpec。"""

    source: SourceAsset
    specs: list[DerivativeSpec]
    temp_prefix: str


def _error_status(exc: Exception) -> str:
    if isinstance(exc, DecodeError):
        return "error-decode"
    if isinstance(exc, (EncodeError, InvalidConfigurationError)):
        return "error-encode"
    return "error-fs"


def run_replace_task(task: ReplaceTask) -> FileOutcome:
    """Pending → Processing → {committed, discarded, error-*}。"""

    source = task.source
    temp_path = None

    try:
        options = task.profile.options_for(source.image_format)
        image = load_image(source.path)
        try:
            data = encode_image(image, source.image_format, options, task.profile.resize)
        finally:
            image.close()

        temp_path = write_temp(data, source.path.parent, task.temp_prefix, source.path.suffix)
        compressed_size = temp_path.stat().st_size

        if compressed_size < source.size:
            commit_temp(temp_path, source.path)
            temp_path = None
            return FileOutcome(
                source_path=source.path,
                status="committed",
                original_size=source.size,
                output_size=compressed_size,
                output_path=source.path,
            )

        discard_temp(temp_path)
        temp_path = None
        return FileOutcome(
            source_path=source.path,
            status="discarded",
            original_size=source.size,
            output_size=compressed_size,
            message="No compression needed",
        )
    except (DecodeError, EncodeError, FilesystemError, InvalidConfigurationError) as exc:
        return FileOutcome(
            source_path=source.path,
            status=_error_status(exc),
            original_size=source.size,
            message=str(exc),
        )
    except OSError as exc:
        return FileOutcome(
            source_path=source.path,
            status="error-fs",
            original_size=source.size,
            message=str(exc),
        )
    finally:
        if temp_path is not None:
            discard_temp(temp_path)


def _run_spec(image: Image.Image, spec: DerivativeSpec, temp_prefix: str) -> DerivativeResult:
    result = DerivativeResult(
        output_path=spec.output_path,
        target_format=spec.target_format,
        profile_name=spec.profile.name,
        compare_to_source=spec.compare_to_source,
    )
    try:
        options = spec.profile.options_for(spec.target_format)
        data = encode_image(image, spec.target_format, options, spec.profile.resize)
        result.size = write_atomic(data, spec.output_path, temp_prefix)
    except (EncodeError, FilesystemError, InvalidConfigurationError) as exc:
        LOGGER.debug("衍生图生成失败 %s: %s", spec.output_path.name, exc)
        result.error = str(exc)
    return result


def run_responsive_task(task: ResponsiveTask) -> FileOutcome:
    """源图只解码一次；每个 spec 独立成功或失败，_ultra 最后执行。"""

    source = task.source

    try:
        image = load_image(source.path)
    except DecodeError as exc:
        return FileOutcome(
            source_path=source.path,
            status="error-decode",
            original_size=source.size,
            message=str(exc),
        )

    ordered = sorted(task.specs, key=lambda spec: spec.compare_to_source)
    results: list[DerivativeResult] = []
    try:
        for spec in ordered:
            results.append(_run_spec(image, spec, task.temp_prefix))
    finally:
        image.close()

    failures = [r for r in results if not r.ok]
    comparison = next((r for r in results if r.compare_to_source and r.ok), None)

    if not failures:
        status = "processed"
    elif len(failures) < len(results):
        status = "partial"
    else:
        status = "failed"

    return FileOutcome(
        source_path=source.path,
        status=status,
        original_size=source.size,
        output_size=comparison.size if comparison else None,
        output_path=comparison.output_path if comparison else None,
        message=_compose_note(failures),
        derivatives=results,
    )


def _compose_note(failures: list[DerivativeResult]) -> Optional[str]:
    if not failures:
        return None
    return "; ".join(f"{r.output_path.name}: {r.error}" for r in failures)
