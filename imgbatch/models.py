from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

DEFAULT_WORKER_COUNT = 4
DEFAULT_QUALITY = 80
DEFAULT_PALETTE_SIZE = 256
DEFAULT_INCLUDE_PATTERNS = ("*.jpg", "*.jpeg", "*.png", "*.webp")
PALETTE_SIZES = (8, 16, 32, 64, 128, 256)


@dataclass(frozen=True)
class CompressOptions:
    quality: int = DEFAULT_QUALITY
    palette_size: int = DEFAULT_PALETTE_SIZE


@dataclass(frozen=True)
class Job:
    input_path: Path
    output_path: Path
    options: CompressOptions


@dataclass(frozen=True)
class Result:
    job: Job
    original_size: int = 0
    compressed_size: int = 0
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def compression_ratio(self) -> float:
        if not self.success or self.original_size <= 0:
            return 0.0
        return 100.0 * (1 - self.compressed_size / self.original_size)


@dataclass(frozen=True)
class Statistics:
    total_files: int = 0
    success_files: int = 0
    failed_files: int = 0
    total_original_size: int = 0
    total_compressed_size: int = 0
    compression_ratio: float = 0.0

    @property
    def saved_size(self) -> int:
        return self.total_original_size - self.total_compressed_size


@dataclass(frozen=True)
class ProcessorConfig:
    """Run-wide settings for a :class:`~imgbatch.batch.Processor`.

    ``worker_count`` values below one fall back to
    :data:`DEFAULT_WORKER_COUNT`. An empty ``output_dir`` means every output
    is written beside its input. ``include_patterns=None`` selects the
    default image globs; an explicitly empty include set matches nothing.
    """

    worker_count: int = DEFAULT_WORKER_COUNT
    output_dir: Path | None = None
    recursive: bool = False
    include_patterns: tuple[str, ...] | None = DEFAULT_INCLUDE_PATTERNS
    exclude_patterns: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.worker_count <= 0:
            object.__setattr__(self, "worker_count", DEFAULT_WORKER_COUNT)
        output_dir = self.output_dir
        if output_dir is not None and not str(output_dir):
            output_dir = None
        if output_dir is not None:
            output_dir = Path(output_dir)
        object.__setattr__(self, "output_dir", output_dir)
        include = self.include_patterns
        if include is None:
            include = DEFAULT_INCLUDE_PATTERNS
        object.__setattr__(self, "include_patterns", normalize_patterns(include))
        object.__setattr__(self, "exclude_patterns", normalize_patterns(self.exclude_patterns))


def normalize_patterns(patterns: Iterable[str] | str | None) -> tuple[str, ...]:
    if patterns is None:
        return ()
    if isinstance(patterns, str):
        patterns = patterns.split(",")
    return tuple(pattern.strip() for pattern in patterns if pattern and pattern.strip())


def split_extension(name: str) -> tuple[str, str]:
    """Split a file name at its last dot; a leading-dot name is all extension."""
    index = name.rfind(".")
    if index < 0:
        return name, ""
    return name[:index], name[index:]
