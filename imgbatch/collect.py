from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
import logging
import os
import stat
from typing import Iterable, Iterator

from .errors import DirectoryNotFoundError, TraversalError
from .models import CompressOptions, DEFAULT_INCLUDE_PATTERNS, Job, normalize_patterns, split_extension

logger = logging.getLogger(__name__)


def should_include(file_name: str, include_patterns: Iterable[str], exclude_patterns: Iterable[str]) -> bool:
    """Return True if the base name of ``file_name`` is a compression candidate.

    Exclude globs win over include globs. Matching is case-sensitive and
    only looks at the last path component.
    """
    name = os.path.basename(file_name)
    for pattern in exclude_patterns:
        if fnmatchcase(name, pattern):
            return False
    for pattern in include_patterns:
        if fnmatchcase(name, pattern):
            return True
    return False


@dataclass(frozen=True)
class PathMatcher:
    include_patterns: tuple[str, ...] = DEFAULT_INCLUDE_PATTERNS
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "include_patterns", normalize_patterns(self.include_patterns))
        object.__setattr__(self, "exclude_patterns", normalize_patterns(self.exclude_patterns))

    def matches(self, file_name: str) -> bool:
        return should_include(file_name, self.include_patterns, self.exclude_patterns)


def build_output_path(source: Path, input_dir: Path, output_dir: Path | None) -> Path:
    source = Path(source)
    if output_dir is None or not str(output_dir):
        stem, extension = split_extension(source.name)
        return source.with_name(f"{stem}_compressed{extension}")
    output_dir = Path(output_dir)
    if source.is_relative_to(input_dir):
        return output_dir / source.relative_to(input_dir)
    return output_dir / source.name


def collect_jobs(
    input_dir: Path,
    options: CompressOptions,
    *,
    recursive: bool = False,
    matcher: PathMatcher | None = None,
    output_dir: Path | None = None,
) -> list[Job]:
    """Walk ``input_dir`` and build one :class:`Job` per matching regular file.

    Entries are visited in a sorted pre-order walk so the job order is stable
    for an unchanged tree. Without ``recursive`` nested directories are never
    entered. Any OS error during the walk aborts collection with a
    :class:`TraversalError`; no partial list is returned.
    """
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise DirectoryNotFoundError(input_dir)
    matcher = matcher or PathMatcher()
    jobs: list[Job] = []
    for path in _iter_candidate_files(input_dir, recursive, matcher):
        output = build_output_path(path, input_dir, output_dir)
        logger.debug("collected %s -> %s", path, output)
        jobs.append(Job(input_path=path, output_path=output, options=options))
    return jobs


def _iter_candidate_files(root: Path, recursive: bool, matcher: PathMatcher) -> Iterator[Path]:
    stack = [(root, iter(_sorted_entries(root)))]
    while stack:
        directory, entries = stack[-1]
        entry = next(entries, None)
        if entry is None:
            stack.pop()
            continue
        path = directory / entry.name
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            raise TraversalError(path, exc) from exc
        if is_dir:
            if recursive:
                stack.append((path, iter(_sorted_entries(path))))
            continue
        if not matcher.matches(entry.name):
            continue
        try:
            mode = entry.stat().st_mode
        except OSError as exc:
            raise TraversalError(path, exc) from exc
        if stat.S_ISREG(mode):
            yield path


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as scanner:
            return sorted(scanner, key=lambda entry: entry.name)
    except OSError as exc:
        raise TraversalError(directory, exc) from exc
