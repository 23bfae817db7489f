from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from threading import Lock
from typing import Sequence

from tqdm import tqdm

from .batch import CompressFunc, Processor, calculate_statistics
from .collect import build_output_path
from .compress import Compressor
from .errors import BatchError
from .models import (
    CompressOptions,
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_PALETTE_SIZE,
    DEFAULT_QUALITY,
    PALETTE_SIZES,
    ProcessorConfig,
    Result,
    Statistics,
    normalize_patterns,
)

__version__ = "0.1.0"
COMMIT = "unknown"
BUILD_DATE = "unknown"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s: %(message)s"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imgbatch", description="A CLI tool for compressing images.")
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    batch = subparsers.add_parser("batch", aliases=["b"], help="Compress multiple images in a directory.")
    batch.add_argument("-i", "--input", required=True, type=Path, help="Input directory path")
    batch.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory path (default: beside each input with a '_compressed' suffix)",
    )
    add_codec_arguments(batch)
    batch.add_argument("-w", "--workers", type=int, default=os.cpu_count() or 4, help="Number of parallel workers")
    batch.add_argument("-r", "--recursive", action="store_true", help="Process directories recursively")
    batch.add_argument(
        "--include",
        default=",".join(DEFAULT_INCLUDE_PATTERNS),
        help="File patterns to include (comma-separated, e.g. '*.jpg,*.png')",
    )
    batch.add_argument("--exclude", default="", help="File patterns to exclude (comma-separated, e.g. '*_thumb*')")
    batch.add_argument("-v", "--verbose", action="store_true", help="Show detailed information")
    batch.add_argument("--quiet", action="store_true", help="Only log errors")
    batch.add_argument("--stats", action="store_true", help="Show compression statistics")
    batch.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    batch.set_defaults(handler=run_batch)

    compress = subparsers.add_parser("compress", aliases=["c"], help="Compress an image.")
    compress.add_argument("-i", "--input", required=True, type=Path, help="Input image file path")
    compress.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file path (default: input file name + '_compressed')",
    )
    add_codec_arguments(compress)
    compress.add_argument("-v", "--verbose", action="store_true", help="Show detailed information")
    compress.add_argument("--quiet", action="store_true", help="Only log errors")
    compress.set_defaults(handler=run_compress)

    version = subparsers.add_parser("version", help="Print the version")
    version.set_defaults(handler=run_version, verbose=False, quiet=False)
    return parser


def add_codec_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-q", "--quality", type=int, default=DEFAULT_QUALITY, help="JPEG/WebP quality (0-100)")
    parser.add_argument(
        "--palette-size",
        type=int,
        choices=PALETTE_SIZES,
        default=DEFAULT_PALETTE_SIZE,
        help="PNG palette size",
    )


def configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root = logging.getLogger("imgbatch")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


def run_batch(args: argparse.Namespace) -> int:
    config = ProcessorConfig(
        worker_count=args.workers,
        output_dir=args.output,
        recursive=args.recursive,
        include_patterns=normalize_patterns(args.include) or None,
        exclude_patterns=normalize_patterns(args.exclude),
    )
    options = CompressOptions(quality=args.quality, palette_size=args.palette_size)
    if args.verbose:
        print_settings(args.input, config, options)
    compressor = Compressor()
    processor = Processor(config, compressor)
    try:
        jobs = processor.collect_jobs(args.input, options)
    except BatchError as exc:
        print(f"Batch error: {exc}", file=sys.stderr)
        return 1
    if not jobs:
        print("No matching files were found.")
        return 0
    logger.info("collected %d job(s) from %s", len(jobs), args.input)
    print("Starting batch compression...")
    with tqdm(total=len(jobs), unit="file", disable=args.no_progress or args.quiet) as progress:
        processor.backend = with_progress(compressor, progress)
        results = processor.execute(jobs)
    stats = calculate_statistics(results)
    if args.verbose:
        print_results(results)
    if args.stats or args.verbose:
        print_statistics(stats)
    else:
        print("Batch compression finished.")
        print(f"Files processed: {stats.total_files} (success: {stats.success_files}, failed: {stats.failed_files})")
        if stats.success_files:
            print(f"Overall compression: {stats.compression_ratio:.2f}%")
    if stats.failed_files:
        print(
            f"\n{stats.failed_files} file(s) failed. Run with --verbose for details.",
            file=sys.stderr,
        )
        return 1
    return 0


def with_progress(backend: CompressFunc, progress: tqdm) -> CompressFunc:
    lock = Lock()

    def run(source: Path, output: Path, options: CompressOptions) -> None:
        try:
            backend(source, output, options)
        finally:
            with lock:
                progress.update(1)

    return run


def run_compress(args: argparse.Namespace) -> int:
    source: Path = args.input
    if not source.is_file():
        print(f"Input file does not exist: {source}", file=sys.stderr)
        return 1
    output = args.output or build_output_path(source, source.parent, None)
    options = CompressOptions(quality=args.quality, palette_size=args.palette_size)
    original_size = source.stat().st_size
    try:
        Compressor()(source, output, options)
    except BatchError as exc:
        print(f"Compression error: {exc}", file=sys.stderr)
        return 1
    compressed_size = output.stat().st_size
    ratio = 100.0 * (1 - compressed_size / original_size) if original_size else 0.0
    print(
        f"{source} -> {output} "
        f"({format_file_size(original_size)} -> {format_file_size(compressed_size)}, {ratio:.2f}% smaller)"
    )
    return 0


def run_version(args: argparse.Namespace) -> int:
    print(f"imgbatch version {__version__}")
    print(f"Commit: {COMMIT}")
    print(f"Built: {BUILD_DATE}")
    return 0


def print_settings(input_dir: Path, config: ProcessorConfig, options: CompressOptions) -> None:
    print(f"Input directory: {input_dir}")
    if config.output_dir is not None:
        print(f"Output directory: {config.output_dir}")
    else:
        print("Output directory: same as each input file")
    print(f"Quality: {options.quality}")
    print(f"PNG palette size: {options.palette_size}")
    print(f"Workers: {config.worker_count}")
    print(f"Recursive: {'enabled' if config.recursive else 'disabled'}")
    print(f"Include patterns: {','.join(config.include_patterns)}")
    if config.exclude_patterns:
        print(f"Exclude patterns: {','.join(config.exclude_patterns)}")
    print()


def print_results(results: Sequence[Result]) -> None:
    print("\n=== Results ===")
    for result in sorted(results, key=lambda item: str(item.job.input_path)):
        if result.error is not None:
            print(f"FAIL {result.job.input_path}: {result.error}")
        else:
            print(f"OK   {result.job.input_path} -> {result.job.output_path} ({result.compression_ratio:.2f}% smaller)")
    print()


def print_statistics(stats: Statistics) -> None:
    print("=== Statistics ===")
    print(f"Files processed: {stats.total_files}")
    print(f"Success: {stats.success_files}, Failed: {stats.failed_files}")
    if stats.success_files:
        print(f"Original size: {format_file_size(stats.total_original_size)}")
        print(f"Compressed size: {format_file_size(stats.total_compressed_size)}")
        print(f"Overall compression: {stats.compression_ratio:.2f}%")


def format_file_size(size: int) -> str:
    unit = 1024
    if size < unit:
        return f"{size} B"
    value = float(size)
    for prefix in "KMGTPE":
        value /= unit
        if value < unit or prefix == "E":
            return f"{value:.1f} {prefix}B"
    return f"{size} B"


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        parser.print_help()
        return 0
    configure_logging(args.verbose, args.quiet)
    return args.handler(args)
