from __future__ import annotations

from pathlib import Path
import logging
import queue
import threading
from typing import Callable, Iterable, Sequence

from .collect import PathMatcher, collect_jobs
from .compress import Compressor
from .errors import BatchError, CompressionError, OutputDirCreationError
from .models import CompressOptions, DEFAULT_WORKER_COUNT, Job, ProcessorConfig, Result, Statistics

logger = logging.getLogger(__name__)

CompressFunc = Callable[[Path, Path, CompressOptions], None]


def process_job(job: Job, backend: CompressFunc) -> Result:
    """Run one job and record its outcome. Never raises for job-level failures."""
    try:
        original_size = job.input_path.stat().st_size
    except OSError:
        original_size = 0
    try:
        job.output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        error = OutputDirCreationError(job.output_path.parent, exc)
        logger.warning("%s: %s", job.input_path, error)
        return Result(job, original_size=original_size, error=error)
    try:
        backend(job.input_path, job.output_path, job.options)
    except Exception as exc:
        error = exc if isinstance(exc, BatchError) else CompressionError(
            job.input_path.suffix.lower().lstrip(".") or "unknown", cause=exc
        )
        logger.warning("%s: %s", job.input_path, error)
        return Result(job, original_size=original_size, error=error)
    try:
        compressed_size = job.output_path.stat().st_size
    except OSError:
        compressed_size = 0
    logger.debug("%s -> %s (%d -> %d bytes)", job.input_path, job.output_path, original_size, compressed_size)
    return Result(job, original_size=original_size, compressed_size=compressed_size)


def execute_jobs(jobs: Sequence[Job], worker_count: int, backend: CompressFunc) -> list[Result]:
    """Run ``jobs`` on a fixed pool of ``worker_count`` threads.

    Workers drain one shared queue that is fully populated before they start.
    Returns exactly one :class:`Result` per job, in completion order.
    """
    if not jobs:
        return []
    if worker_count <= 0:
        worker_count = DEFAULT_WORKER_COUNT
    job_queue: queue.Queue[Job] = queue.Queue()
    for job in jobs:
        job_queue.put(job)
    result_queue: queue.SimpleQueue[Result] = queue.SimpleQueue()

    def worker() -> None:
        while True:
            try:
                job = job_queue.get_nowait()
            except queue.Empty:
                return
            result_queue.put(process_job(job, backend))

    threads = [
        threading.Thread(target=worker, name=f"imgbatch-worker-{index}", daemon=True)
        for index in range(worker_count)
    ]
    logger.debug("starting %d worker(s) for %d job(s)", worker_count, len(jobs))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    results = []
    while not result_queue.empty():
        results.append(result_queue.get_nowait())
    return results


def calculate_statistics(results: Iterable[Result]) -> Statistics:
    total = success = failed = 0
    total_before = total_after = 0
    for result in results:
        total += 1
        if result.error is not None:
            failed += 1
            continue
        success += 1
        total_before += result.original_size
        total_after += result.compressed_size
    ratio = 100.0 * (1 - total_after / total_before) if total_before > 0 else 0.0
    return Statistics(
        total_files=total,
        success_files=success,
        failed_files=failed,
        total_original_size=total_before,
        total_compressed_size=total_after,
        compression_ratio=ratio,
    )


class Processor:
    """Batch run over one directory: collect, execute, and aggregate."""

    def __init__(self, config: ProcessorConfig | None = None, backend: CompressFunc | None = None) -> None:
        self.config = config or ProcessorConfig()
        self.backend = backend if backend is not None else Compressor()

    @property
    def matcher(self) -> PathMatcher:
        return PathMatcher(self.config.include_patterns, self.config.exclude_patterns)

    def collect_jobs(self, input_dir: Path, options: CompressOptions) -> list[Job]:
        return collect_jobs(
            Path(input_dir),
            options,
            recursive=self.config.recursive,
            matcher=self.matcher,
            output_dir=self.config.output_dir,
        )

    def execute(self, jobs: Sequence[Job]) -> list[Result]:
        return execute_jobs(jobs, self.config.worker_count, self.backend)

    def process_directory(self, input_dir: Path, options: CompressOptions) -> list[Result]:
        jobs = self.collect_jobs(input_dir, options)
        if not jobs:
            logger.info("no matching files under %s", input_dir)
            return []
        logger.info("compressing %d file(s) with %d worker(s)", len(jobs), self.config.worker_count)
        return self.execute(jobs)
