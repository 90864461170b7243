"""
Bounded parallel execution of render jobs.

Render jobs run on a thread pool with a fixed concurrency limit and
first-error-cancels-rest semantics:

- the first failing job sets a shared cancellation event,
- queued jobs are cancelled and never start,
- running jobs observe the event (their renderer subprocess is killed),
- all launched jobs are joined before the first error is raised.

Job completion is reported on the coordinating thread, so progress
callbacks never run concurrently.

Example:
    >>> pool = RenderPool(max_workers=5)
    >>> summary = pool.run(jobs, song_renderer.render, on_complete=report)
    >>> print(f"Rendered {summary.successful}/{summary.total} songs")
"""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from zupfbuild.errors import BuildCancelled, BuildError, RenderError
from zupfbuild.models import RenderJob

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class ProcessingStatus(Enum):
    """Status of a render job."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class JobResult:
    """Result of rendering a single song.

    Attributes:
        song_index: Position of the song (0 for the table of contents).
        filename: ABC source filename.
        title: Song title.
        status: Processing status.
        distributed: Print files copied into category folders.
        warnings: Non-fatal problems, e.g. unclassified output files.
        error: Error message (if failed).
        processing_time_s: Time taken to render and distribute.
    """
    song_index: int
    filename: str
    title: str
    status: ProcessingStatus = ProcessingStatus.SUCCESS
    distributed: List[Path] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    processing_time_s: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "song_index": self.song_index,
            "filename": self.filename,
            "title": self.title,
            "status": self.status.value,
            "distributed": [str(p) for p in self.distributed],
            "warnings": list(self.warnings),
            "error": self.error,
            "processing_time_s": round(self.processing_time_s, 3),
        }


@dataclass
class BatchResult:
    """Aggregate result of a render batch.

    Attributes:
        total: Number of jobs.
        successful: Jobs rendered successfully.
        failed: Jobs that raised an error.
        cancelled: Jobs that were not started or killed after a failure.
        results: Individual job results, ordered by song index.
        start_time: When the batch started.
        end_time: When the batch completed.
        total_time_s: Total processing time.
    """
    total: int
    successful: int = 0
    failed: int = 0
    cancelled: int = 0
    results: List[JobResult] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0
    total_time_s: float = 0.0

    @property
    def success_rate(self) -> float:
        """Fraction of successful jobs."""
        if self.total == 0:
            return 0.0
        return self.successful / self.total

    @property
    def warnings(self) -> List[str]:
        """Warnings of all jobs in song order."""
        return [w for r in self.results for w in r.warnings]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "success_rate": round(self.success_rate, 4),
            "total_time_s": round(self.total_time_s, 3),
            "results": [r.to_dict() for r in self.results],
        }

    def save(self, path: Union[str, Path]) -> None:
        """Save results to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Saved render results to %s", path)


Worker = Callable[[RenderJob, threading.Event], JobResult]
CompletionCallback = Callable[[JobResult, int, int], None]


class RenderPool:
    """Thread pool for render jobs with fail-fast cancellation.

    The pool is created per run; nothing outlives :meth:`run`.
    """

    def __init__(
        self,
        max_workers: int = 5,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the pool.

        Args:
            max_workers: Maximum number of jobs running at the same time.
            logger: Optional logger for messages.
        """
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        jobs: Sequence[RenderJob],
        worker: Worker,
        on_complete: Optional[CompletionCallback] = None,
    ) -> BatchResult:
        """Run ``worker`` for every job.

        Args:
            jobs: Jobs with their song indices already assigned.
            worker: Callable rendering one job; receives the cancellation event.
            on_complete: Called as ``(result, completed, total)`` after each
                successful job, on the calling thread.

        Returns:
            BatchResult when every job succeeded.

        Raises:
            BuildError: The first job failure, after all launched jobs settled.
        """
        result = BatchResult(total=len(jobs))
        result.start_time = time.time()
        cancel_event = threading.Event()
        first_error: Optional[BuildError] = None

        def guarded(job: RenderJob) -> JobResult:
            if cancel_event.is_set():
                raise BuildCancelled(
                    "not started: build cancelled",
                    stage="render",
                    song=job.song.filename,
                )
            return worker(job, cancel_event)

        self.logger.info(
            "Rendering %d songs with up to %d workers", len(jobs), self.max_workers
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(guarded, job): job for job in jobs}

            for future in as_completed(futures):
                job = futures[future]

                if future.cancelled():
                    result.cancelled += 1
                    result.results.append(self._not_ok(job, ProcessingStatus.CANCELLED))
                    continue

                try:
                    job_result = future.result()
                except BuildCancelled as e:
                    result.cancelled += 1
                    result.results.append(
                        self._not_ok(job, ProcessingStatus.CANCELLED, str(e))
                    )
                    continue
                except Exception as e:
                    error = e if isinstance(e, BuildError) else RenderError(
                        f"unexpected error: {e}",
                        song=job.song.filename,
                        song_index=job.song_index,
                    )
                    if error is not e:
                        error.__cause__ = e
                    result.failed += 1
                    result.results.append(
                        self._not_ok(job, ProcessingStatus.FAILED, str(error))
                    )
                    self.logger.error("✗ %s: %s", job.song.filename, error)

                    if first_error is None:
                        first_error = error
                        cancel_event.set()
                        for pending in futures:
                            pending.cancel()
                    continue

                result.successful += 1
                result.results.append(job_result)
                self.logger.info(
                    "✓ %s %s (%.1fs)",
                    job.prefix,
                    job.song.title,
                    job_result.processing_time_s,
                )
                if on_complete is not None:
                    on_complete(job_result, result.successful, result.total)

        result.results.sort(key=lambda r: r.song_index)
        result.end_time = time.time()
        result.total_time_s = result.end_time - result.start_time

        if first_error is not None:
            self.logger.error(
                "Render batch failed: %d succeeded, %d failed, %d cancelled",
                result.successful,
                result.failed,
                result.cancelled,
            )
            raise first_error

        return result

    @staticmethod
    def _not_ok(
        job: RenderJob,
        status: ProcessingStatus,
        error: Optional[str] = None,
    ) -> JobResult:
        return JobResult(
            song_index=job.song_index,
            filename=job.song.filename,
            title=job.song.title,
            status=status,
            error=error,
        )


__all__ = [
    "ProcessingStatus",
    "JobResult",
    "BatchResult",
    "RenderPool",
]
