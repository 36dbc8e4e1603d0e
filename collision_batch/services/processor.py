"""
EstimateBatchProcessor -- bounded-concurrency multi-file import.

Contract:
    ``run(files)`` pushes every file through ``pipeline`` on a worker pool
    of ``options.concurrency`` threads and returns a ``BatchReport``.

Architecture: collision_batch/services.  Knows nothing about what the
    pipeline does; see ``collision_batch.services.pipeline`` for the
    standard estimate-to-purchase-order pipeline.

Invariants enforced:
    - Each file's pipeline runs start to finish inside one task.
    - A failing file never aborts its siblings unless ``pause_on_error``.
    - Pause and cancel stop files that have not started; a file already
      processing always runs to completion or failure.
    - A processor runs once (``BatchAlreadyRunningError`` on reuse).
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any
from uuid import uuid4

from collision_batch.config import BatchOptions
from collision_batch.domain.types import (
    BatchFile,
    BatchReport,
    BatchStatus,
    FileResult,
    FileStatus,
)
from collision_ingestion.domain.types import ValidationReport
from collision_kernel.domain.clock import Clock, SystemClock
from collision_kernel.exceptions import (
    BatchAlreadyRunningError,
    EstimateValidationError,
    error_code_of,
)
from collision_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.processor")

FilePipeline = Callable[[BatchFile], Any]
FileValidator = Callable[[bytes | str], ValidationReport]


class EstimateBatchProcessor:
    """Runs one batch of estimate files.

    Contract:
        - ``run()`` blocks until every scheduled file has finished.
        - ``cancel()`` and ``status`` are safe to call from other threads
          while ``run()`` is in progress.

    Non-goals:
        - Does NOT interrupt a file mid-pipeline.
        - Does NOT retry failed files; the pipeline owns retries.
    """

    def __init__(
        self,
        pipeline: FilePipeline,
        options: BatchOptions | None = None,
        validator: FileValidator | None = None,
        clock: Clock | None = None,
        batch_id: str | None = None,
    ):
        self._pipeline = pipeline
        self._options = options or BatchOptions()
        self._validator = validator
        self._clock = clock or SystemClock()
        self.batch_id = batch_id or str(uuid4())

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._started = False
        self._status = BatchStatus.CREATED
        self._file_status: dict[int, FileStatus] = {}

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def status(self) -> BatchStatus:
        with self._lock:
            return self._status

    def file_statuses(self) -> dict[int, FileStatus]:
        with self._lock:
            return dict(self._file_status)

    def _set_file_status(self, index: int, status: FileStatus) -> None:
        with self._lock:
            self._file_status[index] = status

    def cancel(self) -> None:
        """Stop scheduling files that have not started."""
        with self._lock:
            if self._status in (BatchStatus.COMPLETED, BatchStatus.CANCELLED):
                return
            self._status = BatchStatus.CANCELLED
        self._stop.set()
        logger.info("batch_cancelled", extra={"batch_id": self.batch_id})

    def _pause(self) -> None:
        with self._lock:
            if self._status is not BatchStatus.PROCESSING:
                return
            self._status = BatchStatus.PAUSED
        self._stop.set()
        logger.warning("batch_paused_on_error", extra={"batch_id": self.batch_id})

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, files: Sequence[BatchFile]) -> BatchReport:
        """Process ``files`` and return the report.

        Raises:
            BatchAlreadyRunningError: ``run`` was already called.
        """
        with self._lock:
            if self._started:
                raise BatchAlreadyRunningError(self.batch_id)
            self._started = True
            # A batch cancelled before it ran still reports every file as skipped
            if self._status is BatchStatus.CREATED:
                self._status = BatchStatus.PROCESSING
            self._file_status = {i: FileStatus.PENDING for i in range(len(files))}

        started_at = self._clock.now()
        start = time.monotonic()
        results: dict[int, FileResult] = {}

        with LogContext.bind(batch_id=self.batch_id):
            logger.info(
                "batch_started",
                extra={
                    "file_count": len(files),
                    "concurrency": self._options.concurrency,
                    "pause_on_error": self._options.pause_on_error,
                },
            )
            with ThreadPoolExecutor(
                max_workers=self._options.concurrency,
                thread_name_prefix="estimate-batch",
            ) as executor:
                futures = {
                    executor.submit(self._run_file, index, batch_file): index
                    for index, batch_file in enumerate(files)
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()

            with self._lock:
                if self._status is BatchStatus.PROCESSING:
                    self._status = BatchStatus.COMPLETED
                final_status = self._status

            report = BatchReport(
                batch_id=self.batch_id,
                status=final_status,
                files=tuple(results[i] for i in range(len(files))),
                started_at=started_at,
                completed_at=self._clock.now(),
                elapsed_seconds=round(time.monotonic() - start, 3),
            )
            logger.info("batch_finished", extra={"status": final_status.value, **report.statistics()})
        return report

    def _run_file(self, index: int, batch_file: BatchFile) -> FileResult:
        # Worker threads do not inherit the caller's context
        with LogContext.bind(batch_id=self.batch_id, file_name=batch_file.name):
            if self._stop.is_set():
                self._set_file_status(index, FileStatus.SKIPPED)
                logger.info("batch_file_skipped")
                return FileResult(index=index, file_name=batch_file.name, status=FileStatus.SKIPPED)

            self._set_file_status(index, FileStatus.PROCESSING)
            start = time.monotonic()
            logger.info("batch_file_started")
            try:
                if self._options.validate_first and self._validator is not None:
                    report = self._validator(batch_file.content)
                    if not report.is_valid:
                        raise EstimateValidationError(
                            batch_file.name, [issue.message for issue in report.errors],
                        )
                result = self._pipeline(batch_file)
            except Exception as exc:
                duration_ms = int((time.monotonic() - start) * 1000)
                error_code = error_code_of(exc)
                self._set_file_status(index, FileStatus.FAILED)
                logger.warning(
                    "batch_file_failed",
                    extra={"error_code": error_code, "duration_ms": duration_ms},
                    exc_info=True,
                )
                if self._options.pause_on_error:
                    self._pause()
                return FileResult(
                    index=index,
                    file_name=batch_file.name,
                    status=FileStatus.FAILED,
                    error_code=error_code,
                    error_message=str(exc),
                    duration_ms=duration_ms,
                )

            duration_ms = int((time.monotonic() - start) * 1000)
            self._set_file_status(index, FileStatus.COMPLETED)
            logger.info("batch_file_completed", extra={"duration_ms": duration_ms})
            return FileResult(
                index=index,
                file_name=batch_file.name,
                status=FileStatus.COMPLETED,
                result=result,
                duration_ms=duration_ms,
            )
