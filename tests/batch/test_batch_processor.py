"""Tests for EstimateBatchProcessor scheduling, pause, cancel and reporting."""

import threading
from threading import Barrier

import pytest
from sqlalchemy.exc import OperationalError

from collision_batch.config import BatchOptions
from collision_batch.domain.types import (
    BatchFile,
    BatchReport,
    BatchStatus,
    FileResult,
    FileStatus,
)
from collision_batch.services.processor import EstimateBatchProcessor
from collision_ingestion.services.import_service import EstimateImportService
from collision_kernel.exceptions import BatchAlreadyRunningError


def _files(*names):
    return [BatchFile(name=name, content=f"content of {name}") for name in names]


def _echo(batch_file):
    return batch_file.name.upper()


def _fail_on_bad(batch_file):
    if batch_file.name.startswith("bad"):
        raise ValueError(f"cannot read {batch_file.name}")
    return batch_file.name


class TestRun:
    def test_all_files_complete_in_submission_order(self, deterministic_clock):
        processor = EstimateBatchProcessor(_echo, BatchOptions(concurrency=3), clock=deterministic_clock)

        report = processor.run(_files("a.xml", "b.xml", "c.ems", "d.xml"))

        assert report.status is BatchStatus.COMPLETED
        assert [f.file_name for f in report.files] == ["a.xml", "b.xml", "c.ems", "d.xml"]
        assert [f.result for f in report.files] == ["A.XML", "B.XML", "C.EMS", "D.XML"]
        assert report.completed == 4
        assert report.success_rate == 100
        assert report.started_at == deterministic_clock.now()
        assert processor.status is BatchStatus.COMPLETED
        assert set(processor.file_statuses().values()) == {FileStatus.COMPLETED}

    def test_failure_does_not_abort_siblings(self):
        report = EstimateBatchProcessor(_fail_on_bad).run(_files("a.xml", "bad.xml", "c.xml"))

        assert report.status is BatchStatus.COMPLETED
        assert [f.status for f in report.files] == [
            FileStatus.COMPLETED, FileStatus.FAILED, FileStatus.COMPLETED,
        ]
        failed = report.files[1]
        assert failed.error_code == "ValueError"
        assert failed.error_message == "cannot read bad.xml"
        assert report.success_rate == 67

    def test_database_failure_is_reported_by_class_name(self):
        def pipeline(batch_file):
            raise OperationalError("INSERT INTO part_lines", {}, Exception("database is locked"))

        report = EstimateBatchProcessor(pipeline).run(_files("a.xml"))

        assert report.files[0].error_code == "OperationalError"

    def test_concurrency_is_bounded(self):
        running = 0
        peak = 0
        lock = threading.Lock()
        # Three files must be in flight together for the barrier to release
        barrier = Barrier(3, timeout=10)

        def pipeline(batch_file):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            barrier.wait()
            with lock:
                running -= 1
            return batch_file.name

        report = EstimateBatchProcessor(pipeline, BatchOptions(concurrency=3)).run(
            _files(*(f"{i}.xml" for i in range(6))),
        )

        assert report.completed == 6
        assert peak == 3

    def test_empty_batch(self):
        report = EstimateBatchProcessor(_echo).run([])
        assert report.status is BatchStatus.COMPLETED
        assert report.total == 0
        assert report.success_rate == 0

    def test_worker_logs_carry_batch_and_file(self, captured_logs):
        processor = EstimateBatchProcessor(_echo, batch_id="batch-42")
        processor.run(_files("a.xml", "b.xml"))

        done = [r for r in captured_logs() if r["message"] == "batch_file_completed"]
        assert {r["file_name"] for r in done} == {"a.xml", "b.xml"}
        assert {r["batch_id"] for r in done} == {"batch-42"}

    def test_runs_only_once(self):
        processor = EstimateBatchProcessor(_echo)
        processor.run(_files("a.xml"))
        with pytest.raises(BatchAlreadyRunningError):
            processor.run(_files("a.xml"))


class TestPauseAndCancel:
    def test_pause_on_error_skips_unstarted_files(self):
        options = BatchOptions(concurrency=1, pause_on_error=True)
        report = EstimateBatchProcessor(_fail_on_bad, options).run(
            _files("a.xml", "bad.xml", "c.xml", "d.xml"),
        )

        assert report.status is BatchStatus.PAUSED
        assert [f.status for f in report.files] == [
            FileStatus.COMPLETED, FileStatus.FAILED, FileStatus.SKIPPED, FileStatus.SKIPPED,
        ]
        assert report.statistics()["skipped"] == 2

    def test_cancel_lets_the_running_file_finish(self):
        processor = None

        def pipeline(batch_file):
            if batch_file.name == "a.xml":
                processor.cancel()
            return batch_file.name

        processor = EstimateBatchProcessor(pipeline, BatchOptions(concurrency=1))
        report = processor.run(_files("a.xml", "b.xml", "c.xml"))

        assert report.status is BatchStatus.CANCELLED
        assert [f.status for f in report.files] == [
            FileStatus.COMPLETED, FileStatus.SKIPPED, FileStatus.SKIPPED,
        ]

    def test_cancel_before_run_skips_everything(self):
        processor = EstimateBatchProcessor(_echo)
        processor.cancel()

        report = processor.run(_files("a.xml", "b.xml"))

        assert report.status is BatchStatus.CANCELLED
        assert report.skipped == 2

    def test_cancel_after_completion_is_ignored(self):
        processor = EstimateBatchProcessor(_echo)
        processor.run(_files("a.xml"))
        processor.cancel()
        assert processor.status is BatchStatus.COMPLETED


class TestValidateFirst:
    def test_invalid_files_fail_before_the_pipeline(self, deterministic_clock, ems_estimate):
        calls = []

        def pipeline(batch_file):
            calls.append(batch_file.name)
            return batch_file.name

        validator = EstimateImportService(clock=deterministic_clock).preflight
        processor = EstimateBatchProcessor(pipeline, validator=validator)
        report = processor.run([
            BatchFile("camry.ems", ems_estimate),
            BatchFile("partial.ems", "PA|123|Bumper|1"),
        ])

        assert calls == ["camry.ems"]
        failed = report.files[1]
        assert failed.status is FileStatus.FAILED
        assert failed.error_code == "ESTIMATE_INVALID"

    def test_validation_can_be_turned_off(self):
        def reject_everything(content):
            raise AssertionError("validator should not run")

        options = BatchOptions(validate_first=False)
        report = EstimateBatchProcessor(_echo, options, validator=reject_everything).run(_files("a.xml"))
        assert report.completed == 1


class TestBatchTypes:
    def test_options_validation(self):
        with pytest.raises(ValueError):
            BatchOptions(concurrency=0)

    def test_options_from_dict(self):
        options = BatchOptions.from_dict({"concurrency": 5, "pause_on_error": True})
        assert (options.concurrency, options.pause_on_error, options.validate_first) == (5, True, True)

    def test_report_statistics(self):
        report = BatchReport(
            batch_id="b",
            status=BatchStatus.COMPLETED,
            files=(
                FileResult(0, "a", FileStatus.COMPLETED),
                FileResult(1, "b", FileStatus.FAILED, error_code="PARSE_ERROR"),
                FileResult(2, "c", FileStatus.COMPLETED),
            ),
            elapsed_seconds=1.5,
        )
        assert report.statistics() == {
            "total": 3,
            "completed": 2,
            "failed": 1,
            "skipped": 0,
            "success_rate": 67,
            "elapsed_seconds": 1.5,
        }
