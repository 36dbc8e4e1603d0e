"""
collision_batch -- multi-file estimate import.

Runs the estimate-to-purchase-order pipeline over a submission of many
files on a bounded worker pool, with pause-on-error and cancellation that
only ever stop files which have not started.

Architecture:
    collision_batch/ is a top-level package.  Nothing in kernel/,
    engines/, ingestion/ or modules/ imports from collision_batch.
"""

from collision_batch.config import BatchOptions
from collision_batch.domain.types import (
    BatchFile,
    BatchReport,
    BatchStatus,
    FileResult,
    FileStatus,
)
from collision_batch.services.pipeline import EstimatePipeline, PipelineResult
from collision_batch.services.processor import EstimateBatchProcessor

__all__ = [
    "BatchOptions",
    "BatchFile",
    "BatchReport",
    "BatchStatus",
    "FileResult",
    "FileStatus",
    "EstimateBatchProcessor",
    "EstimatePipeline",
    "PipelineResult",
]
