"""Pure batch domain types."""

from collision_batch.domain.types import (
    BatchFile,
    BatchReport,
    BatchStatus,
    FileResult,
    FileStatus,
)

__all__ = [
    "BatchFile",
    "BatchReport",
    "BatchStatus",
    "FileResult",
    "FileStatus",
]
