"""
collision_batch.domain.types -- Pure frozen dataclasses for batch imports.

ZERO I/O.  Enum status fields and tuples for immutable collections.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - ``BatchReport`` counts always add up to ``total``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Status enums
# =============================================================================


class FileStatus(str, Enum):
    """Per-file lifecycle status within a batch."""

    PENDING = "pending"  # Submitted, not yet picked up
    PROCESSING = "processing"  # Pipeline running
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Never started: batch paused or cancelled first


class BatchStatus(str, Enum):
    """Batch-level lifecycle status."""

    CREATED = "created"
    PROCESSING = "processing"
    COMPLETED = "completed"  # Every file ran, whatever its outcome
    PAUSED = "paused"  # pause_on_error stopped scheduling
    CANCELLED = "cancelled"


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchFile:
    """One uploaded estimate file."""

    name: str
    content: bytes | str


@dataclass(frozen=True)
class FileResult:
    """Outcome of one file's pipeline."""

    index: int
    file_name: str
    status: FileStatus
    error_code: str | None = None
    error_message: str | None = None
    result: Any = None
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchReport:
    """Immutable result of running a batch.

    ``files`` is in submission order.
    """

    batch_id: str
    status: BatchStatus
    files: tuple[FileResult, ...]
    started_at: datetime | None = None
    completed_at: datetime | None = None
    elapsed_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.files)

    def _count(self, status: FileStatus) -> int:
        return sum(1 for f in self.files if f.status == status)

    @property
    def completed(self) -> int:
        return self._count(FileStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return self._count(FileStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(FileStatus.SKIPPED)

    @property
    def success_rate(self) -> int:
        """Completed files as a whole percentage of the batch."""
        if not self.files:
            return 0
        return round(self.completed * 100 / self.total)

    def statistics(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "success_rate": self.success_rate,
            "elapsed_seconds": self.elapsed_seconds,
        }
