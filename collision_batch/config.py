"""
Batch processing options (``collision_batch.config``).

Built from the ``batch`` section of the YAML file by
``collision_config.loader``.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
"""

from dataclasses import dataclass
from typing import Self

from collision_kernel.logging_config import get_logger

logger = get_logger("batch.config")


@dataclass
class BatchOptions:
    """
    How a multi-file submission is worked through.

        options = BatchOptions(concurrency=5, pause_on_error=True)
    """

    # Files processed at once; each file's pipeline stays sequential
    concurrency: int = 3

    # Stop scheduling unstarted files after the first failure
    pause_on_error: bool = False

    # Run the validator before the pipeline and fail invalid files early
    validate_first: bool = True

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

        logger.info(
            "batch_options_initialized",
            extra={
                "concurrency": self.concurrency,
                "pause_on_error": self.pause_on_error,
                "validate_first": self.validate_first,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "batch_options_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
