"""
Estimate ingestion configuration (``collision_ingestion.config``).

Responsibility
--------------
Tunables for the import pipeline: how many times a ParseError is retried,
per-record-type EMS minimum field counts, and how far ahead of the
current year a vehicle model year may be.

Architecture position
---------------------
Configuration schema only.  Built from the ``ingestion`` section of the
YAML file by ``collision_config.loader``; no component reads config files
or environment variables directly.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
"""

from dataclasses import dataclass, field
from typing import Self

from collision_ingestion.domain.validators import EMS_MIN_FIELD_COUNTS, MAX_YEARS_AHEAD
from collision_kernel.logging_config import get_logger

logger = get_logger("ingestion.config")


@dataclass
class IngestionConfig:
    """
    Configuration schema for estimate import.

        config = IngestionConfig(parse_retries=2)
    """

    # Extra attempts after the first ParseError
    parse_retries: int = 1

    # Overrides merged over the built-in EMS minimum field counts
    min_field_counts: dict[str, int] = field(default_factory=dict)

    max_year_ahead: int = MAX_YEARS_AHEAD

    def __post_init__(self):
        if self.parse_retries < 0:
            raise ValueError("parse_retries cannot be negative")
        if self.max_year_ahead < 0:
            raise ValueError("max_year_ahead cannot be negative")
        for record_type, count in self.min_field_counts.items():
            if count < 1:
                raise ValueError(
                    f"min_field_counts[{record_type!r}] must be at least 1, got {count}"
                )
        self.min_field_counts = {k.upper(): int(v) for k, v in self.min_field_counts.items()}

        logger.info(
            "ingestion_config_initialized",
            extra={
                "parse_retries": self.parse_retries,
                "min_field_overrides": sorted(self.min_field_counts),
                "max_year_ahead": self.max_year_ahead,
            },
        )

    def effective_min_field_counts(self) -> dict[str, int]:
        return {**EMS_MIN_FIELD_COUNTS, **self.min_field_counts}

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("ingestion_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info(
            "ingestion_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
