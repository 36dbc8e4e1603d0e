"""Estimate import services."""

from collision_ingestion.services.import_service import (
    EstimateImportService,
    ImportOutcome,
    content_checksum,
    extract_part_infos,
)

__all__ = [
    "EstimateImportService",
    "ImportOutcome",
    "content_checksum",
    "extract_part_infos",
]
