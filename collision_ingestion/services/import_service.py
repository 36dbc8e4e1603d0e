"""
Import service: decode -> parse -> validate -> map (one estimate file).

Orchestrates the format adapters and the domain validators.  Pure with
respect to the database: the procurement module turns the resulting
EstimateDocument into PartLines.

Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from collision_ingestion.adapters.base import EstimateAdapter, decode_content, sniff_format
from collision_ingestion.adapters.registry import default_adapters
from collision_ingestion.config import IngestionConfig
from collision_ingestion.domain.types import (
    EstimateDocument,
    ParsedEstimate,
    PartInfo,
    Severity,
    SourceFormat,
    ValidationIssue,
    ValidationReport,
)
from collision_ingestion.domain.validators import validate_estimate
from collision_kernel.domain.clock import Clock, SystemClock
from collision_kernel.exceptions import ParseError
from collision_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.import_service")


@dataclass(frozen=True)
class ImportOutcome:
    """Result of importing one estimate file.

    ``document`` is None when the report is invalid.
    """

    file_name: str
    source_format: SourceFormat
    report: ValidationReport
    document: EstimateDocument | None
    checksum: str
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.document is not None


def extract_part_infos(document: EstimateDocument) -> list[PartInfo]:
    """Resolver inputs for every part line of the document."""
    return document.part_infos()


def content_checksum(content: bytes | str) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


class EstimateImportService:
    """Imports one estimate at a time. Stateless apart from configuration."""

    def __init__(
        self,
        clock: Clock | None = None,
        config: IngestionConfig | None = None,
        adapters: dict[SourceFormat, EstimateAdapter] | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or IngestionConfig()
        self._adapters = adapters if adapters is not None else default_adapters()

    def _validate(self, parsed: ParsedEstimate) -> ValidationReport:
        return validate_estimate(
            parsed,
            current_year=self._clock.today().year,
            min_field_counts=self._config.effective_min_field_counts(),
            max_years_ahead=self._config.max_year_ahead,
        )

    def _parse(self, text: str, source_format: SourceFormat) -> tuple[ParsedEstimate, int]:
        adapter = self._adapters[source_format]
        attempts = 0
        while True:
            attempts += 1
            try:
                return adapter.parse(text), attempts
            except ParseError as exc:
                if attempts > self._config.parse_retries:
                    logger.warning(
                        "estimate_parse_failed",
                        extra={
                            "source_format": source_format.value,
                            "attempts": attempts,
                            "reason": exc.reason,
                            "line": exc.line,
                            "column": exc.column,
                        },
                    )
                    raise
                logger.info(
                    "estimate_parse_retry",
                    extra={"source_format": source_format.value, "attempt": attempts},
                )

    def preflight(self, content: bytes | str) -> ValidationReport:
        """Validate without mapping. A parse failure becomes a critical issue."""
        text = decode_content(content)
        source_format = sniff_format(text)
        try:
            parsed = self._adapters[source_format].parse(text)
        except ParseError as exc:
            issue = ValidationIssue(
                type="XML_PARSING_ERROR",
                message=f"XML parsing failed: {exc.reason}",
                severity=Severity.CRITICAL,
                line=exc.line,
            )
            return ValidationReport.build([issue], [], {"source_format": source_format.value})
        return self._validate(parsed)

    def import_estimate(self, content: bytes | str, file_name: str = "") -> ImportOutcome:
        """
        Parse, validate and (when valid) map one estimate.

        Raises:
            ParseError: the content is malformed XML after all retries.
        """
        checksum = content_checksum(content)
        with LogContext.bind(file_name=file_name or None):
            text = decode_content(content)
            source_format = sniff_format(text)
            logger.info(
                "estimate_import_started",
                extra={"source_format": source_format.value, "checksum": checksum},
            )

            parsed, attempts = self._parse(text, source_format)
            report = self._validate(parsed)

            if not report.is_valid:
                logger.warning(
                    "estimate_validation_failed",
                    extra={
                        "source_format": source_format.value,
                        "error_count": len(report.errors),
                        "error_types": sorted({e.type for e in report.errors}),
                    },
                )
                return ImportOutcome(
                    file_name=file_name,
                    source_format=source_format,
                    report=report,
                    document=None,
                    checksum=checksum,
                    attempts=attempts,
                )

            document = self._adapters[source_format].to_document(parsed)
            logger.info(
                "estimate_import_completed",
                extra={
                    "source_format": source_format.value,
                    "line_count": len(document.lines),
                    "part_line_count": len(document.part_lines()),
                    "warning_count": len(report.warnings),
                    "ro_number": document.ro_number,
                },
            )
            return ImportOutcome(
                file_name=file_name,
                source_format=source_format,
                report=report,
                document=document,
                checksum=checksum,
                attempts=attempts,
            )
