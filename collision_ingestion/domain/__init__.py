"""Pure estimate domain: types, value coercion, validators."""

from collision_ingestion.domain.types import (
    AdminInfo,
    DamageLine,
    EmsRecord,
    EstimateDocument,
    EstimateTotals,
    LineType,
    ParsedEstimate,
    PartInfo,
    PartyInfo,
    Severity,
    SourceFormat,
    TextEstimate,
    ValidationIssue,
    ValidationReport,
    ValidationSummary,
    VehicleInfo,
    XmlEstimate,
)
from collision_ingestion.domain.validators import (
    EMS_MIN_FIELD_COUNTS,
    validate_estimate,
    validate_text_estimate,
    validate_xml_estimate,
)

__all__ = [
    "AdminInfo",
    "DamageLine",
    "EmsRecord",
    "EstimateDocument",
    "EstimateTotals",
    "LineType",
    "ParsedEstimate",
    "PartInfo",
    "PartyInfo",
    "Severity",
    "SourceFormat",
    "TextEstimate",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSummary",
    "VehicleInfo",
    "XmlEstimate",
    "EMS_MIN_FIELD_COUNTS",
    "validate_estimate",
    "validate_text_estimate",
    "validate_xml_estimate",
]
