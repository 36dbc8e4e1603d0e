"""
collision_ingestion.domain.types -- Pure frozen dataclasses for estimate import.

ZERO I/O. Imports only from collision_engines (pricing) and the stdlib.

Two wire formats share one contract:
    XmlEstimate   -- BMS: nested key/value tree under a canonical root
    TextEstimate  -- EMS: sequence of pipe-delimited records
Both validate into one ValidationReport shape and map into one
EstimateDocument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from collision_engines.pricing import compute_line_total

_ZERO = Decimal("0")


# =============================================================================
# Enums
# =============================================================================


class SourceFormat(str, Enum):
    """Estimate interchange format."""

    BMS = "bms"  # XML
    EMS = "ems"  # pipe-delimited text


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LineType(str, Enum):
    """Damage line classification."""

    PART = "part"
    LABOR = "labor"
    PAINT = "paint"
    MATERIAL = "material"
    SUBLET = "sublet"
    OTHER = "other"
    TAX = "tax"
    DISCOUNT = "discount"

    @classmethod
    def coerce(cls, raw: str | None) -> "LineType":
        """Map a raw line type (any case) to a LineType; unknown -> OTHER."""
        if not raw:
            return cls.OTHER
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.OTHER


# =============================================================================
# Validation report
# =============================================================================


@dataclass(frozen=True)
class ValidationIssue:
    """One error or warning found while validating an estimate."""

    type: str  # e.g. "MISSING_VIN", "INSUFFICIENT_FIELDS"
    message: str
    severity: Severity
    field: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.field is not None:
            data["field"] = self.field
        if self.line is not None:
            data["line"] = self.line
        return data


@dataclass(frozen=True)
class ValidationSummary:
    total_errors: int
    total_warnings: int
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationReport:
    """
    Result of validating one estimate.

    Contract:
        ``is_valid`` is True iff there are no errors of any severity.
        Warnings never block validity.
    """

    errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    summary: ValidationSummary

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def build(
        cls,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
        details: dict[str, Any],
    ) -> "ValidationReport":
        if errors:
            message = f"File validation failed with {len(errors)} errors"
        elif warnings:
            message = f"File validation passed with {len(warnings)} warnings"
        else:
            message = "File validation passed"
        return cls(
            errors=tuple(errors),
            warnings=tuple(warnings),
            summary=ValidationSummary(
                total_errors=len(errors),
                total_warnings=len(warnings),
                message=message,
                details=details,
            ),
        )

    def issue_types(self) -> set[str]:
        return {i.type for i in self.errors} | {i.type for i in self.warnings}

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "summary": {
                "total_errors": self.summary.total_errors,
                "total_warnings": self.summary.total_warnings,
                "message": self.summary.message,
                "details": dict(self.summary.details),
            },
        }


# =============================================================================
# Intermediate trees (tagged union)
# =============================================================================


@dataclass(frozen=True)
class EmsRecord:
    """One tokenized EMS line."""

    line_number: int  # 1-indexed
    record_type: str  # upper-cased first field; "" for blank lines
    fields: tuple[str, ...]  # all fields including the record type
    raw: str
    malformed: bool = False  # trailing unescaped backslash

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def get(self, index: int) -> str:
        """Field at ``index`` or "" when the record is shorter."""
        return self.fields[index] if index < len(self.fields) else ""


@dataclass(frozen=True)
class XmlEstimate:
    """BMS estimate as a nested key/value tree under a canonical root."""

    root: str
    original_root: str
    tree: dict[str, Any]

    source_format = SourceFormat.BMS


@dataclass(frozen=True)
class TextEstimate:
    """EMS estimate as an ordered sequence of records."""

    records: tuple[EmsRecord, ...]

    source_format = SourceFormat.EMS

    def of_type(self, record_type: str) -> list[EmsRecord]:
        return [r for r in self.records if r.record_type == record_type]


ParsedEstimate = XmlEstimate | TextEstimate


# =============================================================================
# Canonical document
# =============================================================================


@dataclass(frozen=True)
class PartyInfo:
    """Customer, policy holder, insurer, adjuster or estimator."""

    first_name: str = ""
    last_name: str = ""
    company: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.company


@dataclass(frozen=True)
class VehicleInfo:
    vin: str = ""
    year: int | None = None
    make: str = ""
    model: str = ""
    trim: str = ""
    license_plate: str = ""
    odometer: int | None = None
    color: str = ""


@dataclass(frozen=True)
class AdminInfo:
    policy_holder: PartyInfo = field(default_factory=PartyInfo)
    insurer: PartyInfo = field(default_factory=PartyInfo)
    adjuster: PartyInfo = field(default_factory=PartyInfo)
    estimator: PartyInfo = field(default_factory=PartyInfo)
    claim_number: str = ""
    policy_number: str = ""
    loss_date: date | None = None
    deductible: Decimal = _ZERO


@dataclass(frozen=True)
class EstimateTotals:
    labor: Decimal = _ZERO
    parts: Decimal = _ZERO
    materials: Decimal = _ZERO
    tax: Decimal = _ZERO
    deductible: Decimal = _ZERO
    gross_total: Decimal = _ZERO
    net_total: Decimal = _ZERO


@dataclass(frozen=True)
class DamageLine:
    """
    One row of an estimate.

    ``line_total`` is computed, never supplied:
    ``max(0, quantity * unit_price * (1 - discount_pct/100) - discount_amount)``
    rounded to cents.
    """

    line_type: LineType
    description: str = ""
    operation_code: str = ""
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = _ZERO
    discount_pct: Decimal = _ZERO
    discount_amount: Decimal = _ZERO
    line_number: int | None = None
    raw_line_type: str = ""
    # part payload
    part_number: str = ""
    oem_part_number: str = ""
    supplier_ref: str = ""
    source_code: str = ""
    part_type: str = ""
    taxable: bool = True
    # labor payload
    labor_hours: Decimal | None = None
    labor_rate: Decimal | None = None
    labor_type: str = ""
    # paint payload
    paint_coverage: str = ""
    paint_coats: int | None = None

    line_total: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "line_total",
            compute_line_total(
                self.quantity, self.unit_price, self.discount_pct, self.discount_amount,
            ),
        )

    @property
    def is_part(self) -> bool:
        return self.line_type is LineType.PART


@dataclass(frozen=True)
class PartInfo:
    """What the vendor resolver needs to know about one part line."""

    supplier_ref: str = ""
    source_code: str = ""
    part_type: str = ""
    part_number: str = ""
    description: str = ""


@dataclass(frozen=True)
class EstimateDocument:
    """Canonical parse result. Immutable; source for downstream entity creation."""

    source_format: SourceFormat
    customer: PartyInfo
    vehicle: VehicleInfo
    admin: AdminInfo
    lines: tuple[DamageLine, ...]
    totals: EstimateTotals
    ro_number: str = ""
    shop_name: str = ""
    notes: tuple[str, ...] = ()

    def part_lines(self) -> tuple[DamageLine, ...]:
        return tuple(line for line in self.lines if line.is_part)

    def part_infos(self) -> list[PartInfo]:
        return [
            PartInfo(
                supplier_ref=line.supplier_ref,
                source_code=line.source_code,
                part_type=line.part_type,
                part_number=line.part_number,
                description=line.description,
            )
            for line in self.part_lines()
        ]
