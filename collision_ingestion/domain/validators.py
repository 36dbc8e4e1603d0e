"""
Estimate validators: one pipeline per wire format, one report shape.

Architecture: collision_ingestion/domain. ZERO I/O.  The current year is a
parameter so that the "vehicle year not in the future" rule is
deterministic; callers pass ``clock.today().year``.

Severity policy:
    errors   -- block validity (structure is unusable downstream)
    warnings -- informational; never block validity
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from collision_ingestion.domain.tree import as_list, dig, dig_text, is_present
from collision_ingestion.domain.types import (
    ParsedEstimate,
    Severity,
    TextEstimate,
    ValidationIssue,
    ValidationReport,
    XmlEstimate,
)
from collision_ingestion.domain.values import parse_decimal, parse_int

VIN_LENGTH = 17
MIN_VEHICLE_YEAR = 1900
MAX_YEARS_AHEAD = 2

REQUIRED_BMS_ELEMENTS = ("VehicleInfo", "AdminInfo")
REQUIRED_EMS_RECORD_TYPES = ("HD", "VH", "CO")

# Minimum number of fields (record type included) per EMS record type
EMS_MIN_FIELD_COUNTS: Mapping[str, int] = {
    "HD": 2,  # type, shop name
    "EST": 2,  # type, estimate (repair order) number
    "VH": 4,  # type, year, make, model
    "CO": 3,  # type, first name, last name
    "IN": 2,  # type, company
    "CL": 2,  # type, claim number
    "LI": 4,  # type, line type, description, quantity
    "PA": 4,  # type, part number, description, quantity
    "LA": 4,  # type, operation, description, hours
    "TO": 3,  # type, label, amount
    "TX": 3,  # type, tax type, rate
    "DE": 2,  # type, amount
    "NO": 2,  # type, text
}

# Field positions that must hold numbers, per record type
_EMS_NUMERIC_FIELDS: Mapping[str, tuple[tuple[int, str], ...]] = {
    "LI": ((3, "quantity"), (4, "unit price"), (5, "extended amount")),
    "PA": ((3, "quantity"), (4, "price"), (5, "OEM price")),
    "LA": ((3, "hours"), (4, "rate"), (5, "extended amount")),
    "TO": ((2, "amount"),),
    "TX": ((2, "rate"), (3, "amount")),
    "DE": ((1, "amount"),),
}


def _year_issue(
    raw: str,
    current_year: int,
    line: int | None,
    field: str,
    max_years_ahead: int = MAX_YEARS_AHEAD,
) -> ValidationIssue | None:
    year = parse_int(raw)
    if year is None or not (MIN_VEHICLE_YEAR <= year <= current_year + max_years_ahead):
        where = f"Line {line}: " if line is not None else ""
        return ValidationIssue(
            type="INVALID_YEAR",
            message=f"{where}Invalid vehicle year '{raw}'",
            severity=Severity.MEDIUM,
            field=field,
            line=line,
        )
    return None


def _vin_issue(vin: str, line: int | None = None) -> ValidationIssue | None:
    if len(vin) != VIN_LENGTH:
        return ValidationIssue(
            type="INVALID_VIN",
            message=f"VIN should be {VIN_LENGTH} characters long, found {len(vin)}",
            severity=Severity.MEDIUM,
            field="vin",
            line=line,
        )
    return None


# -----------------------------------------------------------------------------
# XML (BMS) pipeline
# -----------------------------------------------------------------------------


def validate_xml_estimate(
    estimate: XmlEstimate,
    current_year: int,
    max_years_ahead: int = MAX_YEARS_AHEAD,
) -> ValidationReport:
    """Structural and field checks over the BMS tree."""
    root = estimate.tree
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    for element in REQUIRED_BMS_ELEMENTS:
        if not is_present(root.get(element)):
            errors.append(ValidationIssue(
                type="MISSING_ELEMENT",
                message=f"Required element '{element}' is missing",
                severity=Severity.HIGH,
                field=element,
            ))

    vehicle = root.get("VehicleInfo")
    if is_present(vehicle):
        _check_bms_vehicle(vehicle, current_year, max_years_ahead, warnings)

    admin = root.get("AdminInfo")
    if is_present(admin):
        if not is_present(dig(admin, "PolicyHolder")):
            warnings.append(ValidationIssue(
                type="MISSING_POLICY_HOLDER",
                message="Policy holder information is missing",
                severity=Severity.MEDIUM,
                field="AdminInfo.PolicyHolder",
            ))
        if not is_present(dig(admin, "InsuranceCompany")):
            warnings.append(ValidationIssue(
                type="MISSING_INSURANCE",
                message="Insurance company information is missing",
                severity=Severity.LOW,
                field="AdminInfo.InsuranceCompany",
            ))

    damage_lines = as_list(root.get("DamageLineInfo"))
    for index, line in enumerate(damage_lines, start=1):
        _check_bms_damage_line(line, index, errors, warnings)

    totals = root.get("RepairTotalsInfo")
    if is_present(totals):
        summary = as_list(dig(totals, "SummaryTotalsInfo"))
        if not summary or not any(is_present(s) for s in summary):
            warnings.append(ValidationIssue(
                type="MISSING_SUMMARY_TOTALS",
                message="Summary totals information is missing",
                severity=Severity.MEDIUM,
                field="RepairTotalsInfo.SummaryTotalsInfo",
            ))
        for entry in summary:
            raw = dig_text(entry, "TotalAmt")
            if raw and parse_decimal(raw) is None:
                warnings.append(ValidationIssue(
                    type="INVALID_AMOUNT",
                    message=f"Invalid summary total amount '{raw}'",
                    severity=Severity.MEDIUM,
                    field="RepairTotalsInfo.SummaryTotalsInfo.TotalAmt",
                ))

    details = {
        "root": estimate.root,
        "original_root": estimate.original_root,
        "has_vehicle_info": is_present(vehicle),
        "has_admin_info": is_present(admin),
        "has_damage_lines": bool(damage_lines),
        "damage_line_count": len(damage_lines),
        "has_totals": is_present(totals),
        "has_claim_info": is_present(root.get("ClaimInfo")),
    }
    return ValidationReport.build(errors, warnings, details)


def _check_bms_vehicle(
    vehicle: Any,
    current_year: int,
    max_years_ahead: int,
    warnings: list[ValidationIssue],
) -> None:
    vin = dig_text(vehicle, "VINInfo", "VIN", "VINNum")
    if not vin:
        warnings.append(ValidationIssue(
            type="MISSING_VIN",
            message="Vehicle VIN is missing",
            severity=Severity.MEDIUM,
            field="vin",
        ))
    else:
        issue = _vin_issue(vin)
        if issue:
            warnings.append(issue)

    desc = dig(vehicle, "VehicleDesc")
    if not is_present(desc):
        warnings.append(ValidationIssue(
            type="MISSING_VEHICLE_DESC",
            message="Vehicle description is missing",
            severity=Severity.LOW,
            field="VehicleInfo.VehicleDesc",
        ))
        return

    for element, issue_type, label in (
        ("ModelYear", "MISSING_YEAR", "year"),
        ("MakeDesc", "MISSING_MAKE", "make"),
        ("ModelName", "MISSING_MODEL", "model"),
    ):
        if not dig_text(desc, element):
            warnings.append(ValidationIssue(
                type=issue_type,
                message=f"Vehicle {label} is missing",
                severity=Severity.MEDIUM,
                field=f"VehicleInfo.VehicleDesc.{element}",
            ))

    year = dig_text(desc, "ModelYear")
    if year:
        issue = _year_issue(
            year, current_year, None, "VehicleInfo.VehicleDesc.ModelYear", max_years_ahead,
        )
        if issue:
            warnings.append(issue)


def _check_bms_damage_line(
    line: Any,
    index: int,
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    line_type = dig_text(line, "LineType")
    if not line_type:
        errors.append(ValidationIssue(
            type="MISSING_LINE_TYPE",
            message=f"Damage line {index}: Line type is missing",
            severity=Severity.HIGH,
            field="LineType",
            line=index,
        ))
    if not dig_text(line, "LineDesc"):
        warnings.append(ValidationIssue(
            type="MISSING_LINE_DESC",
            message=f"Damage line {index}: Line description is missing",
            severity=Severity.LOW,
            field="LineDesc",
            line=index,
        ))

    kind = line_type.lower()
    part = dig(line, "PartInfo")
    if kind == "part" and is_present(part):
        if not dig_text(part, "PartNum") and not dig_text(part, "OEMPartNum"):
            warnings.append(ValidationIssue(
                type="MISSING_PART_NUMBER",
                message=f"Damage line {index}: Part number is missing",
                severity=Severity.MEDIUM,
                field="PartInfo.PartNum",
                line=index,
            ))
        price = dig_text(part, "PartPrice")
        if price and parse_decimal(price) is None:
            warnings.append(ValidationIssue(
                type="INVALID_AMOUNT",
                message=f"Damage line {index}: Invalid part price '{price}'",
                severity=Severity.MEDIUM,
                field="PartInfo.PartPrice",
                line=index,
            ))

    labor = dig(line, "LaborInfo")
    if kind == "labor" and is_present(labor) and not dig_text(labor, "LaborHours"):
        warnings.append(ValidationIssue(
            type="MISSING_LABOR_HOURS",
            message=f"Damage line {index}: Labor hours is missing",
            severity=Severity.MEDIUM,
            field="LaborInfo.LaborHours",
            line=index,
        ))


# -----------------------------------------------------------------------------
# Text (EMS) pipeline
# -----------------------------------------------------------------------------


def validate_text_estimate(
    estimate: TextEstimate,
    current_year: int,
    min_field_counts: Mapping[str, int] = EMS_MIN_FIELD_COUNTS,
    max_years_ahead: int = MAX_YEARS_AHEAD,
) -> ValidationReport:
    """Record-by-record checks, then required record types."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    record_types: set[str] = set()
    non_empty = 0

    for record in estimate.records:
        n = record.line_number
        if not record.record_type:
            warnings.append(ValidationIssue(
                type="EMPTY_LINE",
                message=f"Line {n}: Empty line",
                severity=Severity.LOW,
                line=n,
            ))
            continue

        non_empty += 1
        rtype = record.record_type
        record_types.add(rtype)

        if record.malformed:
            errors.append(ValidationIssue(
                type="MALFORMED_ESCAPE",
                message=f"Line {n}: Trailing unescaped '\\' is not allowed",
                severity=Severity.HIGH,
                field=rtype,
                line=n,
            ))

        if rtype not in min_field_counts:
            warnings.append(ValidationIssue(
                type="UNKNOWN_RECORD",
                message=f"Line {n}: Unknown record type '{rtype}'",
                severity=Severity.LOW,
                field=rtype,
                line=n,
            ))
            continue

        required = min_field_counts[rtype]
        if record.field_count < required:
            errors.append(ValidationIssue(
                type="INSUFFICIENT_FIELDS",
                message=(
                    f"Line {n}: Record type '{rtype}' requires at least "
                    f"{required} fields, found {record.field_count}"
                ),
                severity=Severity.HIGH,
                field=rtype,
                line=n,
            ))

        if rtype == "VH":
            if record.get(1):
                issue = _year_issue(record.get(1), current_year, n, "VH.year", max_years_ahead)
                if issue:
                    warnings.append(issue)
            if record.get(4):
                issue = _vin_issue(record.get(4), n)
                if issue:
                    warnings.append(issue)

        for position, label in _EMS_NUMERIC_FIELDS.get(rtype, ()):
            raw = record.get(position)
            if raw and parse_decimal(raw) is None:
                warnings.append(ValidationIssue(
                    type="INVALID_AMOUNT",
                    message=f"Line {n}: Invalid {label} '{raw}'",
                    severity=Severity.MEDIUM,
                    field=f"{rtype}.{label}",
                    line=n,
                ))

    for required_type in REQUIRED_EMS_RECORD_TYPES:
        if required_type not in record_types:
            errors.append(ValidationIssue(
                type="MISSING_RECORD_TYPE",
                message=f"Required record type '{required_type}' is missing",
                severity=Severity.HIGH,
                field=required_type,
            ))

    details = {
        "total_lines": non_empty,
        "record_types": sorted(record_types),
        "has_header": "HD" in record_types,
        "has_vehicle": "VH" in record_types,
        "has_customer": "CO" in record_types,
        "has_line_items": bool(record_types & {"LI", "PA", "LA"}),
    }
    return ValidationReport.build(errors, warnings, details)


def validate_estimate(
    parsed: ParsedEstimate,
    current_year: int,
    min_field_counts: Mapping[str, int] = EMS_MIN_FIELD_COUNTS,
    max_years_ahead: int = MAX_YEARS_AHEAD,
) -> ValidationReport:
    """Dispatch to the pipeline of the estimate's format."""
    if isinstance(parsed, XmlEstimate):
        return validate_xml_estimate(parsed, current_year, max_years_ahead)
    if isinstance(parsed, TextEstimate):
        return validate_text_estimate(parsed, current_year, min_field_counts, max_years_ahead)
    raise TypeError(f"Unsupported estimate type: {type(parsed).__name__}")
