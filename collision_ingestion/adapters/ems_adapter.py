"""
EMS (pipe-delimited text) estimate adapter.

Line protocol:
    RT|field1|field2|...
    ``\\`` escapes the next character (``\\|`` is a literal pipe, ``\\\\`` a
    literal backslash).  Fields are trimmed; a trailing empty field left by
    a terminating pipe is dropped.  A trailing unescaped ``\\`` marks the
    record malformed; the validator reports it.

Parsing text never raises: structure problems are validation issues.

The HD header describes the shop only; the repair order number comes from
the EST estimate record when the file carries one.
"""

from __future__ import annotations

from decimal import Decimal

from collision_ingestion.domain.types import (
    AdminInfo,
    DamageLine,
    EmsRecord,
    EstimateDocument,
    EstimateTotals,
    LineType,
    PartyInfo,
    SourceFormat,
    TextEstimate,
    VehicleInfo,
)
from collision_ingestion.domain.values import (
    format_phone,
    parse_date,
    parse_decimal,
    parse_int,
)
from collision_kernel.logging_config import get_logger

logger = get_logger("ingestion.ems")

DELIMITER = "|"
ESCAPE = "\\"

_ZERO = Decimal("0")

# TO record labels -> EstimateTotals field
_TOTAL_LABELS = {
    "LABOR": "labor",
    "LABOR_TOTAL": "labor",
    "PARTS": "parts",
    "PARTS_TOTAL": "parts",
    "MATERIALS": "materials",
    "MATERIAL": "materials",
    "PAINT": "materials",
    "TAX": "tax",
    "DEDUCTIBLE": "deductible",
    "GROSS": "gross_total",
    "GROSS_TOTAL": "gross_total",
    "TOTAL": "gross_total",
    "NET": "net_total",
    "NET_TOTAL": "net_total",
}


def split_ems_line(line: str) -> tuple[list[str], bool]:
    """Split one EMS line into trimmed fields.

    Returns ``(fields, malformed)`` where ``malformed`` is True when the line
    ends in an unescaped backslash.
    """
    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == ESCAPE:
            escaped = True
        elif char == DELIMITER:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    fields.append("".join(current).strip())

    if len(fields) > 1 and fields[-1] == "":
        fields.pop()
    return fields, escaped


def parse_ems(text: str) -> TextEstimate:
    lines = text.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()

    records: list[EmsRecord] = []
    for number, raw in enumerate(lines, start=1):
        content = raw.rstrip()
        if not content.strip():
            records.append(EmsRecord(line_number=number, record_type="", fields=(), raw=raw))
            continue
        fields, malformed = split_ems_line(content)
        records.append(EmsRecord(
            line_number=number,
            record_type=fields[0].upper(),
            fields=tuple(fields),
            raw=raw,
            malformed=malformed,
        ))

    logger.debug("ems_parsed", extra={"record_count": len(records)})
    return TextEstimate(records=tuple(records))


# -----------------------------------------------------------------------------
# Records -> EstimateDocument
# -----------------------------------------------------------------------------


def _amount(record: EmsRecord, index: int) -> Decimal:
    return parse_decimal(record.get(index)) or _ZERO


def _line_item(record: EmsRecord, index: int) -> DamageLine:
    # LI|type|desc|qty|price|extended|lineNo|partNo
    raw_type = record.get(1)
    line_type = LineType.coerce(raw_type)
    part_number = record.get(7)
    return DamageLine(
        line_type=line_type,
        raw_line_type=raw_type,
        description=record.get(2),
        quantity=parse_decimal(record.get(3)) or Decimal("1"),
        unit_price=_amount(record, 4),
        line_number=parse_int(record.get(6)) or index,
        part_number=part_number,
    )


def _part_item(record: EmsRecord, index: int) -> DamageLine:
    # PA|partNo|desc|qty|price|oemPrice|partType|source
    return DamageLine(
        line_type=LineType.PART,
        raw_line_type="PA",
        part_number=record.get(1),
        description=record.get(2),
        quantity=parse_decimal(record.get(3)) or Decimal("1"),
        unit_price=_amount(record, 4),
        part_type=record.get(6),
        source_code=record.get(7),
        line_number=index,
    )


def _labor_item(record: EmsRecord, index: int) -> DamageLine:
    # LA|op|desc|hours|rate|extended|laborType
    hours = parse_decimal(record.get(3))
    rate = parse_decimal(record.get(4))
    labor_type = record.get(6)
    line_type = LineType.PAINT if labor_type.lower() in ("paint", "refinish") else LineType.LABOR
    return DamageLine(
        line_type=line_type,
        raw_line_type="LA",
        operation_code=record.get(1),
        description=record.get(2),
        quantity=hours if hours is not None else _ZERO,
        unit_price=rate if rate is not None else _ZERO,
        labor_hours=hours,
        labor_rate=rate,
        labor_type=labor_type,
        line_number=index,
    )


def ems_to_document(estimate: TextEstimate) -> EstimateDocument:
    shop_name = ""
    ro_number = ""
    vehicle = VehicleInfo()
    customer = PartyInfo()
    insurer = PartyInfo()
    adjuster = PartyInfo()
    claim_number = policy_number = ""
    loss_date = None
    deductible = _ZERO
    totals: dict[str, Decimal] = {}
    tax_records = _ZERO
    lines: list[DamageLine] = []
    notes: list[str] = []

    for record in estimate.records:
        rtype = record.record_type
        if rtype == "HD":
            # HD|shop name|address|city|state|zip|phone|email
            shop_name = record.get(1)
        elif rtype == "EST":
            # EST|estimate number|date|status|...; the estimate number is the RO
            ro_number = record.get(1)
        elif rtype == "VH":
            vehicle = VehicleInfo(
                year=parse_int(record.get(1)),
                make=record.get(2),
                model=record.get(3),
                vin=record.get(4),
                license_plate=record.get(5),
                odometer=parse_int(record.get(6)),
                color=record.get(7),
            )
        elif rtype == "CO":
            customer = PartyInfo(
                first_name=record.get(1),
                last_name=record.get(2),
                phone=format_phone(record.get(3)),
                address=record.get(4),
                city=record.get(5),
                state=record.get(6),
                zip_code=record.get(7),
                email=record.get(8),
            )
        elif rtype == "IN":
            # IN|company|policy|agent|agentPhone (agent name not carried)
            insurer = PartyInfo(
                company=record.get(1),
                phone=format_phone(record.get(4)),
            )
            policy_number = record.get(2)
        elif rtype == "CL":
            claim_number = record.get(1)
            loss_date = parse_date(record.get(2))
            deductible = _amount(record, 3)
            if record.get(4):
                adjuster = PartyInfo(company=record.get(4), phone=format_phone(record.get(5)))
        elif rtype == "LI":
            lines.append(_line_item(record, len(lines) + 1))
        elif rtype == "PA":
            lines.append(_part_item(record, len(lines) + 1))
        elif rtype == "LA":
            lines.append(_labor_item(record, len(lines) + 1))
        elif rtype == "TO":
            pairs = record.fields[1:]
            for label, amount in zip(pairs[0::2], pairs[1::2]):
                key = _TOTAL_LABELS.get(label.upper().replace(" ", "_"))
                value = parse_decimal(amount)
                if key and value is not None:
                    totals[key] = value
        elif rtype == "TX":
            tax_records += _amount(record, 3)
        elif rtype == "DE":
            deductible = _amount(record, 1)
        elif rtype == "NO":
            notes.append(DELIMITER.join(record.fields[1:]))

    tax = totals.get("tax", _ZERO) + tax_records
    return EstimateDocument(
        source_format=SourceFormat.EMS,
        customer=customer,
        vehicle=vehicle,
        admin=AdminInfo(
            policy_holder=customer,
            insurer=insurer,
            adjuster=adjuster,
            claim_number=claim_number,
            policy_number=policy_number,
            loss_date=loss_date,
            deductible=deductible,
        ),
        lines=tuple(lines),
        totals=EstimateTotals(
            labor=totals.get("labor", _ZERO),
            parts=totals.get("parts", _ZERO),
            materials=totals.get("materials", _ZERO),
            tax=tax,
            deductible=totals.get("deductible", deductible),
            gross_total=totals.get("gross_total", _ZERO),
            net_total=totals.get("net_total", _ZERO),
        ),
        ro_number=ro_number,
        shop_name=shop_name,
        notes=tuple(notes),
    )


class EmsEstimateAdapter:
    """EMS pipe-delimited estimate adapter."""

    source_format = SourceFormat.EMS

    def parse(self, text: str) -> TextEstimate:
        return parse_ems(text)

    def to_document(self, parsed: TextEstimate) -> EstimateDocument:
        return ems_to_document(parsed)
