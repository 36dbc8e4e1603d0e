"""
BMS (XML) estimate adapter.

parse: xml.etree.ElementTree -> namespace-free key/value tree under the
canonical root.  to_document: CIECA BMS element layout -> EstimateDocument.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ElementTree  # noqa: N817
from decimal import Decimal
from typing import Any

from collision_ingestion.domain.tree import TEXT_KEY, as_list, dig, dig_text, is_present
from collision_ingestion.domain.types import (
    AdminInfo,
    DamageLine,
    EstimateDocument,
    EstimateTotals,
    LineType,
    PartyInfo,
    SourceFormat,
    VehicleInfo,
    XmlEstimate,
)
from collision_ingestion.domain.values import (
    format_phone,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_int,
)
from collision_kernel.exceptions import ParseError
from collision_kernel.logging_config import get_logger

logger = get_logger("ingestion.bms")

CANONICAL_ROOT = "VehicleDamageEstimateAddRq"

ROOT_ALIASES = frozenset({
    "VehicleDamageEstimateAddRq",
    "BMS_ESTIMATE",
    "Estimate",
    "estimate",
    "estimateData",
    "estimateInfo",
})

# Estimating-system spellings that are not LineType values
LINE_TYPE_ALIASES = {
    "refinish": LineType.PAINT,
    "materials": LineType.MATERIAL,
    "parts": LineType.PART,
}

_PHONE_QUALIFIERS = ("HP", "WP", "CP", "MP")
_RO_IN_MEMO = re.compile(r"RO\s*:\s*(\d+)", re.IGNORECASE)
_ZERO = Decimal("0")


# -----------------------------------------------------------------------------
# XML -> tree
# -----------------------------------------------------------------------------


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _element_to_node(element: ElementTree.Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()
    if not children and not element.attrib:
        return text

    node: dict[str, Any] = {}
    for name, value in element.attrib.items():
        node[f"@{_local_name(name)}"] = value
    for child in children:
        key = _local_name(child.tag)
        value = _element_to_node(child)
        if key in node:
            existing = node[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[key] = [existing, value]
        else:
            node[key] = value
    if text:
        node[TEXT_KEY] = text
    return node


def parse_bms(text: str) -> XmlEstimate:
    """Parse BMS XML. Malformed XML raises ParseError with the position."""
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as exc:
        line, column = exc.position
        raise ParseError(str(exc), source_format=SourceFormat.BMS.value,
                         line=line, column=column) from exc

    original_root = _local_name(root.tag)
    canonical = CANONICAL_ROOT if original_root in ROOT_ALIASES else original_root
    tree = _element_to_node(root)
    if not isinstance(tree, dict):
        tree = {TEXT_KEY: tree} if tree else {}

    logger.debug(
        "bms_parsed",
        extra={"root": canonical, "original_root": original_root},
    )
    return XmlEstimate(root=canonical, original_root=original_root, tree=tree)


# -----------------------------------------------------------------------------
# Tree -> EstimateDocument
# -----------------------------------------------------------------------------


def _money(node: Any, *path: str) -> Decimal:
    return parse_decimal(dig_text(node, *path)) or _ZERO


def _communications(node: Any) -> list[Any]:
    comms: list[Any] = []
    for path in (("ContactInfo", "Communications"), ("Communications",),
                 ("PersonInfo", "Communications")):
        comms.extend(as_list(dig(node, *path)))
    return comms


def _party(wrapper: Any) -> PartyInfo:
    """A BMS party element (``Owner``, ``Adjuster`` ...) wrapping ``Party``."""
    party = dig(wrapper, "Party")
    if not is_present(party):
        party = wrapper
    if not is_present(party):
        return PartyInfo()

    phone = email = ""
    address_node: Any = None
    for comm in _communications(party):
        qualifier = dig_text(comm, "CommQualifier").upper()
        if not phone and qualifier in _PHONE_QUALIFIERS:
            phone = dig_text(comm, "CommPhone")
        elif not email and qualifier == "EM":
            email = dig_text(comm, "CommEmail")
        if address_node is None and is_present(dig(comm, "Address")):
            address_node = dig(comm, "Address")

    return PartyInfo(
        first_name=dig_text(party, "PersonInfo", "PersonName", "FirstName"),
        last_name=dig_text(party, "PersonInfo", "PersonName", "LastName"),
        company=dig_text(party, "OrgInfo", "CompanyName"),
        phone=format_phone(phone),
        email=email,
        address=dig_text(address_node, "Address1"),
        city=dig_text(address_node, "City"),
        state=dig_text(address_node, "StateProvince"),
        zip_code=dig_text(address_node, "PostalCode"),
    )


def _vehicle(vehicle: Any) -> VehicleInfo:
    desc = dig(vehicle, "VehicleDesc")
    return VehicleInfo(
        vin=dig_text(vehicle, "VINInfo", "VIN", "VINNum"),
        year=parse_int(dig_text(desc, "ModelYear")),
        make=dig_text(desc, "MakeDesc"),
        model=dig_text(desc, "ModelName"),
        trim=dig_text(desc, "SubModelDesc"),
        license_plate=dig_text(vehicle, "License", "LicensePlateNum"),
        odometer=parse_int(dig_text(desc, "OdometerInfo", "OdometerReading"))
        or parse_int(dig_text(vehicle, "OdometerInfo", "OdometerReading")),
        color=dig_text(vehicle, "Paint", "Exterior", "Color", "ColorName"),
    )


def _ro_number(root: Any) -> str:
    for path in (("RqUID",), ("RepairOrderNum",), ("DocumentInfo", "RepairOrderNum")):
        value = dig_text(root, *path)
        if value:
            return value
    memo = dig_text(root, "VehicleInfo", "VehicleDesc", "VehicleDescMemo") or dig_text(
        root, "VehicleInfo", "VehicleDescMemo",
    )
    match = _RO_IN_MEMO.search(memo)
    return match.group(1) if match else ""


def _claim_number(root: Any) -> str:
    for path in (("RefClaimNum",), ("ClaimInfo", "ClaimNum")):
        value = dig_text(root, *path)
        if value and value.upper() != "N/A":
            return value
    return ""


def _admin(root: Any) -> AdminInfo:
    admin = root.get("AdminInfo")
    claim = root.get("ClaimInfo")
    policy = dig(claim, "PolicyInfo")
    return AdminInfo(
        policy_holder=_party(dig(admin, "PolicyHolder")),
        insurer=_party(dig(admin, "InsuranceCompany")),
        adjuster=_party(dig(admin, "Adjuster")),
        estimator=_party(dig(admin, "Estimator")),
        claim_number=_claim_number(root),
        policy_number=dig_text(policy, "PolicyNum"),
        loss_date=parse_date(dig_text(claim, "LossInfo", "Facts", "LossDateTime")),
        deductible=_money(
            policy, "CoverageInfo", "Coverage", "DeductibleInfo", "DeductibleAmt",
        ),
    )


def normalize_line_type(raw: str) -> LineType:
    key = raw.strip().lower()
    if key in LINE_TYPE_ALIASES:
        return LINE_TYPE_ALIASES[key]
    return LineType.coerce(key)


def _damage_line(node: Any, index: int) -> DamageLine:
    raw_type = dig_text(node, "LineType")
    line_type = normalize_line_type(raw_type)
    part = dig(node, "PartInfo")
    labor = dig(node, "LaborInfo")

    quantity = Decimal("1")
    unit_price = _ZERO
    fields: dict[str, Any] = {}

    if is_present(part):
        quantity = parse_decimal(dig_text(part, "Quantity")) or Decimal("1")
        unit_price = _money(part, "PartPrice")
        fields.update(
            part_number=dig_text(part, "PartNum"),
            oem_part_number=dig_text(part, "OEMPartNum"),
            supplier_ref=dig_text(part, "SupplierRef") or dig_text(part, "VendorRef"),
            source_code=dig_text(part, "PartSourceCode"),
            part_type=dig_text(part, "PartType"),
            taxable=parse_bool(dig_text(part, "TaxableInd"), default=True),
        )
    if is_present(labor):
        hours = parse_decimal(dig_text(labor, "LaborHours"))
        rate = parse_decimal(dig_text(labor, "LaborRate"))
        fields.update(
            labor_type=dig_text(labor, "LaborType"),
            labor_hours=hours,
            labor_rate=rate,
            operation_code=dig_text(labor, "LaborOperation"),
        )
        if not is_present(part):
            quantity = hours if hours is not None else _ZERO
            unit_price = rate if rate is not None else _ZERO
        if line_type is LineType.PAINT:
            fields.update(paint_coverage=dig_text(labor, "PaintStagesNum"))
    for charges in ("OtherChargesInfo", "MaterialType"):
        price = parse_decimal(dig_text(node, charges, "Price"))
        if price is not None and not is_present(part) and not is_present(labor):
            unit_price = price

    return DamageLine(
        line_type=line_type,
        raw_line_type=raw_type,
        description=dig_text(node, "LineDesc"),
        line_number=parse_int(dig_text(node, "LineNum")) or index,
        quantity=quantity,
        unit_price=unit_price,
        **fields,
    )


def _totals(root: Any, deductible: Decimal) -> EstimateTotals:
    totals = root.get("RepairTotalsInfo")
    labor = _money(totals, "LaborTotalsInfo", "TotalAmt")
    parts = _money(totals, "PartsTotalsInfo", "TotalAmt")
    materials = _money(totals, "OtherChargesTotalsInfo", "TotalAmt")
    tax = _ZERO
    gross = net = _ZERO

    for entry in as_list(dig(totals, "SummaryTotalsInfo")):
        total_type = dig_text(entry, "TotalType")
        subtype = dig_text(entry, "TotalSubType")
        amount = _money(entry, "TotalAmt")
        if total_type == "TOT" and subtype == "TT":
            net = amount
        elif total_type == "TOT" and subtype == "CE":
            gross = amount
        elif total_type == "GrossTotal":
            gross = amount
        elif total_type == "NetTotal":
            net = amount
        elif total_type in ("TAX", "Tax"):
            tax += amount

    return EstimateTotals(
        labor=labor,
        parts=parts,
        materials=materials,
        tax=tax,
        deductible=deductible,
        gross_total=gross,
        net_total=net,
    )


def bms_to_document(estimate: XmlEstimate) -> EstimateDocument:
    root = estimate.tree
    admin_node = root.get("AdminInfo")
    customer_node = dig(admin_node, "Owner")
    if not is_present(customer_node):
        customer_node = dig(admin_node, "PolicyHolder")

    admin = _admin(root)
    lines = tuple(
        _damage_line(node, index)
        for index, node in enumerate(as_list(root.get("DamageLineInfo")), start=1)
    )
    memo = dig_text(root, "VehicleInfo", "VehicleDesc", "VehicleDescMemo")
    return EstimateDocument(
        source_format=SourceFormat.BMS,
        customer=_party(customer_node),
        vehicle=_vehicle(root.get("VehicleInfo")),
        admin=admin,
        lines=lines,
        totals=_totals(root, admin.deductible),
        ro_number=_ro_number(root),
        shop_name=dig_text(root, "RepairFacility", "Party", "OrgInfo", "CompanyName"),
        notes=(memo,) if memo else (),
    )


class BmsEstimateAdapter:
    """BMS XML estimate adapter."""

    source_format = SourceFormat.BMS

    def parse(self, text: str) -> XmlEstimate:
        return parse_bms(text)

    def to_document(self, parsed: XmlEstimate) -> EstimateDocument:
        return bms_to_document(parsed)
