"""Tests for the BMS XML adapter."""

from datetime import date
from decimal import Decimal

import pytest

from collision_ingestion.adapters.base import decode_content, sniff_format
from collision_ingestion.adapters.bms_adapter import (
    CANONICAL_ROOT,
    bms_to_document,
    normalize_line_type,
    parse_bms,
)
from collision_ingestion.adapters.registry import build_document, parse_estimate
from collision_ingestion.domain.types import LineType, SourceFormat, XmlEstimate
from collision_kernel.exceptions import ParseError


class TestParseBms:
    def test_namespaces_are_stripped(self):
        parsed = parse_bms(
            '<VehicleDamageEstimateAddRq xmlns="http://www.cieca.com/BMS">'
            "<RqUID>42</RqUID></VehicleDamageEstimateAddRq>"
        )
        assert parsed.root == CANONICAL_ROOT
        assert parsed.tree == {"RqUID": "42"}

    @pytest.mark.parametrize("root", ["BMS_ESTIMATE", "Estimate", "estimateData"])
    def test_root_aliases_map_to_canonical_root(self, root):
        parsed = parse_bms(f"<{root}><RqUID>1</RqUID></{root}>")
        assert parsed.root == CANONICAL_ROOT
        assert parsed.original_root == root

    def test_unknown_root_is_kept(self):
        parsed = parse_bms("<Quote><RqUID>1</RqUID></Quote>")
        assert parsed.root == "Quote"

    def test_repeated_elements_become_lists(self):
        parsed = parse_bms(
            "<Estimate><DamageLineInfo><LineNum>1</LineNum></DamageLineInfo>"
            "<DamageLineInfo><LineNum>2</LineNum></DamageLineInfo></Estimate>"
        )
        assert parsed.tree["DamageLineInfo"] == [{"LineNum": "1"}, {"LineNum": "2"}]

    def test_attributes_and_mixed_text(self):
        parsed = parse_bms('<Estimate><Note lang="en">Call owner</Note></Estimate>')
        assert parsed.tree["Note"] == {"@lang": "en", "#text": "Call owner"}

    def test_malformed_xml_raises_parse_error_with_position(self):
        with pytest.raises(ParseError) as exc_info:
            parse_bms("<Estimate>\n  <RqUID>1</RqUID>\n  <Broken>\n</Estimate>")
        assert exc_info.value.source_format == "bms"
        assert exc_info.value.line == 4
        assert exc_info.value.code == "PARSE_ERROR"


class TestFormatSniffing:
    def test_leading_angle_bracket_is_xml(self):
        assert sniff_format("  \n<Estimate/>") is SourceFormat.BMS

    def test_anything_else_is_text(self):
        assert sniff_format("HD|Shop|RO-1") is SourceFormat.EMS

    def test_bom_is_stripped(self):
        assert decode_content("\ufeff<Estimate/>".encode("utf-8")) == "<Estimate/>"
        assert decode_content("\ufeffHD|x") == "HD|x"

    def test_invalid_utf8_is_replaced(self):
        assert decode_content(b"HD|Caf\xe9") == "HD|Caf\ufffd"

    def test_registry_dispatches_on_content(self, bms_estimate, ems_estimate):
        assert isinstance(parse_estimate(bms_estimate), XmlEstimate)
        assert build_document(parse_estimate(ems_estimate)).source_format is SourceFormat.EMS


class TestLineTypes:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Part", LineType.PART),
            ("PARTS", LineType.PART),
            ("Refinish", LineType.PAINT),
            ("Materials", LineType.MATERIAL),
            ("labor", LineType.LABOR),
            ("Towing", LineType.OTHER),
            ("", LineType.OTHER),
        ],
    )
    def test_normalize_line_type(self, raw, expected):
        assert normalize_line_type(raw) is expected


class TestBmsToDocument:
    @pytest.fixture
    def document(self, bms_estimate):
        return bms_to_document(parse_bms(decode_content(bms_estimate)))

    def test_identity(self, document):
        assert document.source_format is SourceFormat.BMS
        assert document.ro_number == "RO-1024"
        assert document.admin.claim_number == "CLM-558812"

    def test_customer_falls_back_to_policy_holder(self, document):
        assert document.customer.display_name == "Dana Whitfield"
        assert document.customer.phone == "(555) 867-5309"
        assert document.customer.email == "dana.whitfield@example.com"
        assert document.admin.insurer.company == "Granite Mutual"

    def test_vehicle(self, document):
        assert document.vehicle.vin == "1HGCM82633A004352"
        assert document.vehicle.year == 2021
        assert document.vehicle.make == "Honda"
        assert document.vehicle.model == "Accord"
        assert document.vehicle.trim == "Sport"

    def test_policy_and_loss(self, document):
        assert document.admin.policy_number == "POL-4471"
        assert document.admin.deductible == Decimal("500.00")
        assert document.admin.loss_date == date(2025, 1, 6)

    def test_damage_lines(self, document):
        assert len(document.lines) == 5
        assert len(document.part_lines()) == 3

        windshield = document.lines[1]
        assert windshield.supplier_ref == "Safelite"
        assert windshield.part_type == "Glass"
        assert windshield.source_code == "A"

        headlamp = document.lines[2]
        assert headlamp.quantity == Decimal("2")
        assert headlamp.line_total == Decimal("360.00")

        labor = document.lines[3]
        assert labor.line_type is LineType.LABOR
        assert labor.operation_code == "OP1"
        assert labor.line_total == Decimal("145.00")

        assert document.lines[4].line_type is LineType.PAINT

    def test_totals(self, document):
        totals = document.totals
        assert totals.labor == Decimal("331.00")
        assert totals.parts == Decimal("1061.50")
        assert totals.tax == Decimal("84.92")
        assert totals.gross_total == Decimal("1477.42")
        assert totals.net_total == Decimal("977.42")
        assert totals.deductible == Decimal("500.00")

    def test_part_infos_feed_the_resolver(self, document):
        infos = document.part_infos()
        assert [i.part_number for i in infos] == ["04711-TVA-A00", "FW04567", "33150-TVA-A01"]
        assert infos[0].source_code == "O"


class TestRepairOrderNumber:
    def test_memo_fallback(self):
        parsed = parse_bms(
            "<Estimate><VehicleInfo><VehicleDesc>"
            "<VehicleDescMemo>Tow-in. RO: 5521 per shop</VehicleDescMemo>"
            "</VehicleDesc></VehicleInfo></Estimate>"
        )
        document = bms_to_document(parsed)
        assert document.ro_number == "5521"
        assert document.notes == ("Tow-in. RO: 5521 per shop",)

    def test_missing_ro_is_blank(self):
        assert bms_to_document(parse_bms("<Estimate/>")).ro_number == ""

    def test_placeholder_claim_number_is_ignored(self):
        parsed = parse_bms(
            "<Estimate><RefClaimNum>N/A</RefClaimNum>"
            "<ClaimInfo><ClaimNum>CLM-1</ClaimNum></ClaimInfo></Estimate>"
        )
        assert bms_to_document(parsed).admin.claim_number == "CLM-1"
