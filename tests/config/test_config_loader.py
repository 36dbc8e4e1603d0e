"""Tests for the YAML configuration loader and the package config schemas."""

from decimal import Decimal

import pytest
import yaml

from collision_config.loader import (
    KNOWN_SECTIONS,
    compute_checksum,
    load_config,
    load_yaml_file,
    parse_config,
)
from collision_ingestion.config import IngestionConfig
from collision_modules.procurement.config import DefaultVendor, ProcurementConfig
from collision_modules.procurement.models import VendorType

SAMPLE_CONFIG = """
procurement:
  tax_rate: "0.0725"
  vendor_cache_enabled: false
  default_vendors:
    - name: OEM Dealer Parts
      vendor_type: oem
      rating: "4.5"
    - name: Valley Glass
      vendor_type: aftermarket
      discount_percentage: 12
ingestion:
  parse_retries: 2
  min_field_counts: {li: 5}
batch:
  concurrency: 4
  pause_on_error: true
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "collision.yaml"
    path.write_text(SAMPLE_CONFIG)
    return path


class TestLoadConfig:
    def test_sections_are_parsed(self, config_file):
        config = load_config(config_file)

        assert config.procurement.tax_rate == Decimal("0.0725")
        assert config.procurement.vendor_cache_enabled is False
        glass = config.procurement.default_vendors[1]
        assert glass.vendor_type is VendorType.AFTERMARKET
        assert glass.discount_percentage == Decimal("12")
        assert config.ingestion.parse_retries == 2
        assert config.ingestion.effective_min_field_counts()["LI"] == 5
        assert config.batch.concurrency == 4
        assert config.batch.pause_on_error is True

    def test_checksum_matches_data(self, config_file):
        config = load_config(config_file)
        assert config.checksum == compute_checksum(yaml.safe_load(SAMPLE_CONFIG))

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        config = load_config(path)

        assert config.procurement.tax_rate == Decimal("0.08")
        assert len(config.procurement.default_vendors) == 5
        assert config.ingestion.parse_retries == 1
        assert config.batch.concurrency == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("procurement: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)

    def test_top_level_must_be_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- procurement\n")
        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_logs_the_load(self, config_file, captured_logs):
        config = load_config(config_file)
        record = [r for r in captured_logs() if r["message"] == "config_loaded"][0]
        assert record["checksum"] == config.checksum
        assert record["sections"] == sorted(KNOWN_SECTIONS)


class TestParseConfig:
    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="warehouse"):
            parse_config({"warehouse": {}})

    def test_unknown_key_rejected(self):
        with pytest.raises(TypeError):
            parse_config({"batch": {"threads": 4}})

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestProcurementConfig:
    @pytest.mark.parametrize("rate", ["-0.01", "1", "1.5"])
    def test_tax_rate_bounds(self, rate):
        with pytest.raises(ValueError):
            ProcurementConfig(tax_rate=Decimal(rate))

    def test_duplicate_default_vendor_names(self):
        with pytest.raises(ValueError):
            ProcurementConfig(default_vendors=(
                DefaultVendor("Valley Glass", VendorType.AFTERMARKET),
                DefaultVendor("valley glass", VendorType.OEM),
            ))

    def test_default_vendor_discount_bounds(self):
        with pytest.raises(ValueError):
            DefaultVendor("Valley Glass", "aftermarket", discount_percentage=Decimal("101"))

    def test_standard_vendor_set(self):
        vendors = {v.name: v for v in ProcurementConfig.with_defaults().default_vendors}
        assert vendors["OEM Dealer Parts"].vendor_type is VendorType.OEM
        assert vendors["Aftermarket Parts Supply"].discount_percentage == Decimal("15")
        assert vendors["Reman Parts Center"].discount_percentage == Decimal("20")
        assert vendors["Paint & Materials Supply"].vendor_type is VendorType.PAINT_SUPPLIER


class TestIngestionConfig:
    def test_overrides_merge_over_builtin_counts(self):
        config = IngestionConfig(min_field_counts={"pa": 6})
        counts = config.effective_min_field_counts()
        assert counts["PA"] == 6
        assert counts["HD"] == 2

    @pytest.mark.parametrize(
        "kwargs",
        [{"parse_retries": -1}, {"max_year_ahead": -1}, {"min_field_counts": {"PA": 0}}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            IngestionConfig(**kwargs)
