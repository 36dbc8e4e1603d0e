"""Format dispatch: sniff, parse, and map with the adapter for the format."""

from __future__ import annotations

from collision_ingestion.adapters.base import EstimateAdapter, decode_content, sniff_format
from collision_ingestion.adapters.bms_adapter import BmsEstimateAdapter
from collision_ingestion.adapters.ems_adapter import EmsEstimateAdapter
from collision_ingestion.domain.types import EstimateDocument, ParsedEstimate, SourceFormat


def default_adapters() -> dict[SourceFormat, EstimateAdapter]:
    return {
        SourceFormat.BMS: BmsEstimateAdapter(),
        SourceFormat.EMS: EmsEstimateAdapter(),
    }


_ADAPTERS = default_adapters()


def parse_estimate(content: bytes | str) -> ParsedEstimate:
    """Decode, sniff and parse. Raises ParseError for malformed XML only."""
    text = decode_content(content)
    return _ADAPTERS[sniff_format(text)].parse(text)


def build_document(parsed: ParsedEstimate) -> EstimateDocument:
    """Canonical document for a parsed estimate that validated cleanly."""
    return _ADAPTERS[parsed.source_format].to_document(parsed)
