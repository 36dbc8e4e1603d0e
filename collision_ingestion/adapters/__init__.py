"""Estimate format adapters (parsing and canonical mapping, no DB)."""

from collision_ingestion.adapters.base import EstimateAdapter, decode_content, sniff_format
from collision_ingestion.adapters.bms_adapter import BmsEstimateAdapter, parse_bms
from collision_ingestion.adapters.ems_adapter import (
    EmsEstimateAdapter,
    parse_ems,
    split_ems_line,
)
from collision_ingestion.adapters.registry import (
    build_document,
    default_adapters,
    parse_estimate,
)

__all__ = [
    "EstimateAdapter",
    "decode_content",
    "sniff_format",
    "BmsEstimateAdapter",
    "parse_bms",
    "EmsEstimateAdapter",
    "parse_ems",
    "split_ems_line",
    "build_document",
    "default_adapters",
    "parse_estimate",
]
