"""
Estimate adapter protocol and content sniffing.

Contract:
    EstimateAdapter.parse() turns decoded text into the format's
    intermediate tree (XmlEstimate or TextEstimate).
    EstimateAdapter.to_document() maps a *valid* intermediate tree into the
    canonical EstimateDocument.

Architecture: collision_ingestion/adapters. No DB or kernel service imports.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from collision_ingestion.domain.types import (
    EstimateDocument,
    ParsedEstimate,
    SourceFormat,
)

_BOM = "﻿"


@runtime_checkable
class EstimateAdapter(Protocol):
    """Protocol for one estimate wire format."""

    source_format: SourceFormat

    def parse(self, text: str) -> ParsedEstimate:
        """Parse decoded content. Raises ParseError when the content is unusable."""
        ...

    def to_document(self, parsed: ParsedEstimate) -> EstimateDocument:
        """Map a validated intermediate tree into the canonical document."""
        ...


def decode_content(content: bytes | str) -> str:
    """UTF-8 decode (BOM stripped, undecodable bytes replaced)."""
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content[1:] if content.startswith(_BOM) else content


def sniff_format(text: str) -> SourceFormat:
    """``<`` as the first non-whitespace character means XML, anything else text."""
    return SourceFormat.BMS if text.lstrip().startswith("<") else SourceFormat.EMS
