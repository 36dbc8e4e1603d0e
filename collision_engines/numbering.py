"""
collision_engines.numbering -- purchase-order number formatting.

PO numbers look like ``{RO}-{YYMM}-{VVVV}-{SSS}``, e.g.
``RO-1024-2501-SAFE-001``.  The sequence part comes from a locked counter
(see ``collision_kernel.services.sequence_service``); this module only
formats.
"""

from __future__ import annotations

import re
from datetime import date, datetime

_NON_LETTERS = re.compile(r"[^A-Za-z]")

VENDOR_CODE_LENGTH = 4


def vendor_code(vendor_name: str | None) -> str:
    """First four letters of the name, upper-cased, right-padded with ``X``."""
    letters = _NON_LETTERS.sub("", vendor_name or "").upper()
    return letters[:VENDOR_CODE_LENGTH].ljust(VENDOR_CODE_LENGTH, "X")


def year_month(when: date | datetime) -> str:
    """``YYMM`` for the given date."""
    return when.strftime("%y%m")


def format_po_number(ro_number: str, yymm: str, code: str, sequence: int) -> str:
    if sequence < 1:
        raise ValueError(f"PO sequence must be positive, got {sequence}")
    return f"{ro_number}-{yymm}-{code}-{sequence:03d}"
