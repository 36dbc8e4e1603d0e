"""
Vendor Resolver (``collision_modules.procurement.vendor_resolver``).

Responsibility
--------------
Maps one part (supplier reference, source code, part type) to the active
vendor of a shop that should supply it.  First match wins:

1. Supplier reference present: an active vendor whose name or alternate
   names contain the reference, or any spelling the alias table lists for
   it (case-insensitive); then a vendor whose ``vendor_number`` equals the
   reference.
2. Vendor type derived from ``(source_code, part_type)``; the best active
   vendor of that type (``rating DESC, fill_rate DESC, name ASC``).
3. ``oem`` when the source code is ``O``, otherwise ``aftermarket``, by the
   same type lookup.

``None`` means "needs manual assignment" and is logged, never raised.

Architecture position
---------------------
**Modules layer** -- read-only queries through the caller's Session.
Results are cached per ``(shop_id, reference-or-type)`` in a
``VendorCache``; ``VendorDirectory`` invalidates it on every vendor
mutation.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from collision_ingestion.domain.types import PartInfo
from collision_kernel.logging_config import get_logger
from collision_modules.procurement.models import Vendor, VendorType
from collision_modules.procurement.orm import VendorModel

logger = get_logger("modules.procurement.vendor_resolver")

OEM_SOURCE_CODE = "O"

# Estimating-system supplier references -> vendor spellings seen in shops
VENDOR_ALIASES: Mapping[str, tuple[str, ...]] = {
    "SAFELITE": ("Safelite", "SafeLite AutoGlass", "Safelite Auto Glass", "Safelite Solutions"),
    "LKQ": ("LKQ", "LKQ Corporation", "LKQ Recycled Parts", "LKQ/Recycled"),
    "KEYSTONE": ("Keystone", "Keystone Automotive", "Keystone Automotive Industries"),
    "PARTSTRADER": ("PartsTrader", "Parts Trader"),
    "OECONNECTION": ("OEConnection", "OE Connection", "OEC"),
    "AUTOZONE": ("AutoZone", "AutoZone Pro", "AutoZone Commercial"),
    "PPG": ("PPG", "PPG Refinish", "PPG Automotive Refinish"),
    "AXALTA": ("Axalta", "Axalta Coating Systems"),
}

# Part-type keywords -> vendor type, checked in order
PART_TYPE_KEYWORDS: tuple[tuple[str, VendorType], ...] = (
    ("glass", VendorType.AFTERMARKET),
    ("paint", VendorType.PAINT_SUPPLIER),
    ("primer", VendorType.PAINT_SUPPLIER),
    ("clear coat", VendorType.PAINT_SUPPLIER),
    ("sandpaper", VendorType.PAINT_SUPPLIER),
    ("masking tape", VendorType.PAINT_SUPPLIER),
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def _build_alias_index() -> dict[str, str]:
    index: dict[str, str] = {}
    for key, spellings in VENDOR_ALIASES.items():
        index[normalize_name(key)] = key
        for spelling in spellings:
            index[normalize_name(spelling)] = key
    return index


_ALIAS_INDEX = _build_alias_index()


def alias_spellings(reference: str) -> tuple[str, ...]:
    """The reference itself plus every spelling its alias entry lists."""
    key = _ALIAS_INDEX.get(normalize_name(reference))
    if key is None:
        return (reference,)
    return (reference, key, *VENDOR_ALIASES[key])


def derive_vendor_type(source_code: str | None, part_type: str | None) -> VendorType:
    if (source_code or "").strip().upper() == OEM_SOURCE_CODE:
        return VendorType.OEM
    text = (part_type or "").lower()
    for keyword, vendor_type in PART_TYPE_KEYWORDS:
        if keyword in text:
            return vendor_type
    return VendorType.AFTERMARKET


def fallback_vendor_type(source_code: str | None) -> VendorType:
    if (source_code or "").strip().upper() == OEM_SOURCE_CODE:
        return VendorType.OEM
    return VendorType.AFTERMARKET


class VendorCache:
    """Thread-safe resolver cache keyed ``(shop_id, key)``.

    Entries live until ``invalidate`` is called for the shop.
    """

    _MISSING = object()

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._entries: dict[tuple[UUID, str], Vendor | None] = {}
        self._lock = threading.Lock()

    def get(self, shop_id: UUID, key: str):
        """Cached vendor (possibly None), or a sentinel ``is_missing`` recognises."""
        if not self.enabled:
            return self._MISSING
        with self._lock:
            return self._entries.get((shop_id, key), self._MISSING)

    def put(self, shop_id: UUID, key: str, vendor: Vendor | None) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[(shop_id, key)] = vendor

    def invalidate(self, shop_id: UUID | None = None) -> int:
        """Drop entries for one shop (or all). Returns the number dropped."""
        with self._lock:
            if shop_id is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                stale = [k for k in self._entries if k[0] == shop_id]
                for k in stale:
                    del self._entries[k]
                dropped = len(stale)
        logger.debug(
            "vendor_cache_invalidated",
            extra={"shop_id": str(shop_id) if shop_id else None, "dropped": dropped},
        )
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @classmethod
    def is_missing(cls, value: object) -> bool:
        return value is cls._MISSING


class VendorResolver:
    """Resolve part lines to vendors for one Session."""

    def __init__(self, session: Session, cache: VendorCache | None = None):
        self._session = session
        self._cache = cache if cache is not None else VendorCache()

    @property
    def cache(self) -> VendorCache:
        return self._cache

    def _active_vendors(self, shop_id: UUID):
        return (
            select(VendorModel)
            .where(VendorModel.shop_id == shop_id, VendorModel.is_active.is_(True))
            .order_by(
                VendorModel.rating.desc(),
                VendorModel.fill_rate.desc(),
                VendorModel.name.asc(),
            )
        )

    def _by_reference(self, shop_id: UUID, reference: str) -> Vendor | None:
        terms = [t.lower() for t in alias_spellings(reference) if t]
        vendors = self._session.execute(self._active_vendors(shop_id)).scalars().all()
        for vendor in vendors:
            names = [vendor.name, *(vendor.alternate_names or ())]
            for name in names:
                lowered = str(name).lower()
                if any(term in lowered for term in terms):
                    return vendor.to_dto()

        by_number = self._session.execute(
            self._active_vendors(shop_id).where(
                func.lower(VendorModel.vendor_number) == reference.lower(),
            ).limit(1)
        ).scalar_one_or_none()
        return by_number.to_dto() if by_number is not None else None

    def best_of_type(self, shop_id: UUID, vendor_type: VendorType) -> Vendor | None:
        vendor = self._session.execute(
            self._active_vendors(shop_id)
            .where(VendorModel.vendor_type == vendor_type.value)
            .limit(1)
        ).scalar_one_or_none()
        return vendor.to_dto() if vendor is not None else None

    def resolve(self, part: PartInfo, shop_id: UUID) -> Vendor | None:
        reference = (part.supplier_ref or "").strip()
        derived = derive_vendor_type(part.source_code, part.part_type)
        # The fallback type is a function of the derived type, so it is not part of the key
        key = f"ref:{reference.lower()}|type:{derived.value}" if reference else f"type:{derived.value}"

        cached = self._cache.get(shop_id, key)
        if not VendorCache.is_missing(cached):
            return cached

        vendor = None
        tier = None
        if reference:
            vendor = self._by_reference(shop_id, reference)
            tier = "reference"
        if vendor is None:
            vendor = self.best_of_type(shop_id, derived)
            tier = "derived_type"
        if vendor is None:
            fallback = fallback_vendor_type(part.source_code)
            if fallback is not derived:
                vendor = self.best_of_type(shop_id, fallback)
                tier = "fallback_type"

        if vendor is None:
            logger.info(
                "vendor_resolution_miss",
                extra={
                    "shop_id": str(shop_id),
                    "supplier_ref": reference,
                    "source_code": part.source_code,
                    "part_type": part.part_type,
                    "derived_type": derived.value,
                },
            )
        else:
            logger.debug(
                "vendor_resolved",
                extra={"vendor_id": str(vendor.id), "vendor_name": vendor.name, "tier": tier},
            )

        self._cache.put(shop_id, key, vendor)
        return vendor
