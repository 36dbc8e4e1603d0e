"""
Procurement grouper: partition part lines by resolved vendor.

Pure; groups keep the insertion order of each vendor's first line.  Lines
without a vendor land in the ``UNASSIGNED`` bucket and never reach a
purchase order.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Final
from uuid import UUID

from collision_modules.procurement.models import PartLine


class _Unassigned:
    """Sentinel key for lines that have no vendor."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNASSIGNED"


UNASSIGNED: Final = _Unassigned()


@dataclass
class VendorGroups:
    """Ordered mapping ``vendor_id | UNASSIGNED -> [PartLine]``."""

    groups: dict[UUID | _Unassigned, list[PartLine]] = field(default_factory=dict)

    def __iter__(self) -> Iterator[UUID | _Unassigned]:
        return iter(self.groups)

    def __getitem__(self, key: UUID | _Unassigned) -> list[PartLine]:
        return self.groups[key]

    def __len__(self) -> int:
        return len(self.groups)

    def keys(self):
        return self.groups.keys()

    def assigned(self) -> Iterator[tuple[UUID, list[PartLine]]]:
        for key, lines in self.groups.items():
            if key is not UNASSIGNED:
                yield key, lines

    @property
    def unassigned(self) -> list[PartLine]:
        return self.groups.get(UNASSIGNED, [])


def group_by_vendor(part_lines: Iterable[PartLine]) -> VendorGroups:
    result = VendorGroups()
    for line in part_lines:
        key = line.vendor_id if line.vendor_id is not None else UNASSIGNED
        result.groups.setdefault(key, []).append(line)
    return result
