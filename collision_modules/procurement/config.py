"""
Procurement Configuration Schema (``collision_modules.procurement.config``).

Responsibility
--------------
Declarative configuration for the procurement module: the flat sales tax
rate applied to purchase orders, the vendor set bootstrapped for a new
shop, and whether resolver results are cached.

Architecture position
---------------------
**Modules layer** -- configuration schema only.  Built from the
``procurement`` section of the YAML file by ``collision_config.loader``;
no component reads config files or environment variables directly.

Invariants enforced
-------------------
* Money and rates use ``Decimal`` (never ``float``).
* ``0 <= tax_rate < 1``.
* Default vendor names are unique.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from collision_kernel.logging_config import get_logger
from collision_modules.procurement.models import VendorType

logger = get_logger("modules.procurement.config")


@dataclass
class DefaultVendor:
    """One vendor created by ``ensure_default_vendors`` for a new shop."""
    name: str
    vendor_type: VendorType
    rating: Decimal = Decimal("3.0")
    fill_rate: Decimal = Decimal("0.90")
    discount_percentage: Decimal = Decimal("0")

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("DefaultVendor name cannot be empty")
        if not isinstance(self.vendor_type, VendorType):
            self.vendor_type = VendorType(self.vendor_type)
        self.rating = Decimal(str(self.rating))
        self.fill_rate = Decimal(str(self.fill_rate))
        self.discount_percentage = Decimal(str(self.discount_percentage))
        if not Decimal("0") <= self.discount_percentage <= Decimal("100"):
            raise ValueError("discount_percentage must be within [0, 100]")


def _standard_vendors() -> tuple[DefaultVendor, ...]:
    return (
        DefaultVendor("OEM Dealer Parts", VendorType.OEM, Decimal("4.5"), Decimal("0.95")),
        DefaultVendor("Aftermarket Parts Supply", VendorType.AFTERMARKET, Decimal("4.0"), Decimal("0.90"),
                      Decimal("15")),
        DefaultVendor("Recycled Parts Network", VendorType.RECYCLED, Decimal("3.8"), Decimal("0.80"),
                      Decimal("25")),
        DefaultVendor("Reman Parts Center", VendorType.REMANUFACTURED, Decimal("3.5"), Decimal("0.85"),
                      Decimal("20")),
        DefaultVendor("Paint & Materials Supply", VendorType.PAINT_SUPPLIER, Decimal("4.2"), Decimal("0.97"),
                      Decimal("10")),
    )


@dataclass
class ProcurementConfig:
    """
    Configuration schema for the procurement module.

        config = ProcurementConfig(tax_rate=Decimal("0.0725"))
    """

    # Flat sales tax applied to PO subtotals
    tax_rate: Decimal = Decimal("0.08")

    # Vendors bootstrapped for a shop with no vendors of a given name
    default_vendors: tuple[DefaultVendor, ...] = field(default_factory=_standard_vendors)

    vendor_cache_enabled: bool = True

    def __post_init__(self):
        self.tax_rate = Decimal(str(self.tax_rate))
        if self.tax_rate < 0:
            raise ValueError("tax_rate cannot be negative")
        if self.tax_rate >= 1:
            raise ValueError(f"tax_rate must be a fraction below 1, got {self.tax_rate}")

        names = [v.name.lower() for v in self.default_vendors]
        if len(names) != len(set(names)):
            raise ValueError("default_vendors names must be unique")

        logger.info(
            "procurement_config_initialized",
            extra={
                "tax_rate": str(self.tax_rate),
                "default_vendor_count": len(self.default_vendors),
                "vendor_cache_enabled": self.vendor_cache_enabled,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("procurement_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. the YAML ``procurement`` section).

        Raises:
            ValueError: if validation fails in ``__post_init__``.
        """
        logger.info(
            "procurement_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "default_vendors" in data:
            data["default_vendors"] = tuple(
                DefaultVendor(**v) if isinstance(v, dict) else v
                for v in data["default_vendors"]
            )
        return cls(**data)
