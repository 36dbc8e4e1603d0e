"""
Procurement Module (``collision_modules.procurement``).

Responsibility
--------------
Parts procurement for a collision repair order: vendor resolution and
bootstrap, grouping needed part lines into one purchase order per vendor,
receiving with quantity variance and returns, splitting a draft order,
backorders, cancellation and installation.

Architecture position
---------------------
**Modules layer** -- domain models, workflows and config are declarative;
``ProcurementService`` is the facade that owns the transaction boundary
and delegates pricing, numbering and receiving decisions to
``collision_engines``.

Failure modes
-------------
* Typed ``collision_kernel.exceptions`` errors for unknown ids, disallowed
  transitions and invalid splits.
* Database exceptions propagate after session rollback.
"""

from collision_modules.procurement.config import DefaultVendor, ProcurementConfig
from collision_modules.procurement.grouping import UNASSIGNED, VendorGroups, group_by_vendor
from collision_modules.procurement.metrics import vendor_metrics
from collision_modules.procurement.models import (
    FailedGroup,
    PartLine,
    PartLineStatus,
    POCreationResult,
    POStatus,
    PurchaseOrder,
    ReceiptCondition,
    ReceiveItem,
    ReceiveItemResult,
    ReceivingResult,
    ReturnOrder,
    ReturnReason,
    SplitGroup,
    Vendor,
    VendorMetrics,
    VendorType,
)
from collision_modules.procurement.returns import ReturnLedger
from collision_modules.procurement.service import ProcurementService
from collision_modules.procurement.vendor_resolver import (
    VENDOR_ALIASES,
    VendorCache,
    VendorResolver,
    derive_vendor_type,
)
from collision_modules.procurement.vendors import VendorDirectory
from collision_modules.procurement.workflows import (
    PART_LINE_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
)

__all__ = [
    # Service
    "ProcurementService",
    "VendorDirectory",
    "VendorResolver",
    "VendorCache",
    "ReturnLedger",
    "vendor_metrics",
    # Grouping
    "group_by_vendor",
    "VendorGroups",
    "UNASSIGNED",
    # Models
    "Vendor",
    "VendorType",
    "PartLine",
    "PartLineStatus",
    "PurchaseOrder",
    "POStatus",
    "ReturnOrder",
    "ReturnReason",
    "ReceiptCondition",
    "ReceiveItem",
    "ReceiveItemResult",
    "ReceivingResult",
    "SplitGroup",
    "FailedGroup",
    "POCreationResult",
    "VendorMetrics",
    # Resolver tables
    "VENDOR_ALIASES",
    "derive_vendor_type",
    # Workflows
    "PART_LINE_WORKFLOW",
    "PURCHASE_ORDER_WORKFLOW",
    # Config
    "ProcurementConfig",
    "DefaultVendor",
]
