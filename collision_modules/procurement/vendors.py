"""
Vendor directory: create, update and deactivate a shop's vendors.

Every mutation flushes and then invalidates the shop's resolver cache
entries.  The caller owns the transaction.

Returns Vendor DTOs instead of ORM entities.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from collision_engines.numbering import vendor_code
from collision_kernel.exceptions import VendorNotFoundError
from collision_kernel.logging_config import get_logger
from collision_modules.procurement.config import DefaultVendor
from collision_modules.procurement.models import Vendor, VendorType
from collision_modules.procurement.orm import VendorModel
from collision_modules.procurement.vendor_resolver import VendorCache

logger = get_logger("modules.procurement.vendors")

_UPDATABLE_FIELDS = frozenset({
    "name",
    "vendor_number",
    "vendor_type",
    "alternate_names",
    "rating",
    "fill_rate",
    "discount_percentage",
    "is_active",
})


class VendorDirectory:
    """Vendor CRUD for one Session, wired to a resolver cache."""

    def __init__(self, session: Session, cache: VendorCache | None = None):
        self._session = session
        self._cache = cache if cache is not None else VendorCache()

    def _get(self, vendor_id: UUID) -> VendorModel:
        vendor = self._session.get(VendorModel, vendor_id)
        if vendor is None:
            raise VendorNotFoundError(vendor_id)
        return vendor

    def _changed(self, shop_id: UUID) -> None:
        self._session.flush()
        self._cache.invalidate(shop_id)

    def get_vendor(self, vendor_id: UUID) -> Vendor:
        return self._get(vendor_id).to_dto()

    def list_vendors(self, shop_id: UUID, active_only: bool = True) -> list[Vendor]:
        stmt = select(VendorModel).where(VendorModel.shop_id == shop_id)
        if active_only:
            stmt = stmt.where(VendorModel.is_active.is_(True))
        stmt = stmt.order_by(VendorModel.name)
        return [v.to_dto() for v in self._session.execute(stmt).scalars().all()]

    def find_by_code(self, shop_id: UUID, code: str) -> Vendor | None:
        """Active vendor whose 4-letter vendor code is ``code`` (first by name)."""
        wanted = code.strip().upper()
        for vendor in self.list_vendors(shop_id):
            if vendor_code(vendor.name) == wanted:
                return vendor
        return None

    def create_vendor(
        self,
        shop_id: UUID,
        name: str,
        vendor_type: VendorType,
        actor_id: UUID,
        vendor_number: str | None = None,
        alternate_names: Sequence[str] = (),
        rating: Decimal = Decimal("0"),
        fill_rate: Decimal = Decimal("0"),
        discount_percentage: Decimal = Decimal("0"),
        is_default: bool = False,
    ) -> Vendor:
        if not name or not name.strip():
            raise ValueError("Vendor name cannot be empty")
        model = VendorModel(
            shop_id=shop_id,
            name=name.strip(),
            vendor_type=VendorType(vendor_type).value,
            vendor_number=vendor_number,
            alternate_names=list(alternate_names),
            rating=rating,
            fill_rate=fill_rate,
            discount_percentage=discount_percentage,
            is_active=True,
            is_default=is_default,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._changed(shop_id)
        logger.info(
            "vendor_created",
            extra={
                "vendor_id": str(model.id),
                "vendor_name": model.name,
                "vendor_type": model.vendor_type,
                "shop_id": str(shop_id),
            },
        )
        return model.to_dto()

    def update_vendor(self, vendor_id: UUID, actor_id: UUID, **changes) -> Vendor:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update vendor fields: {sorted(unknown)}")
        model = self._get(vendor_id)
        for name, value in changes.items():
            if name == "vendor_type":
                value = VendorType(value).value
            elif name == "alternate_names":
                value = list(value)
            setattr(model, name, value)
        model.updated_by_id = actor_id
        self._changed(model.shop_id)
        logger.info(
            "vendor_updated",
            extra={"vendor_id": str(vendor_id), "fields": sorted(changes)},
        )
        return model.to_dto()

    def deactivate_vendor(self, vendor_id: UUID, actor_id: UUID) -> Vendor:
        return self.update_vendor(vendor_id, actor_id, is_active=False)

    def ensure_default_vendors(
        self,
        shop_id: UUID,
        defaults: Sequence[DefaultVendor],
        actor_id: UUID,
    ) -> list[Vendor]:
        """Create each default vendor the shop lacks (by name). Idempotent.

        Each insert runs in a savepoint: when a concurrent import of the
        same shop created the vendor first, the unique name constraint
        rejects ours and the vendor is skipped.

        Returns the vendors created by this call.
        """
        existing = {
            name.lower()
            for name in self._session.execute(
                select(VendorModel.name).where(VendorModel.shop_id == shop_id)
            ).scalars()
        }
        created: list[VendorModel] = []
        for default in defaults:
            if default.name.lower() in existing:
                continue
            model = VendorModel(
                shop_id=shop_id,
                name=default.name,
                vendor_type=default.vendor_type.value,
                alternate_names=[],
                rating=default.rating,
                fill_rate=default.fill_rate,
                discount_percentage=default.discount_percentage,
                is_active=True,
                is_default=True,
                created_by_id=actor_id,
            )
            savepoint = self._session.begin_nested()
            try:
                self._session.add(model)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.info(
                    "default_vendor_already_created",
                    extra={"shop_id": str(shop_id), "vendor_name": default.name},
                )
                continue
            created.append(model)

        if created:
            self._changed(shop_id)
            logger.info(
                "default_vendors_created",
                extra={"shop_id": str(shop_id), "vendor_names": [m.name for m in created]},
            )
        return [m.to_dto() for m in created]
