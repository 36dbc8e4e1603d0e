"""
Procurement Module Service (``collision_modules.procurement.service``).

Responsibility
--------------
Drives replacement parts from an imported estimate to the shop floor:
registering needed part lines, grouped purchase-order creation with
locked-counter numbering, variance-aware receiving, splitting a draft
order across vendors, backorders, cancellation and installation.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``ProcurementService`` is the sole public
entry point for procurement operations.  It composes pure engines
(``collision_engines.pricing``, ``.numbering``, ``.receiving``), the kernel
``SequenceService``, and the module helpers ``VendorResolver``,
``VendorDirectory`` and ``ReturnLedger``, all sharing one Session.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` and re-raise on any exception).
* Every status write goes through ``require_transition`` against
  ``PART_LINE_WORKFLOW`` or ``PURCHASE_ORDER_WORKFLOW``.
* PO numbers come from the locked counter ``po:{vendor_id}:{YYMM}``,
  skipping values whose printed number another vendor or shop holds;
  never from ``count + 1``.
* Receiving SETS the received quantity from the report; an identical
  report is a no-op and never records a second return.
* A split partitions the parent's lines exactly; child subtotals sum to
  the parent subtotal.

Failure modes
-------------
* Unknown ids -> ``PurchaseOrderNotFoundError`` / ``PartLineNotFoundError``
  / ``VendorNotFoundError``.
* Disallowed status change -> ``InvalidStateTransitionError``.
* Bad split groups -> ``SplitValidationError``.
* Lines of different repair orders or shops ordered together ->
  ``PartLineConflictError``.
* During grouped creation a failing vendor group is rolled back to its
  savepoint and reported in ``POCreationResult.failed_groups``; during
  receiving a failing item is reported as an ``error`` item.  Neither
  aborts its siblings.

Notifications
-------------
``po_created``, ``po_received``, ``po_split`` and ``parts_installed`` are
published to the notification sink after commit.  A sink failure is
logged and never undoes the committed work.

Usage::

    service = ProcurementService(session, clock=clock)
    lines = service.register_estimate_parts(document, shop_id, actor_id=user_id)
    result = service.create_purchase_orders(shop_id, actor_id=user_id,
                                            ro_number=document.ro_number)
    service.receive(result.orders[0].id, [ReceiveItem(lines[0].id, Decimal("2"))],
                    actor_id=user_id)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from collision_engines.numbering import format_po_number, vendor_code, year_month
from collision_engines.pricing import OrderLineAmount, compute_order_totals
from collision_engines.receiving import decide_receipt
from collision_ingestion.domain.types import EstimateDocument, PartInfo
from collision_kernel.domain.clock import Clock, SystemClock
from collision_kernel.domain.workflow import require_transition
from collision_kernel.exceptions import (
    CollisionKernelError,
    InvalidReceiptConditionError,
    InvalidStateTransitionError,
    PartLineConflictError,
    PartLineNotFoundError,
    PurchaseOrderNotFoundError,
    SequenceAllocationError,
    SplitValidationError,
    error_code_of,
)
from collision_kernel.logging_config import LogContext, get_logger
from collision_kernel.services.notification import (
    LoggingNotificationSink,
    NotificationSink,
    notify,
)
from collision_kernel.services.sequence_service import SequenceService, po_sequence_name
from collision_modules.procurement.config import ProcurementConfig
from collision_modules.procurement.grouping import group_by_vendor
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
    SplitGroup,
    Vendor,
    VendorMetrics,
)
from collision_modules.procurement.orm import PartLineModel, PurchaseOrderModel
from collision_modules.procurement.returns import ReturnLedger
from collision_modules.procurement.vendor_resolver import VendorCache, VendorResolver
from collision_modules.procurement.vendors import VendorDirectory
from collision_modules.procurement.workflows import (
    PART_LINE_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    RECEIVABLE_PO_STATES,
)

logger = get_logger("modules.procurement.service")

_ZERO = Decimal("0")

# Counter draws per PO before giving up on a free number
MAX_PO_NUMBER_ATTEMPTS = 10

_LINE_FULLY_RECEIVED = frozenset({
    PartLineStatus.RECEIVED.value,
    PartLineStatus.INSTALLED.value,
})

_CANCELLABLE_LINE_STATES = frozenset({
    PartLineStatus.ORDERED.value,
    PartLineStatus.BACKORDERED.value,
})


def _fmt_qty(value: Decimal) -> str:
    """``Decimal("5.0000")`` -> ``"5"``; ``Decimal("2.5")`` -> ``"2.5"``."""
    return format(Decimal(value).normalize(), "f")


class ProcurementService:
    """
    Orchestrates the part line and purchase order lifecycles.

    Contract
    --------
    * Mutating methods take a keyword ``actor_id`` recorded on every row
      they write, and return frozen DTOs (never ORM entities).
    * Read methods (``get_purchase_order``, ``list_part_lines`` ...) never
      commit.

    Guarantees
    ----------
    * Clock is injectable for deterministic order dates and PO numbers.
    * The vendor cache is shared by the resolver and the vendor directory,
      so any vendor mutation made through ``self.vendors`` invalidates it.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
        notifier: NotificationSink | None = None,
        cache: VendorCache | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProcurementConfig.with_defaults()
        self._notifier = notifier if notifier is not None else LoggingNotificationSink()
        self._cache = cache if cache is not None else VendorCache(
            enabled=self._config.vendor_cache_enabled,
        )

        self._vendors = VendorDirectory(session, self._cache)
        self._resolver = VendorResolver(session, self._cache)
        self._sequences = SequenceService(session)
        self._returns = ReturnLedger(session)

    @property
    def vendors(self) -> VendorDirectory:
        return self._vendors

    @property
    def resolver(self) -> VendorResolver:
        return self._resolver

    # =========================================================================
    # Internal helpers (flush only, never commit)
    # =========================================================================

    def _get_po(self, po_id: UUID, lock: bool = False) -> PurchaseOrderModel:
        if lock:
            po = self._session.execute(
                select(PurchaseOrderModel)
                .where(PurchaseOrderModel.id == po_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        else:
            po = self._session.get(PurchaseOrderModel, po_id)
        if po is None:
            raise PurchaseOrderNotFoundError(po_id)
        return po

    def _get_lines(self, part_line_ids: Sequence[UUID]) -> list[PartLineModel]:
        """Lines in the order requested; duplicates collapse to the first."""
        lines: list[PartLineModel] = []
        seen: set[UUID] = set()
        for line_id in part_line_ids:
            if line_id in seen:
                continue
            seen.add(line_id)
            line = self._session.get(PartLineModel, line_id)
            if line is None:
                raise PartLineNotFoundError(line_id)
            lines.append(line)
        return lines

    def _po_lines(self, po_id: UUID) -> list[PartLineModel]:
        return list(self._session.execute(
            select(PartLineModel)
            .where(PartLineModel.purchase_order_id == po_id)
            .order_by(PartLineModel.created_at, PartLineModel.id)
        ).scalars().all())

    def _set_line_status(
        self,
        line: PartLineModel,
        to_status: PartLineStatus,
        action: str,
        actor_id: UUID,
    ) -> None:
        require_transition(
            PART_LINE_WORKFLOW, line.status, to_status,
            entity="part_line", entity_id=line.id, action=action,
        )
        line.status = to_status.value
        line.updated_by_id = actor_id

    def _set_po_status(
        self,
        po: PurchaseOrderModel,
        to_status: POStatus,
        action: str,
        actor_id: UUID,
    ) -> None:
        require_transition(
            PURCHASE_ORDER_WORKFLOW, po.status, to_status,
            entity="purchase_order", entity_id=po.id, action=action,
        )
        po.status = to_status.value
        po.updated_by_id = actor_id

    def _check_orderable(self, lines: Sequence[PartLineModel]) -> None:
        """Every line is ``needed`` and all share one shop and repair order."""
        first = lines[0]
        for line in lines:
            require_transition(
                PART_LINE_WORKFLOW, line.status, PartLineStatus.ORDERED,
                entity="part_line", entity_id=line.id, action="order",
            )
            if line.shop_id != first.shop_id:
                raise PartLineConflictError(line.id, "belongs to a different shop")
            if line.ro_number != first.ro_number:
                raise PartLineConflictError(
                    line.id,
                    f"belongs to RO {line.ro_number}, not {first.ro_number}",
                )

    def _resolve_vendor(self, line: PartLineModel) -> UUID | None:
        vendor = self._resolver.resolve(
            PartInfo(
                supplier_ref=line.supplier_ref,
                source_code=line.source_code,
                part_type=line.part_type,
                part_number=line.part_number,
                description=line.description,
            ),
            line.shop_id,
        )
        return vendor.id if vendor is not None else None

    def _po_number_taken(self, po_number: str) -> bool:
        return self._session.execute(
            select(PurchaseOrderModel.id).where(PurchaseOrderModel.po_number == po_number)
        ).first() is not None

    def _insert_numbered(self, po: PurchaseOrderModel, ro_number: str, vendor: Vendor) -> None:
        """
        Give ``po`` the next free number from its vendor's counter and insert it.

        The counter keeps numbers distinct per vendor only.  A vendor with
        the same code, or another shop on the same RO number, may already
        hold the printed number; that value is skipped and the next drawn.
        Skipped values stay consumed because the counter increment lives
        outside the insert savepoint.

        Raises:
            SequenceAllocationError: no free number within
                ``MAX_PO_NUMBER_ATTEMPTS`` draws.
        """
        yymm = year_month(self._clock.now())
        sequence_name = po_sequence_name(vendor.id, yymm)
        code = vendor_code(vendor.name)

        for attempt in range(1, MAX_PO_NUMBER_ATTEMPTS + 1):
            po.po_number = format_po_number(
                ro_number, yymm, code, self._sequences.next_value(sequence_name),
            )
            if self._po_number_taken(po.po_number):
                logger.info(
                    "po_number_taken",
                    extra={"po_number": po.po_number, "vendor_id": str(vendor.id), "attempt": attempt},
                )
                continue

            # A concurrent transaction may insert the same number first
            savepoint = self._session.begin_nested()
            try:
                self._session.add(po)
                self._session.flush()
                savepoint.commit()
                return
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    "po_number_conflict",
                    extra={"po_number": po.po_number, "vendor_id": str(vendor.id), "attempt": attempt},
                )

        raise SequenceAllocationError(sequence_name, attempts=MAX_PO_NUMBER_ATTEMPTS)

    def _build_order(
        self,
        lines: Sequence[PartLineModel],
        vendor: Vendor,
        ro_number: str,
        shop_id: UUID,
        actor_id: UUID,
        requested_delivery_date: date | None = None,
        parent_order_id: UUID | None = None,
        notes: str | None = None,
    ) -> PurchaseOrderModel:
        """Number, price and insert one draft PO and point ``lines`` at it."""
        totals = compute_order_totals(
            [OrderLineAmount(line.quantity_ordered, line.unit_cost) for line in lines],
            self._config.tax_rate,
            vendor.discount_percentage,
        )
        po = PurchaseOrderModel(
            shop_id=shop_id,
            ro_number=ro_number,
            vendor_id=vendor.id,
            status=POStatus.DRAFT.value,
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            total_amount=totals.total,
            estimated_margin=totals.estimated_margin,
            line_item_count=len(lines),
            requested_delivery_date=requested_delivery_date,
            parent_order_id=parent_order_id,
            notes=notes,
            created_by_id=actor_id,
        )
        self._insert_numbered(po, ro_number, vendor)

        for line in lines:
            line.purchase_order_id = po.id
            line.vendor_id = vendor.id
            line.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "po_built",
            extra={
                "po_id": str(po.id),
                "po_number": po.po_number,
                "vendor_id": str(vendor.id),
                "line_item_count": len(lines),
                "subtotal": str(totals.subtotal),
                "total_amount": str(totals.total),
            },
        )
        return po

    def _order_lines(self, lines: Sequence[PartLineModel], actor_id: UUID) -> None:
        now = self._clock.now()
        for line in lines:
            self._set_line_status(line, PartLineStatus.ORDERED, "order", actor_id)
            line.order_date = now
        self._session.flush()

    @staticmethod
    def _po_payload(po: PurchaseOrder) -> dict:
        return {
            "po_id": str(po.id),
            "po_number": po.po_number,
            "ro_number": po.ro_number,
            "vendor_id": str(po.vendor_id),
            "status": po.status.value,
            "total_amount": str(po.total_amount),
        }

    # =========================================================================
    # Part lines from estimates
    # =========================================================================

    def register_estimate_parts(
        self,
        document: EstimateDocument,
        shop_id: UUID,
        *,
        actor_id: UUID,
        ro_number: str | None = None,
    ) -> list[PartLine]:
        """
        Create a ``needed`` part line for every part row of an imported estimate.

        Bootstraps the shop's default vendors first, then resolves a vendor
        for each line.  Lines the resolver cannot place keep ``vendor_id``
        None and wait for manual assignment.

        Raises:
            ValueError: no repair order number on the document or argument.
        """
        ro = (ro_number or document.ro_number or "").strip()
        if not ro:
            raise ValueError("A repair order number is required to register parts")

        try:
            logger.info(
                "register_estimate_parts_started",
                extra={
                    "shop_id": str(shop_id),
                    "ro_number": ro,
                    "part_line_count": len(document.part_lines()),
                },
            )
            self._vendors.ensure_default_vendors(shop_id, self._config.default_vendors, actor_id)

            created: list[PartLineModel] = []
            for damage_line in document.part_lines():
                if damage_line.quantity <= _ZERO:
                    logger.warning(
                        "estimate_part_line_skipped",
                        extra={
                            "ro_number": ro,
                            "line_number": damage_line.line_number,
                            "quantity": str(damage_line.quantity),
                        },
                    )
                    continue
                line = PartLineModel(
                    shop_id=shop_id,
                    ro_number=ro,
                    part_number=damage_line.part_number,
                    description=damage_line.description,
                    part_type=damage_line.part_type,
                    source_code=damage_line.source_code,
                    supplier_ref=damage_line.supplier_ref,
                    quantity_ordered=damage_line.quantity,
                    unit_cost=damage_line.unit_price,
                    status=PartLineStatus.NEEDED.value,
                    created_by_id=actor_id,
                )
                line.vendor_id = self._resolve_vendor(line)
                self._session.add(line)
                created.append(line)
            self._session.flush()

            result = [line.to_dto() for line in created]
            self._session.commit()
            logger.info(
                "register_estimate_parts_committed",
                extra={
                    "ro_number": ro,
                    "created_count": len(result),
                    "unassigned_count": sum(1 for p in result if p.vendor_id is None),
                },
            )
            return result
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Purchase order creation
    # =========================================================================

    def create_purchase_orders(
        self,
        shop_id: UUID,
        *,
        actor_id: UUID,
        ro_number: str | None = None,
        part_line_ids: Sequence[UUID] | None = None,
        requested_delivery_date: date | None = None,
    ) -> POCreationResult:
        """
        One draft PO per resolved vendor for a repair order's needed lines.

        Select lines either by ``ro_number`` (every ``needed`` line of that
        RO in the shop) or by explicit ``part_line_ids``.  Lines without a
        vendor are resolved first; the rest are reported unassigned.

        Each vendor group runs in its own savepoint: numbering, pricing and
        the ``needed -> ordered`` transition either all land or none do.

        Raises:
            ValueError: neither or both selectors given.
            PartLineNotFoundError, InvalidStateTransitionError,
            PartLineConflictError: explicit ids that cannot be ordered.
        """
        if (ro_number is None) == (part_line_ids is None):
            raise ValueError("Pass exactly one of ro_number or part_line_ids")

        try:
            with LogContext.bind(shop_id=shop_id, actor_id=actor_id):
                logger.info(
                    "create_purchase_orders_started",
                    extra={
                        "ro_number": ro_number,
                        "requested_line_count": len(part_line_ids) if part_line_ids is not None else None,
                    },
                )

                if part_line_ids is not None:
                    lines = self._get_lines(part_line_ids)
                    if lines:
                        self._check_orderable(lines)
                        for line in lines:
                            if line.shop_id != shop_id:
                                raise PartLineConflictError(line.id, "belongs to a different shop")
                else:
                    lines = list(self._session.execute(
                        select(PartLineModel)
                        .where(
                            PartLineModel.shop_id == shop_id,
                            PartLineModel.ro_number == ro_number,
                            PartLineModel.status == PartLineStatus.NEEDED.value,
                        )
                        .order_by(PartLineModel.created_at, PartLineModel.id)
                    ).scalars().all())

                for line in lines:
                    if line.vendor_id is None:
                        line.vendor_id = self._resolve_vendor(line)
                        line.updated_by_id = actor_id
                self._session.flush()

                by_id = {line.id: line for line in lines}
                groups = group_by_vendor(line.to_dto() for line in lines)

                orders: list[PurchaseOrder] = []
                failed: list[FailedGroup] = []
                for vendor_id, group in groups.assigned():
                    group_lines = [by_id[p.id] for p in group]
                    savepoint = self._session.begin_nested()
                    try:
                        vendor = self._vendors.get_vendor(vendor_id)
                        po = self._build_order(
                            group_lines,
                            vendor,
                            ro_number=group_lines[0].ro_number,
                            shop_id=shop_id,
                            actor_id=actor_id,
                            requested_delivery_date=requested_delivery_date,
                        )
                        self._order_lines(group_lines, actor_id)
                        savepoint.commit()
                        orders.append(po.to_dto())
                    except (CollisionKernelError, SQLAlchemyError) as exc:
                        savepoint.rollback()
                        error_code = error_code_of(exc)
                        logger.warning(
                            "po_group_failed",
                            extra={
                                "vendor_id": str(vendor_id),
                                "part_line_ids": [str(p.id) for p in group],
                                "error_code": error_code,
                            },
                            exc_info=True,
                        )
                        failed.append(FailedGroup(
                            vendor_id=vendor_id,
                            part_line_ids=tuple(p.id for p in group),
                            error_code=error_code,
                            message=str(exc),
                        ))

                unassigned = tuple(p.id for p in groups.unassigned)
                if unassigned:
                    logger.info(
                        "part_lines_unassigned",
                        extra={"part_line_ids": [str(i) for i in unassigned]},
                    )

                self._session.commit()
                logger.info(
                    "create_purchase_orders_committed",
                    extra={
                        "order_count": len(orders),
                        "failed_group_count": len(failed),
                        "unassigned_count": len(unassigned),
                    },
                )
        except Exception:
            self._session.rollback()
            raise

        for po in orders:
            notify(self._notifier, "po_created", self._po_payload(po))
        return POCreationResult(
            orders=tuple(orders),
            unassigned_line_ids=unassigned,
            failed_groups=tuple(failed),
        )

    def create_purchase_order(
        self,
        vendor_id: UUID,
        part_line_ids: Sequence[UUID],
        *,
        actor_id: UUID,
        requested_delivery_date: date | None = None,
    ) -> PurchaseOrder:
        """
        A single draft PO to ``vendor_id`` for explicit lines.

        Every line must be ``needed`` and all must share one shop and one
        repair order; the vendor overrides any resolver assignment.
        """
        if not part_line_ids:
            raise ValueError("At least one part line is required")

        try:
            lines = self._get_lines(part_line_ids)
            self._check_orderable(lines)
            vendor = self._vendors.get_vendor(vendor_id)
            if vendor.shop_id != lines[0].shop_id:
                raise PartLineConflictError(lines[0].id, f"vendor {vendor.name} belongs to another shop")

            logger.info(
                "create_purchase_order_started",
                extra={
                    "vendor_id": str(vendor_id),
                    "ro_number": lines[0].ro_number,
                    "line_count": len(lines),
                },
            )
            po = self._build_order(
                lines,
                vendor,
                ro_number=lines[0].ro_number,
                shop_id=lines[0].shop_id,
                actor_id=actor_id,
                requested_delivery_date=requested_delivery_date,
            )
            self._order_lines(lines, actor_id)
            result = po.to_dto()
            self._session.commit()
            logger.info("create_purchase_order_committed", extra={"po_number": result.po_number})
        except Exception:
            self._session.rollback()
            raise

        notify(self._notifier, "po_created", self._po_payload(result))
        return result

    # =========================================================================
    # Receiving
    # =========================================================================

    def _receive_item(
        self,
        po: PurchaseOrderModel,
        item: ReceiveItem,
        actor_id: UUID,
        returns: list[ReturnOrder],
    ) -> ReceiveItemResult:
        line = self._session.get(PartLineModel, item.part_line_id)
        if line is None or line.purchase_order_id != po.id:
            logger.warning(
                "receive_item_failed",
                extra={"part_line_id": str(item.part_line_id), "error_code": "PART_LINE_NOT_FOUND"},
            )
            return ReceiveItemResult(
                part_line_id=item.part_line_id,
                status="error",
                message="Part line not found in this PO",
                error_code=PartLineNotFoundError.code,
            )

        try:
            condition = ReceiptCondition(item.condition)
        except ValueError:
            exc = InvalidReceiptConditionError(item.part_line_id, item.condition)
            logger.warning(
                "receive_item_failed",
                extra={"part_line_id": str(item.part_line_id), "error_code": exc.code},
            )
            return ReceiveItemResult(
                part_line_id=item.part_line_id,
                status="error",
                message=str(exc),
                error_code=exc.code,
            )

        message = (
            f"Received {_fmt_qty(item.received_quantity)} of "
            f"{_fmt_qty(line.quantity_ordered)} ordered"
        )
        variance = item.received_quantity - line.quantity_ordered

        if (
            line.received_quantity is not None
            and line.received_quantity == item.received_quantity
            and line.last_receipt_condition == condition.value
        ):
            logger.info(
                "receive_item_unchanged",
                extra={"part_line_id": str(line.id), "status": line.status},
            )
            return ReceiveItemResult(
                part_line_id=line.id,
                status="processed",
                message=message,
                new_status=PartLineStatus(line.status),
                quantity_variance=variance,
                unchanged=True,
            )

        decision = decide_receipt(line.quantity_ordered, item.received_quantity, condition)
        savepoint = self._session.begin_nested()
        try:
            self._set_line_status(line, PartLineStatus(decision.new_status), "receive", actor_id)
            line.received_quantity = item.received_quantity
            line.last_receipt_condition = condition.value
            line.received_date = self._clock.now()
            if item.notes:
                line.notes = item.notes

            recorded: ReturnOrder | None = None
            if decision.return_reason is not None:
                already = self._returns.recorded_quantity(line.id, decision.return_reason)
                owed = decision.return_quantity - already
                if owed > _ZERO:
                    recorded = self._returns.record(
                        po.id,
                        line.id,
                        owed,
                        decision.return_reason,
                        actor_id,
                        notes=item.notes,
                    )
            self._session.flush()
            savepoint.commit()
        except CollisionKernelError as exc:
            savepoint.rollback()
            logger.warning(
                "receive_item_failed",
                extra={"part_line_id": str(item.part_line_id), "error_code": exc.code},
            )
            return ReceiveItemResult(
                part_line_id=item.part_line_id,
                status="error",
                message=str(exc),
                error_code=exc.code,
            )

        if recorded is not None:
            returns.append(recorded)
        logger.info(
            "receive_item_processed",
            extra={
                "part_line_id": str(line.id),
                "status": decision.new_status,
                "quantity_variance": str(decision.quantity_variance),
                "return_reason": decision.return_reason.value if decision.return_reason else None,
            },
        )
        return ReceiveItemResult(
            part_line_id=line.id,
            status="processed",
            message=message,
            new_status=PartLineStatus(decision.new_status),
            quantity_variance=decision.quantity_variance,
        )

    def receive(
        self,
        po_id: UUID,
        items: Sequence[ReceiveItem],
        *,
        actor_id: UUID,
    ) -> ReceivingResult:
        """
        Apply a receiving report to a purchase order.

        The PO row is locked for the whole report.  Each item runs in its
        own savepoint; a bad item becomes an ``error`` result and the rest
        still apply.  The PO status is then recomputed over all of its
        lines: ``received`` iff every line is received or installed,
        otherwise ``partial``.

        Raises:
            PurchaseOrderNotFoundError: unknown ``po_id``.
            InvalidStateTransitionError: PO is split, closed or cancelled.
        """
        try:
            with LogContext.bind(po_id=po_id, actor_id=actor_id):
                po = self._get_po(po_id, lock=True)
                if po.status not in RECEIVABLE_PO_STATES:
                    raise InvalidStateTransitionError(
                        entity="purchase_order",
                        entity_id=po.id,
                        from_state=po.status,
                        to_state=POStatus.RECEIVED.value,
                        action="receive",
                    )
                logger.info(
                    "receive_started",
                    extra={"po_number": po.po_number, "item_count": len(items)},
                )

                returns: list[ReturnOrder] = []
                results = [self._receive_item(po, item, actor_id, returns) for item in items]

                lines = self._po_lines(po.id)
                fully_received = all(line.status in _LINE_FULLY_RECEIVED for line in lines)
                new_status = POStatus.RECEIVED if fully_received else POStatus.PARTIAL
                self._set_po_status(po, new_status, "receive", actor_id)
                if new_status is POStatus.RECEIVED and po.received_date is None:
                    po.received_date = self._clock.now()
                self._session.flush()

                outcome = ReceivingResult(
                    po_id=po.id,
                    po_number=po.po_number,
                    po_status=new_status,
                    items=tuple(results),
                    returns=tuple(returns),
                )
                self._session.commit()
                logger.info(
                    "receive_committed",
                    extra={
                        "po_status": new_status.value,
                        "processed_count": outcome.processed_count,
                        "error_count": outcome.error_count,
                        "return_count": len(outcome.returns),
                    },
                )
        except Exception:
            self._session.rollback()
            raise

        notify(self._notifier, "po_received", {
            "po_id": str(outcome.po_id),
            "po_number": outcome.po_number,
            "status": outcome.po_status.value,
            "processed_count": outcome.processed_count,
            "error_count": outcome.error_count,
            "return_count": len(outcome.returns),
        })
        return outcome

    def mark_backordered(
        self,
        part_line_ids: Sequence[UUID],
        *,
        actor_id: UUID,
    ) -> list[PartLine]:
        """``ordered -> backordered`` for lines the vendor cannot ship yet."""
        try:
            lines = self._get_lines(part_line_ids)
            for line in lines:
                self._set_line_status(line, PartLineStatus.BACKORDERED, "backorder", actor_id)
            self._session.flush()
            result = [line.to_dto() for line in lines]
            self._session.commit()
            logger.info(
                "parts_backordered",
                extra={"part_line_ids": [str(p.id) for p in result]},
            )
            return result
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Split
    # =========================================================================

    def _split_vendor(self, po: PurchaseOrderModel, group: SplitGroup) -> Vendor:
        if group.vendor_id is not None:
            return self._vendors.get_vendor(group.vendor_id)
        vendor = self._vendors.find_by_code(po.shop_id, group.vendor_code)
        if vendor is None:
            raise SplitValidationError(po.id, f"No active vendor with code {group.vendor_code}")
        return vendor

    def split_purchase_order(
        self,
        po_id: UUID,
        groups: Sequence[SplitGroup],
        *,
        actor_id: UUID,
    ) -> list[PurchaseOrder]:
        """
        Replace a draft PO by one child PO per group.

        Preconditions:
            - The PO is ``draft``.
            - ``groups`` partition the parent's lines: every group line
              belongs to the parent and every parent line is in exactly
              one group.
        Postconditions:
            - Children carry the parent's RO number, ``parent_order_id``,
              freshly computed totals, the group's delivery date (default:
              the parent's) and the note ``"Split from PO {number}"``.
            - Parent status is ``split``.
        """
        try:
            with LogContext.bind(po_id=po_id, actor_id=actor_id):
                parent = self._get_po(po_id, lock=True)
                require_transition(
                    PURCHASE_ORDER_WORKFLOW, parent.status, POStatus.SPLIT,
                    entity="purchase_order", entity_id=parent.id, action="split",
                )
                lines = self._po_lines(parent.id)
                by_id = {line.id: line for line in lines}

                if not groups:
                    raise SplitValidationError(parent.id, "At least one split group is required")
                assigned: set[UUID] = set()
                for group in groups:
                    foreign = [i for i in group.part_line_ids if i not in by_id]
                    if foreign:
                        raise SplitValidationError(
                            parent.id,
                            "Part lines do not belong to this purchase order",
                            [str(i) for i in foreign],
                        )
                    repeated = [i for i in group.part_line_ids if i in assigned]
                    if repeated or len(set(group.part_line_ids)) != len(group.part_line_ids):
                        raise SplitValidationError(
                            parent.id,
                            "Part lines appear in more than one group",
                            [str(i) for i in repeated] or None,
                        )
                    assigned.update(group.part_line_ids)
                missing = [line.id for line in lines if line.id not in assigned]
                if missing:
                    raise SplitValidationError(
                        parent.id,
                        "Every part line must be assigned to a group",
                        [str(i) for i in missing],
                    )

                logger.info(
                    "split_purchase_order_started",
                    extra={"po_number": parent.po_number, "group_count": len(groups)},
                )

                children: list[PurchaseOrder] = []
                for group in groups:
                    vendor = self._split_vendor(parent, group)
                    child = self._build_order(
                        [by_id[i] for i in group.part_line_ids],
                        vendor,
                        ro_number=parent.ro_number,
                        shop_id=parent.shop_id,
                        actor_id=actor_id,
                        requested_delivery_date=group.delivery_date or parent.requested_delivery_date,
                        parent_order_id=parent.id,
                        notes=f"Split from PO {parent.po_number}",
                    )
                    children.append(child.to_dto())

                self._set_po_status(parent, POStatus.SPLIT, "split", actor_id)
                self._session.flush()
                self._session.commit()
                logger.info(
                    "split_purchase_order_committed",
                    extra={
                        "po_number": parent.po_number,
                        "child_po_numbers": [c.po_number for c in children],
                    },
                )
        except Exception:
            self._session.rollback()
            raise

        notify(self._notifier, "po_split", {
            "po_id": str(po_id),
            "child_po_ids": [str(c.id) for c in children],
            "child_po_numbers": [c.po_number for c in children],
        })
        return children

    # =========================================================================
    # Install
    # =========================================================================

    def install_parts(
        self,
        part_line_ids: Sequence[UUID],
        *,
        actor_id: UUID,
        installed_quantity: Decimal | None = None,
    ) -> list[PartLine]:
        """
        ``received -> installed``.  The installed quantity defaults to the
        received quantity and may not exceed it.
        """
        try:
            lines = self._get_lines(part_line_ids)
            now = self._clock.now()
            for line in lines:
                self._set_line_status(line, PartLineStatus.INSTALLED, "install", actor_id)
                quantity = installed_quantity if installed_quantity is not None else line.received_quantity
                if quantity is None or quantity <= _ZERO:
                    raise ValueError(f"Installed quantity must be positive for part line {line.id}")
                if line.received_quantity is not None and quantity > line.received_quantity:
                    raise ValueError(
                        f"Cannot install {quantity} of part line {line.id}: "
                        f"only {line.received_quantity} received"
                    )
                line.installed_quantity = quantity
                line.installed_date = now
            self._session.flush()
            result = [line.to_dto() for line in lines]
            self._session.commit()
            logger.info(
                "install_parts_committed",
                extra={"part_line_ids": [str(p.id) for p in result]},
            )
        except Exception:
            self._session.rollback()
            raise

        notify(self._notifier, "parts_installed", {
            "part_line_ids": [str(p.id) for p in result],
            "ro_numbers": sorted({p.ro_number for p in result}),
        })
        return result

    # =========================================================================
    # Purchase order lifecycle actions
    # =========================================================================

    def _apply_po_action(
        self,
        po_id: UUID,
        to_status: POStatus,
        action: str,
        actor_id: UUID,
    ) -> PurchaseOrder:
        try:
            po = self._get_po(po_id, lock=True)
            from_status = po.status
            self._set_po_status(po, to_status, action, actor_id)
            if to_status is POStatus.CANCELLED:
                for line in self._po_lines(po.id):
                    if line.status not in _CANCELLABLE_LINE_STATES:
                        continue
                    self._set_line_status(line, PartLineStatus.NEEDED, "cancel_order", actor_id)
                    line.purchase_order_id = None
                    line.order_date = None
            self._session.flush()
            result = po.to_dto()
            self._session.commit()
            logger.info(
                "purchase_order_transitioned",
                extra={
                    "po_id": str(po_id),
                    "po_number": result.po_number,
                    "from_status": from_status,
                    "to_status": to_status.value,
                    "action": action,
                },
            )
            return result
        except Exception:
            self._session.rollback()
            raise

    def send_purchase_order(self, po_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        return self._apply_po_action(po_id, POStatus.SENT, "send", actor_id)

    def acknowledge_purchase_order(self, po_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        return self._apply_po_action(po_id, POStatus.ACKNOWLEDGED, "acknowledge", actor_id)

    def close_purchase_order(self, po_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        return self._apply_po_action(po_id, POStatus.CLOSED, "close", actor_id)

    def cancel_purchase_order(self, po_id: UUID, *, actor_id: UUID) -> PurchaseOrder:
        """Cancel an unreceived PO; its lines go back to ``needed``."""
        return self._apply_po_action(po_id, POStatus.CANCELLED, "cancel", actor_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_purchase_order(self, po_id: UUID) -> PurchaseOrder:
        return self._get_po(po_id).to_dto()

    def get_part_line(self, part_line_id: UUID) -> PartLine:
        return self._get_lines([part_line_id])[0].to_dto()

    def list_part_lines(
        self,
        shop_id: UUID,
        ro_number: str | None = None,
        status: PartLineStatus | None = None,
    ) -> list[PartLine]:
        stmt = select(PartLineModel).where(PartLineModel.shop_id == shop_id)
        if ro_number is not None:
            stmt = stmt.where(PartLineModel.ro_number == ro_number)
        if status is not None:
            stmt = stmt.where(PartLineModel.status == PartLineStatus(status).value)
        stmt = stmt.order_by(PartLineModel.created_at, PartLineModel.id)
        return [line.to_dto() for line in self._session.execute(stmt).scalars().all()]

    def list_order_lines(self, po_id: UUID) -> list[PartLine]:
        self._get_po(po_id)
        return [line.to_dto() for line in self._po_lines(po_id)]

    def list_purchase_orders(
        self,
        shop_id: UUID,
        ro_number: str | None = None,
    ) -> list[PurchaseOrder]:
        stmt = select(PurchaseOrderModel).where(PurchaseOrderModel.shop_id == shop_id)
        if ro_number is not None:
            stmt = stmt.where(PurchaseOrderModel.ro_number == ro_number)
        stmt = stmt.order_by(PurchaseOrderModel.created_at, PurchaseOrderModel.po_number)
        return [po.to_dto() for po in self._session.execute(stmt).scalars().all()]

    def list_returns(self, po_id: UUID) -> list[ReturnOrder]:
        return self._returns.list_returns(po_id)

    def vendor_metrics(self, vendor_id: UUID) -> VendorMetrics:
        return vendor_metrics(self._session, vendor_id)
