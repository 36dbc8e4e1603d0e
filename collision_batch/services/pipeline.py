"""
EstimatePipeline -- the per-file pipeline of a batch import.

Contract:
    ``pipeline(batch_file)`` runs parse -> validate -> register parts ->
    resolve vendors -> group -> create purchase orders for one file,
    sequentially, in its own Session.  An estimate without a repair order
    number gets one from the shop's ``ro:{shop_id}`` counter, so estimates
    never share an RO by accident.

Architecture: collision_batch/services.  Composes the ingestion
    ``EstimateImportService`` and the procurement ``ProcurementService``;
    neither of them knows about batches.

Failure modes:
    - ``ParseError`` after the import service's retries.
    - ``EstimateValidationError`` when the estimate has blocking errors.
    - Procurement errors propagate; ``ProcurementService`` has already
      rolled back its own transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from collision_batch.domain.types import BatchFile
from collision_ingestion.domain.types import SourceFormat
from collision_ingestion.services.import_service import EstimateImportService
from collision_kernel.domain.clock import Clock, SystemClock
from collision_kernel.exceptions import EstimateValidationError
from collision_kernel.logging_config import get_logger
from collision_kernel.services.notification import NotificationSink
from collision_kernel.services.sequence_service import SequenceService, ro_sequence_name
from collision_modules.procurement.config import ProcurementConfig
from collision_modules.procurement.models import PurchaseOrder
from collision_modules.procurement.service import ProcurementService
from collision_modules.procurement.vendor_resolver import VendorCache

logger = get_logger("batch.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    file_name: str
    source_format: SourceFormat
    ro_number: str
    part_line_count: int
    orders: tuple[PurchaseOrder, ...] = ()
    unassigned_line_count: int = 0
    warning_count: int = 0


class EstimatePipeline:
    """Callable pipeline shared by every file of a batch.

    The vendor cache is shared across files (it is thread-safe); each
    file gets its own Session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        shop_id: UUID,
        actor_id: UUID,
        clock: Clock | None = None,
        import_service: EstimateImportService | None = None,
        procurement_config: ProcurementConfig | None = None,
        notifier: NotificationSink | None = None,
        cache: VendorCache | None = None,
    ):
        self._session_factory = session_factory
        self._shop_id = shop_id
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._import = import_service or EstimateImportService(clock=self._clock)
        self._procurement_config = procurement_config or ProcurementConfig.with_defaults()
        self._notifier = notifier
        self._cache = cache if cache is not None else VendorCache(
            enabled=self._procurement_config.vendor_cache_enabled,
        )

    def _generated_ro_number(self, session: Session) -> str:
        """``RO-{YYYYmmdd}-{NNNN}`` drawn from the shop's counter.

        The draw is flushed in ``session`` and committed together with the
        part lines registered under it.
        """
        value = SequenceService(session).next_value(ro_sequence_name(self._shop_id))
        return f"RO-{self._clock.now():%Y%m%d}-{value:04d}"

    def __call__(self, batch_file: BatchFile) -> PipelineResult:
        outcome = self._import.import_estimate(batch_file.content, batch_file.name)
        if not outcome.succeeded:
            raise EstimateValidationError(
                batch_file.name, [issue.message for issue in outcome.report.errors],
            )
        document = outcome.document

        session = self._session_factory()
        try:
            ro_number = document.ro_number or self._generated_ro_number(session)
            service = ProcurementService(
                session,
                clock=self._clock,
                config=self._procurement_config,
                notifier=self._notifier,
                cache=self._cache,
            )
            lines = service.register_estimate_parts(
                document, self._shop_id, actor_id=self._actor_id, ro_number=ro_number,
            )
            orders: tuple[PurchaseOrder, ...] = ()
            unassigned = 0
            if lines:
                created = service.create_purchase_orders(
                    self._shop_id, actor_id=self._actor_id, ro_number=ro_number,
                )
                orders = created.orders
                unassigned = len(created.unassigned_line_ids)
        finally:
            session.close()

        logger.info(
            "estimate_pipeline_completed",
            extra={
                "ro_number": ro_number,
                "part_line_count": len(lines),
                "order_count": len(orders),
                "unassigned_count": unassigned,
            },
        )
        return PipelineResult(
            file_name=batch_file.name,
            source_format=outcome.source_format,
            ro_number=ro_number,
            part_line_count=len(lines),
            orders=orders,
            unassigned_line_count=unassigned,
            warning_count=len(outcome.report.warnings),
        )
