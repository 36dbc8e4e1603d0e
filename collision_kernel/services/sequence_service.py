"""
SequenceService -- gap-free keyed sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per sequence name.  Purchase-order
    numbering uses one sequence per ``(vendor, year-month)``, named
    ``po:{vendor_id}:{YYMM}``, so the ``SSS`` part of a PO number is
    allocated atomically instead of being derived from a row count.

Architecture position:
    Kernel > Services.  Called by the PO numbering step of
    ``collision_modules.procurement``.

Invariants enforced:
    - The counter row is the single source of truth for the next value.
      Counting existing purchase orders (or MAX()+1) is never used.
    - Transactional: an allocation is visible only after the caller's
      transaction commits; a rollback returns the value, so sequences stay
      gap-free except for intentionally cancelled orders.

Failure modes:
    - IntegrityError on concurrent first use of a name: handled by a
      savepoint rollback and a locked re-read.
    - SequenceAllocationError if the counter row vanishes between the
      failed insert and the re-read.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from collision_kernel.db.base import Base
from collision_kernel.exceptions import SequenceAllocationError
from collision_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence; row-level locking keeps it monotonic."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


def po_sequence_name(vendor_id, year_month: str) -> str:
    """Counter key for PO numbers of one vendor in one ``YYMM`` period."""
    return f"po:{vendor_id}:{year_month}"


def ro_sequence_name(shop_id) -> str:
    """Counter key for repair order numbers generated for one shop."""
    return f"ro:{shop_id}"


class SequenceService:
    """
    Transactional named sequences.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller owns the boundary.

    Usage:
        seq = SequenceService(session).next_value(po_sequence_name(vendor_id, "2501"))
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock (or create) the counter row for ``sequence_name`` and increment it.

        Postconditions:
            - Returns an integer > 0, greater than any value previously
              committed for this name.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. Another transaction may be inserting the same name,
            # so the insert runs in a savepoint.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise SequenceAllocationError(sequence_name, attempts=2)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never allocated."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
