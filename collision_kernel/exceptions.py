"""
Typed Exception Hierarchy for estimate import and parts procurement.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (batch processor, HTTP layer, tests) branch on the TYPE of a failure
and read its structured attributes; they never parse message text.

    try:
        service.split_purchase_order(po_id, groups)
    except InvalidStateTransitionError as e:
        respond(409, code=e.code, current=e.from_state, requested=e.to_state)
    except NotFoundError as e:
        respond(404, code=e.code, entity=e.entity, id=e.entity_id)

Every exception class carries:
  1. a ``code`` CLASS attribute (machine-readable, API-safe);
  2. structured attributes set in ``__init__``;
  3. a ``retryable`` class attribute telling the caller whether an
     automatic retry of the same input can ever succeed.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CollisionKernelError (base)
    |
    +-- EstimateError
    |   +-- ParseError
    |   +-- EstimateValidationError
    |
    +-- NotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- PartLineNotFoundError
    |   +-- VendorNotFoundError
    |
    +-- ProcurementError
    |   +-- InvalidStateTransitionError
    |   +-- SplitValidationError
    |   +-- PartLineConflictError
    |   +-- InvalidReceiptConditionError
    |
    +-- ConcurrencyError
    |   +-- SequenceAllocationError
    |
    +-- BatchError
        +-- BatchAlreadyRunningError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------
Estimate     | PARSE_ERROR                 | XML estimate is not well-formed
             | ESTIMATE_INVALID            | Validation found blocking errors
-------------|-----------------------------|------------------------------------
Not found    | PURCHASE_ORDER_NOT_FOUND    | PO id unresolvable
             | PART_LINE_NOT_FOUND         | Part line id unresolvable
             | VENDOR_NOT_FOUND            | Vendor id / code unresolvable
-------------|-----------------------------|------------------------------------
Procurement  | INVALID_STATE_TRANSITION    | e.g. split of non-draft PO,
             |                             | receive against a closed PO
             | SPLIT_VALIDATION_FAILED     | Split groups do not partition PO
             | PART_LINE_CONFLICT          | Lines from different ROs, or line
             |                             | already on an open PO
             | INVALID_RECEIPT_CONDITION   | Receiving line names an unknown
             |                             | condition (reported per item)
-------------|-----------------------------|------------------------------------
Concurrency  | SEQUENCE_ALLOCATION_FAILED  | Counter row could not be locked, or
             |                             | no free PO number within the retries
-------------|-----------------------------|------------------------------------
Batch        | BATCH_ALREADY_RUNNING       | Batch processor started twice

Not exceptions (values carried in results):
    ValidationIssue           -- inside ValidationReport
    vendor resolution miss    -- VendorResolver.resolve() returns None
    quantity variance         -- ReceiptDecision with a return quantity

===============================================================================
RETRY POLICY
===============================================================================

Only ParseError (idempotent re-parse of the same bytes) and storage I/O
failures raised by the database driver are retry candidates.  Every state
transition and validation failure is deterministic: retrying the same
request produces the same error.
"""

from typing import Any


class CollisionKernelError(Exception):
    """
    Base exception for all collision kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "COLLISION_KERNEL_ERROR"
    retryable: bool = False


# Estimate-related exceptions


class EstimateError(CollisionKernelError):
    """Base exception for estimate file errors."""

    code: str = "ESTIMATE_ERROR"


class ParseError(EstimateError):
    """Estimate content could not be parsed (fatal for the file)."""

    code: str = "PARSE_ERROR"
    retryable: bool = True

    def __init__(
        self,
        reason: str,
        source_format: str = "bms",
        line: int | None = None,
        column: int | None = None,
    ):
        self.reason = reason
        self.source_format = source_format
        self.line = line
        self.column = column
        location = f" at line {line}, column {column}" if line is not None else ""
        super().__init__(f"Failed to parse {source_format} estimate{location}: {reason}")


class EstimateValidationError(EstimateError):
    """A parsed estimate carries blocking validation errors.

    Raised by pipelines that cannot continue without a valid document;
    validation itself reports issues as values.
    """

    code: str = "ESTIMATE_INVALID"

    def __init__(self, file_name: str, messages: list[str]):
        self.file_name = file_name
        self.messages = messages
        first = messages[0] if messages else "unknown validation error"
        super().__init__(f"Validation failed for {file_name or 'estimate'}: {first}")


# Lookup exceptions


class NotFoundError(CollisionKernelError):
    """An entity referenced by id could not be resolved."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity} not found: {entity_id}")


class PurchaseOrderNotFoundError(NotFoundError):
    code: str = "PURCHASE_ORDER_NOT_FOUND"
    entity: str = "Purchase order"


class PartLineNotFoundError(NotFoundError):
    code: str = "PART_LINE_NOT_FOUND"
    entity: str = "Part line"


class VendorNotFoundError(NotFoundError):
    code: str = "VENDOR_NOT_FOUND"
    entity: str = "Vendor"


# Procurement exceptions


class ProcurementError(CollisionKernelError):
    """Base exception for procurement lifecycle errors."""

    code: str = "PROCUREMENT_ERROR"


class InvalidStateTransitionError(ProcurementError):
    """A lifecycle transition is not permitted from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        from_state: str,
        to_state: str,
        action: str | None = None,
    ):
        self.entity = entity
        self.entity_id = str(entity_id)
        self.from_state = from_state
        self.to_state = to_state
        self.action = action
        verb = f" ({action})" if action else ""
        super().__init__(
            f"Cannot transition {entity} {entity_id} from "
            f"'{from_state}' to '{to_state}'{verb}"
        )


class SplitValidationError(ProcurementError):
    """Split groups do not form a partition of the parent PO's lines."""

    code: str = "SPLIT_VALIDATION_FAILED"

    def __init__(self, po_id: Any, reason: str, part_line_ids: list[str] | None = None):
        self.po_id = str(po_id)
        self.reason = reason
        self.part_line_ids = part_line_ids or []
        super().__init__(f"Invalid split for PO {po_id}: {reason}")


class PartLineConflictError(ProcurementError):
    """Part lines cannot be ordered together."""

    code: str = "PART_LINE_CONFLICT"

    def __init__(self, part_line_id: Any, reason: str):
        self.part_line_id = str(part_line_id)
        self.reason = reason
        super().__init__(f"Part line {part_line_id} conflict: {reason}")


class InvalidReceiptConditionError(ProcurementError):
    """A receiving report line names a condition that does not exist."""

    code: str = "INVALID_RECEIPT_CONDITION"

    def __init__(self, part_line_id: Any, condition: Any):
        self.part_line_id = str(part_line_id)
        self.condition = str(condition)
        super().__init__(f"Unknown receipt condition {condition!r} for part line {part_line_id}")


# Concurrency exceptions


class ConcurrencyError(CollisionKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class SequenceAllocationError(ConcurrencyError):
    """A sequence counter row could not be created or locked."""

    code: str = "SEQUENCE_ALLOCATION_FAILED"

    def __init__(self, sequence_name: str, attempts: int):
        self.sequence_name = sequence_name
        self.attempts = attempts
        super().__init__(
            f"Could not allocate from sequence {sequence_name} after {attempts} attempts"
        )


# Batch exceptions


class BatchError(CollisionKernelError):
    """Base exception for multi-file batch processing."""

    code: str = "BATCH_ERROR"


class BatchAlreadyRunningError(BatchError):
    code: str = "BATCH_ALREADY_RUNNING"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} has already been started")


def error_code_of(exc: BaseException) -> str:
    """Stable code for reporting ``exc``: ours, else the exception class name.

    Third-party exceptions may carry an unrelated ``code`` attribute
    (SQLAlchemy's documentation link code), so only kernel errors use it.
    """
    if isinstance(exc, CollisionKernelError):
        return exc.code
    return type(exc).__name__
