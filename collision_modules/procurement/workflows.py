"""
Procurement Workflows (``collision_modules.procurement.workflows``).

Responsibility
--------------
Declares the state machines for the part line lifecycle and the purchase
order lifecycle.  ``ProcurementService`` calls ``require_transition``
against these definitions before it writes any status column.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.  Imports canonical
Guard, Transition, Workflow from ``collision_kernel.domain.workflow``.

Invariants enforced
-------------------
* All ``Workflow``, ``Transition``, and ``Guard`` instances are
  ``frozen=True`` -- immutable after module load.
* ``installed`` is the only terminal part line state; ``split``,
  ``closed`` and ``cancelled`` are terminal for purchase orders.
"""

from collision_kernel.domain.workflow import Guard, Transition, Workflow
from collision_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

VENDOR_RESOLVED = Guard(
    name="vendor_resolved",
    description="Part line has a vendor assigned",
)

FULLY_RECEIVED = Guard(
    name="fully_received",
    description="Received quantity is available to install",
)

PARTITION_COMPLETE = Guard(
    name="partition_complete",
    description="Split groups cover every parent line exactly once",
)

logger.info(
    "procurement_workflow_guards_defined",
    extra={"guards": [VENDOR_RESOLVED.name, FULLY_RECEIVED.name, PARTITION_COMPLETE.name]},
)


# -----------------------------------------------------------------------------
# Part line workflow
# -----------------------------------------------------------------------------

# States a receiving report may be recorded against
RECEIPT_SOURCE_STATES = (
    "ordered",
    "backordered",
    "partial",
    "received",
    "damaged",
    "wrong_part",
)

RECEIPT_TARGET_STATES = ("partial", "received", "damaged", "wrong_part")


def _receipt_transitions() -> tuple[Transition, ...]:
    transitions = []
    for source in RECEIPT_SOURCE_STATES:
        for target in RECEIPT_TARGET_STATES:
            # A full receipt may only be corrected, never downgraded to partial
            if source == "received" and target == "partial":
                continue
            transitions.append(Transition(source, target, action="receive"))
    return tuple(transitions)


PART_LINE_WORKFLOW = Workflow(
    name="part_line",
    description="Replacement part procurement lifecycle",
    initial_state="needed",
    states=(
        "needed",
        "ordered",
        "backordered",
        "partial",
        "received",
        "damaged",
        "wrong_part",
        "installed",
    ),
    terminal_states=("installed",),
    transitions=(
        Transition("needed", "ordered", action="order", guard=VENDOR_RESOLVED),
        Transition("ordered", "needed", action="cancel_order"),
        Transition("backordered", "needed", action="cancel_order"),
        Transition("ordered", "backordered", action="backorder"),
        *_receipt_transitions(),
        Transition("received", "installed", action="install", guard=FULLY_RECEIVED),
    ),
)

logger.info(
    "part_line_workflow_registered",
    extra={
        "workflow_name": PART_LINE_WORKFLOW.name,
        "state_count": len(PART_LINE_WORKFLOW.states),
        "transition_count": len(PART_LINE_WORKFLOW.transitions),
        "initial_state": PART_LINE_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Purchase order workflow
# -----------------------------------------------------------------------------

RECEIVABLE_PO_STATES = ("draft", "sent", "acknowledged", "partial", "received")

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Vendor purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "acknowledged",
        "partial",
        "received",
        "split",
        "closed",
        "cancelled",
    ),
    terminal_states=("split", "closed", "cancelled"),
    transitions=(
        Transition("draft", "sent", action="send"),
        Transition("sent", "acknowledged", action="acknowledge"),
        *(
            Transition(source, target, action="receive")
            for source in RECEIVABLE_PO_STATES
            for target in ("partial", "received")
        ),
        Transition("draft", "split", action="split", guard=PARTITION_COMPLETE),
        Transition("received", "closed", action="close"),
        Transition("partial", "closed", action="close"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("sent", "cancelled", action="cancel"),
        Transition("acknowledged", "cancelled", action="cancel"),
    ),
)

logger.info(
    "purchase_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
