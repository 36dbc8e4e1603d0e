"""Pure domain primitives shared across packages."""

from collision_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from collision_kernel.domain.workflow import (
    Guard,
    Transition,
    Workflow,
    can_transition,
    require_transition,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "Guard",
    "Transition",
    "Workflow",
    "can_transition",
    "require_transition",
]
