"""Kernel services (write side)."""

from collision_kernel.services.notification import (
    LoggingNotificationSink,
    NotificationSink,
    RecordingNotificationSink,
    notify,
)
from collision_kernel.services.sequence_service import (
    SequenceCounter,
    SequenceService,
    po_sequence_name,
)

__all__ = [
    "LoggingNotificationSink",
    "NotificationSink",
    "RecordingNotificationSink",
    "notify",
    "SequenceCounter",
    "SequenceService",
    "po_sequence_name",
]
