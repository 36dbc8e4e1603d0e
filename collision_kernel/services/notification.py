"""
Notification sink -- fire-and-forget broadcast of procurement updates.

Responsibility:
    After a purchase order is created, received, split, or its parts are
    installed, the procurement service publishes a small event payload
    (ids, status, counts) so that dashboards and websocket fan-out can
    refresh.  Delivery is best-effort: publishing happens after commit and
    a failing sink never rolls back or fails the procurement operation.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from collision_kernel.logging_config import get_logger

logger = get_logger("services.notification")


@runtime_checkable
class NotificationSink(Protocol):
    """Anything that can receive a broadcast update."""

    def publish(self, event_type: str, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: writes each update to the structured log."""

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("broadcast_update", extra={"event_type": event_type, "payload": payload})


@dataclass
class RecordingNotificationSink:
    """Keeps published events in memory (tests, local tooling)."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.events.append((event_type, dict(payload)))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


def notify(sink: NotificationSink | None, event_type: str, payload: dict[str, Any]) -> bool:
    """Publish to ``sink``; returns False (and logs) if the sink raised."""
    if sink is None:
        return False
    try:
        sink.publish(event_type, payload)
    except Exception:
        logger.warning(
            "notification_failed",
            extra={"event_type": event_type},
            exc_info=True,
        )
        return False
    return True
