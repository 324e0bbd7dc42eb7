"""Telemetry collection and the user-facing notification sink."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

from .config import ObservabilityConfig
from .models import Notification

logger = logging.getLogger(__name__)

Notifier = Callable[[Notification], None]


@dataclass
class TelemetryCollector:
    config: ObservabilityConfig
    metrics: List[Dict[str, object]] = field(default_factory=list)
    events: List[Dict[str, object]] = field(default_factory=list)

    def emit_metric(self, name: str, value: float, labels: Dict[str, str] | None = None) -> None:
        payload = {
            "name": name,
            "value": value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **(labels or {}),
        }
        self.metrics.append(payload)

    def emit_event(self, message: str, attributes: Dict[str, str] | None = None) -> None:
        self.events.append({
            "message": message,
            "attributes": dict(attributes or {}),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    def counter(self, name: str) -> float:
        return sum(float(metric.get("value", 0.0)) for metric in self.metrics if metric.get("name") == name)

    def flush(self) -> None:
        self.metrics.clear()
        self.events.clear()


class NotificationLog:
    """Default notification sink: keeps recent notifications and logs each one."""

    def __init__(self, max_entries: int = 100) -> None:
        self._entries: Deque[Notification] = deque(maxlen=max_entries)
        self.total = 0

    def __call__(self, notification: Notification) -> None:
        self._entries.append(notification)
        self.total += 1
        level = logging.ERROR if notification.is_error else logging.INFO
        logger.log(level, "notify[%s] %s", notification.severity, notification.message)

    def info(self, message: str) -> None:
        self(Notification(severity="info", message=message))

    def error(self, message: str) -> None:
        self(Notification(severity="error", message=message))

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        entries = list(self._entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    @property
    def last(self) -> Optional[Notification]:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()
