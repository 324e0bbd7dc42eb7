"""Activity log fed from bus events."""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterator, List, Optional

from ..messaging import DOCUMENTS_ACTIVITY, InMemoryBus, MessageEnvelope
from ..models import ActivityEntry
from ..telemetry import TelemetryCollector


@dataclass
class ActivityService:
    bus: InMemoryBus
    telemetry: TelemetryCollector
    max_entries: int = 200
    entries: Deque[ActivityEntry] = field(init=False)
    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1), init=False, repr=False)

    def __post_init__(self) -> None:
        self.entries = deque(maxlen=self.max_entries)
        self.bus.subscribe(DOCUMENTS_ACTIVITY, self._handle_event)

    def _handle_event(self, envelope: MessageEnvelope) -> None:
        entry = ActivityEntry(
            id=next(self._ids),
            event_type=str(envelope.payload.get("event_type", envelope.topic)),
            details=str(envelope.payload.get("details", "")),
        )
        self.entries.append(entry)
        self.telemetry.emit_event(f"activity_{entry.event_type}", {"details": entry.details})

    def list_entries(self, *, event_type: Optional[str] = None, limit: Optional[int] = None) -> List[ActivityEntry]:
        """Newest first, like the logs page ordered by ``created_at`` descending."""
        entries = [entry for entry in reversed(self.entries) if event_type is None or entry.event_type == event_type]
        if limit is not None:
            entries = entries[: max(limit, 0)]
        return entries
