"""Cache of the last fetched document list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..errors import GatewayError
from ..gateways import MetadataGateway
from ..messaging import DOCUMENTS_INVALIDATED, InMemoryBus, MessageEnvelope
from ..models import DocumentListEntry, Notification
from ..telemetry import Notifier

logger = logging.getLogger(__name__)


@dataclass
class DocumentListCache:
    """Ordered snapshot of the metadata store, refreshed on invalidation.

    The held tuple is replaced in a single assignment and never mutated, so a
    reader either sees the previous list or the new one. Nothing is ever
    changed locally ahead of the store.
    """

    metadata: MetadataGateway
    bus: InMemoryBus
    notifier: Notifier
    _entries: Tuple[DocumentListEntry, ...] = field(default=(), init=False, repr=False)
    _issued: int = field(default=0, init=False, repr=False)
    _applied: int = field(default=0, init=False, repr=False)
    version: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.bus.subscribe(DOCUMENTS_INVALIDATED, self._on_invalidated)

    async def refresh(self) -> Tuple[DocumentListEntry, ...]:
        self._issued += 1
        ticket = self._issued
        try:
            fetched = tuple(await self.metadata.list())
        except GatewayError:
            self.notifier(Notification(severity="error", message="Failed to fetch documents"))
            raise
        if ticket < self._applied:
            # A later refresh already landed; this response is older than what we hold.
            logger.debug("Dropping stale document list (ticket %d < %d)", ticket, self._applied)
            return self._entries
        self._applied = ticket
        self._entries = fetched
        self.version += 1
        return fetched

    def current(self) -> Tuple[DocumentListEntry, ...]:
        return self._entries

    def get(self, index: int) -> Optional[DocumentListEntry]:
        entries = self._entries
        if 0 <= index < len(entries):
            return entries[index]
        return None

    def index_of(self, document_id: int) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if entry.id == document_id:
                return index
        return None

    def __len__(self) -> int:
        return len(self._entries)

    async def _on_invalidated(self, envelope: MessageEnvelope) -> None:
        try:
            await self.refresh()
        except GatewayError as exc:
            logger.warning("Refresh after %s failed: %s", envelope.payload.get("reason", "invalidation"), exc.message)
