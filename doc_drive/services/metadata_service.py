"""Record store for document metadata (the local MetadataGateway)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..errors import GatewayError, RecordNotFoundError
from ..models import DocumentListEntry, DocumentRecord, utc_now
from .base import BaseService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"name", "storage_path"})


@dataclass
class MetadataStore(BaseService):
    """In-memory document records with optional JSON persistence.

    Ids are assigned from a monotonically increasing counter and never reused,
    so list order (ascending id) is insertion order.
    """

    state_path: Optional[str] = None
    _records: Dict[int, DocumentRecord] = field(default_factory=dict, init=False, repr=False)
    _next_id: int = field(default=1, init=False, repr=False)
    _state_file: Optional[Path] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.state_path:
            self._state_file = Path(self.state_path).expanduser()
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            self._load_state()

    # MetadataGateway -------------------------------------------------------

    async def list(self) -> List[DocumentListEntry]:
        return [record.to_entry() for _, record in sorted(self._records.items())]

    async def insert(self, name: str, storage_path: str) -> int:
        if not storage_path:
            raise GatewayError("storage_path is required", store="metadata", status_code=400)
        document_id = self._next_id
        records = {**self._records, document_id: DocumentRecord(id=document_id, name=name, storage_path=storage_path)}
        self._commit(records, document_id + 1)
        self.emit_event("document_inserted", document_id=str(document_id))
        return document_id

    async def update(self, document_id: int, fields: Mapping[str, Any]) -> None:
        record = self._records.get(document_id)
        if record is None:
            raise RecordNotFoundError(document_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise GatewayError(
                f"Cannot update fields: {', '.join(sorted(unknown))}",
                store="metadata",
                status_code=400,
            )
        changes: Dict[str, Any] = {key: str(value) for key, value in fields.items()}
        updated = replace(record, updated_at=utc_now(), **changes)
        self._commit({**self._records, document_id: updated}, self._next_id)
        self.emit_event("document_updated", document_id=str(document_id))

    async def delete(self, document_id: int) -> None:
        if document_id not in self._records:
            raise RecordNotFoundError(document_id)
        records = {key: record for key, record in self._records.items() if key != document_id}
        self._commit(records, self._next_id)
        self.emit_event("document_deleted", document_id=str(document_id))

    def _commit(self, records: Dict[int, DocumentRecord], next_id: int) -> None:
        # Disk first; memory only changes once the write went through.
        self._persist_state(records, next_id)
        self._records = records
        self._next_id = next_id

    # Local helpers ---------------------------------------------------------

    def get(self, document_id: int) -> Optional[DocumentRecord]:
        return self._records.get(document_id)

    def snapshot_stats(self) -> Dict[str, int]:
        return {"documents": len(self._records), "next_id": self._next_id}

    # Persistence helpers --------------------------------------------------

    def _load_state(self) -> None:
        if not self._state_file or not self._state_file.exists():
            return
        try:
            snapshot = json.loads(self._state_file.read_text(encoding="utf-8"))
            records = {
                int(item["id"]): DocumentRecord(
                    id=int(item["id"]),
                    name=item["name"],
                    storage_path=item["storage_path"],
                    created_at=datetime.fromisoformat(item["created_at"]),
                    updated_at=datetime.fromisoformat(item["updated_at"]),
                )
                for item in snapshot.get("documents", [])
            }
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Ignoring unreadable metadata state at %s", self._state_file)
            return
        self._records = records
        self._next_id = max(int(snapshot.get("next_id", 1)), max(records, default=0) + 1)

    def _persist_state(self, records: Dict[int, DocumentRecord], next_id: int) -> None:
        if not self._state_file:
            return
        payload = {
            "next_id": next_id,
            "documents": [
                {
                    "id": record.id,
                    "name": record.name,
                    "storage_path": record.storage_path,
                    "created_at": record.created_at.isoformat(),
                    "updated_at": record.updated_at.isoformat(),
                }
                for _, record in sorted(records.items())
            ],
        }
        temp_path = self._state_file.with_suffix(self._state_file.suffix + ".tmp")
        try:
            temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            temp_path.replace(self._state_file)
        except OSError as exc:
            raise GatewayError(f"Unable to persist metadata: {exc}", store="metadata") from exc
