"""Data models shared across gateways and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DocumentRecord:
    id: int
    name: str
    storage_path: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_entry(self) -> "DocumentListEntry":
        return DocumentListEntry(id=self.id, name=self.name, storage_path=self.storage_path)


@dataclass(frozen=True)
class DocumentListEntry:
    """Read projection of a record joined with its storage path."""

    id: int
    name: str
    storage_path: str


@dataclass(frozen=True)
class RawFile:
    name: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class Notification:
    severity: str
    message: str
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


@dataclass
class OperationOutcome:
    """Terminal result of one logical coordinator operation."""

    ok: bool
    message: str
    document: Optional[DocumentListEntry] = None
    error: Optional[Exception] = None
    # A residual inconsistency (orphaned blob, stale name) was left behind.
    partial: bool = False

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class UploadReport:
    outcomes: List[OperationOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded

    @property
    def documents(self) -> List[DocumentListEntry]:
        return [outcome.document for outcome in self.outcomes if outcome.ok and outcome.document]

    def __bool__(self) -> bool:
        return self.succeeded > 0


@dataclass
class ActivityEntry:
    id: int
    event_type: str
    details: str
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class OrphanReport:
    orphaned_blobs: Tuple[str, ...]
    dangling_records: Tuple[DocumentListEntry, ...]
    examined_blobs: int
    examined_records: int

    @property
    def consistent(self) -> bool:
        return not self.orphaned_blobs and not self.dangling_records
