"""Protocols for the two external stores the drive coordinates.

Both gateways are asynchronous and raise :class:`~doc_drive.errors.GatewayError`
(or a subclass) on failure. Callers above the file operations coordinator never
see these errors directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from .models import DocumentListEntry


@runtime_checkable
class StorageGateway(Protocol):
    """Key-addressed blob storage."""

    async def put(self, key: str, data: bytes, *, content_type: str, overwrite: bool = False) -> None:
        """Store ``data`` under ``key``; refuse an existing key unless ``overwrite``."""
        ...

    async def get(self, key: str) -> bytes:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def list_keys(self, prefix: str = "") -> List[str]:
        """Return every stored key starting with ``prefix``."""
        ...


@runtime_checkable
class MetadataGateway(Protocol):
    """Record store holding document names and their storage paths."""

    async def list(self) -> Sequence[DocumentListEntry]:
        """Return all live documents in server order."""
        ...

    async def insert(self, name: str, storage_path: str) -> int:
        """Create a record and return its server-assigned id."""
        ...

    async def update(self, document_id: int, fields: Mapping[str, Any]) -> None:
        ...

    async def delete(self, document_id: int) -> None:
        ...
