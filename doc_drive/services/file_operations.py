"""File operations coordinator.

Sequences the blob write and the metadata write of every logical document
operation and reports each one as a single outcome. The two stores share no
transaction, so a failure between the steps is reported as a partial failure
and left in place:

* create/upload: the blob is written first; a failed record insert leaves an
  orphaned blob, never an orphaned record.
* update: the blob is overwritten first; a failed record update leaves the new
  content under a stale name.
* delete: the record is removed first; the blob is removed best-effort
  afterwards, and a failure there leaves an orphaned blob.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar, Union

from ..errors import GatewayError, InvalidStateError, UserCancelledError
from ..gateways import MetadataGateway, StorageGateway
from ..messaging import DOCUMENTS_ACTIVITY, DOCUMENTS_INVALIDATED, InMemoryBus, MessageEnvelope
from ..models import DocumentListEntry, Notification, OperationOutcome, RawFile, UploadReport
from ..telemetry import Notifier
from .base import BaseService

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConfirmPrompt = Callable[[str], Union[Optional[bool], Awaitable[Optional[bool]]]]


def make_storage_key(file_name: str) -> str:
    """Return ``{random token}/{file name}``; only the final path segment of the name is kept."""
    base = PurePosixPath(file_name.replace("\\", "/")).name.strip()
    return f"{uuid.uuid4()}/{base or 'untitled'}"


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


@dataclass
class FileOperations(BaseService):
    storage: StorageGateway
    metadata: MetadataGateway
    bus: InMemoryBus
    notifier: Notifier

    # Create / upload -------------------------------------------------------

    async def create(self, name: str, content: str) -> OperationOutcome:
        if not name or not content:
            return self._fail(InvalidStateError("Please fill in all fields"), "create")
        report = await self.upload([RawFile(name=name, content=content.encode("utf-8"))])
        return report.outcomes[0]

    async def upload(self, files: Iterable[RawFile]) -> UploadReport:
        batch = list(files)
        if not batch:
            return UploadReport()
        outcomes = await asyncio.gather(*(self._store_document(raw) for raw in batch))
        report = UploadReport(outcomes=list(outcomes))

        if report.succeeded:
            message = f"Successfully uploaded {report.succeeded} file{_plural(report.succeeded)}"
            if report.failed:
                message += f". {report.failed} failed."
            self._notify("info", message)
            await self._invalidate("uploaded", document_ids=[doc.id for doc in report.documents])
        logger.info("Upload batch finished: %d succeeded, %d failed", report.succeeded, report.failed)
        return report

    async def _store_document(self, raw: RawFile) -> OperationOutcome:
        if not raw.name:
            return self._fail(InvalidStateError("File name is required"), "upload")
        storage_path = make_storage_key(raw.name)
        content_type = raw.content_type or self.config.storage.content_type
        try:
            await self._call(self.storage.put(storage_path, raw.content, content_type=content_type, overwrite=False))
        except GatewayError as exc:
            return self._fail(exc, "upload", f"Error uploading {raw.name}: {exc.message}")

        try:
            document_id = await self._call(self.metadata.insert(raw.name, storage_path))
        except GatewayError as exc:
            logger.warning("Blob %s has no document record after a failed insert", storage_path)
            return self._fail(
                exc,
                "upload",
                f"Uploaded {raw.name} but failed to record it: {exc.message}. "
                f"The stored content at {storage_path} is orphaned.",
                partial=True,
            )

        document = DocumentListEntry(id=document_id, name=raw.name, storage_path=storage_path)
        self.emit_metric("documents.created", 1)
        await self._record_activity("document_created", f"{raw.name} ({storage_path})")
        return OperationOutcome(ok=True, message=f"Uploaded {raw.name}", document=document)

    # Read ------------------------------------------------------------------

    async def load_content(self, storage_path: str) -> Optional[str]:
        if not storage_path:
            self._notify("error", "Failed to load file. Please try again.")
            return None
        try:
            data = await self._call(self.storage.get(storage_path))
        except GatewayError as exc:
            logger.warning("Unable to load %s: %s", storage_path, exc.message)
            self._notify("error", "Failed to load file. Please try again.")
            return None
        return data.decode("utf-8", errors="replace")

    # Update ----------------------------------------------------------------

    async def update_content(
        self,
        document_id: int,
        name: str,
        content: str,
        storage_path: str,
    ) -> OperationOutcome:
        if not storage_path:
            return self._fail(InvalidStateError("Invalid storage path"), "update")

        try:
            await self._call(
                self.storage.put(
                    storage_path,
                    content.encode("utf-8"),
                    content_type=self.config.storage.content_type,
                    overwrite=True,
                )
            )
        except GatewayError as exc:
            return self._fail(exc, "update", f"Failed to update file content: {exc.message}")

        try:
            await self._call(self.metadata.update(document_id, {"name": name}))
        except GatewayError as exc:
            logger.warning("Document %s has new content under a stale name", document_id)
            return self._fail(
                exc,
                "update",
                f"File content was saved but the document record was not updated: {exc.message}",
                partial=True,
            )

        document = DocumentListEntry(id=document_id, name=name, storage_path=storage_path)
        self.emit_metric("documents.updated", 1)
        self._notify("info", "File updated successfully.")
        await self._record_activity("document_updated", f"{name} ({storage_path})")
        await self._invalidate("updated", document_ids=[document_id])
        return OperationOutcome(ok=True, message="File updated successfully.", document=document)

    # Delete ----------------------------------------------------------------

    async def delete(
        self,
        document_id: int,
        name: str,
        storage_path: str,
        *,
        confirm: ConfirmPrompt,
    ) -> OperationOutcome:
        if not await self._confirmed(confirm, f'Are you sure you want to delete "{name}"?'):
            error = UserCancelledError(f'Deletion of "{name}" cancelled.')
            logger.info("Delete of document %s cancelled at confirmation", document_id)
            self._notify("info", str(error))
            return OperationOutcome(ok=False, message=str(error), error=error)

        try:
            await self._call(self.metadata.delete(document_id))
        except GatewayError as exc:
            return self._fail(exc, "delete", f"Failed to delete document record: {exc.message}")

        document = DocumentListEntry(id=document_id, name=name, storage_path=storage_path)
        partial = False
        message = "File deleted successfully."
        if storage_path:
            try:
                await self._call(self.storage.delete(storage_path))
            except GatewayError as exc:
                partial = True
                logger.warning("Blob %s left behind after deleting document %s: %s", storage_path, document_id, exc.message)
                message = f"File deleted successfully. Its stored content could not be removed: {exc.message}"

        self.emit_metric("documents.deleted", 1)
        self._notify("info", message)
        await self._record_activity("document_deleted", f"{name} ({storage_path or 'no storage path'})")
        await self._invalidate("deleted", document_ids=[document_id])
        return OperationOutcome(ok=True, message=message, document=document, partial=partial)

    # Helpers ---------------------------------------------------------------

    async def _call(self, awaitable: Awaitable[T]) -> T:
        timeout = self.config.gateway.timeout_seconds
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise GatewayError(f"Request timed out after {timeout:g}s") from exc

    @staticmethod
    async def _confirmed(confirm: ConfirmPrompt, message: str) -> bool:
        try:
            answer: Any = confirm(message)
            if inspect.isawaitable(answer):
                answer = await answer
        except UserCancelledError:
            return False
        return answer is True

    def _fail(
        self,
        error: Exception,
        operation: str,
        message: Optional[str] = None,
        *,
        partial: bool = False,
    ) -> OperationOutcome:
        text = message or str(error)
        self.emit_metric("documents.failed", 1, operation=operation)
        self.emit_event("document_operation_failed", operation=operation, reason=text)
        self._notify("error", text)
        return OperationOutcome(ok=False, message=text, error=error, partial=partial)

    def _notify(self, severity: str, message: str) -> None:
        self.notifier(Notification(severity=severity, message=message))

    async def _invalidate(self, reason: str, **payload: Any) -> None:
        await self.bus.publish(MessageEnvelope(topic=DOCUMENTS_INVALIDATED, payload={"reason": reason, **payload}))

    async def _record_activity(self, event_type: str, details: str) -> None:
        await self.bus.publish(
            MessageEnvelope(topic=DOCUMENTS_ACTIVITY, payload={"event_type": event_type, "details": details})
        )
