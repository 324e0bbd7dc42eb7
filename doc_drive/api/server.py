"""FastAPI surface over the file operations coordinator."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..config import DocDriveConfig
from ..errors import GatewayError, InvalidStateError, RecordNotFoundError, UserCancelledError
from ..models import DocumentListEntry, OperationOutcome, RawFile
from ..runtime import DocDriveRuntime

runtime = DocDriveRuntime.bootstrap(DocDriveConfig.from_env())
logger = logging.getLogger(__name__)

app = FastAPI(title="Document Drive API", version="0.1.0")

_cors_origins = [origin.strip() for origin in os.environ.get("DOC_DRIVE_CORS_ORIGINS", "*").split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class DocumentModel(BaseModel):
    id: int
    name: str
    storage_path: str

    @classmethod
    def from_entry(cls, entry: DocumentListEntry) -> "DocumentModel":
        return cls(id=entry.id, name=entry.name, storage_path=entry.storage_path)


class DocumentContentModel(DocumentModel):
    content: str


class DocumentCreateRequest(BaseModel):
    name: str = Field(default="")
    content: str = Field(default="")


class DocumentUpdateRequest(BaseModel):
    content: str
    name: Optional[str] = Field(default=None)


class OutcomeModel(BaseModel):
    ok: bool
    message: str
    partial: bool = False
    document: Optional[DocumentModel] = None


class UploadReportModel(BaseModel):
    succeeded: int
    failed: int
    documents: List[DocumentModel]
    results: List[OutcomeModel]


class NotificationModel(BaseModel):
    severity: str
    message: str
    timestamp: datetime


class ActivityModel(BaseModel):
    id: int
    created_at: datetime
    event_type: str
    details: str


class OrphanReportModel(BaseModel):
    consistent: bool
    orphaned_blobs: List[str]
    dangling_records: List[DocumentModel]
    examined_blobs: int
    examined_records: int


def _outcome_model(outcome: OperationOutcome) -> OutcomeModel:
    return OutcomeModel(
        ok=outcome.ok,
        message=outcome.message,
        partial=outcome.partial,
        document=DocumentModel.from_entry(outcome.document) if outcome.document else None,
    )


def _raise_for_outcome(outcome: OperationOutcome) -> None:
    if outcome.ok:
        return
    error = outcome.error
    if isinstance(error, InvalidStateError):
        status = 400
    elif isinstance(error, RecordNotFoundError):
        status = 404
    elif isinstance(error, UserCancelledError):
        status = 409
    else:
        status = 502
    logger.info("Document operation failed (%s): %s", status, outcome.message)
    raise HTTPException(status_code=status, detail=outcome.message)


async def _refreshed_entries() -> List[DocumentListEntry]:
    try:
        return list(await runtime.documents.refresh())
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc


async def _lookup(document_id: int) -> DocumentListEntry:
    for entry in await _refreshed_entries():
        if entry.id == document_id:
            return entry
    raise HTTPException(status_code=404, detail=f"Document {document_id} not found")


@app.get("/documents", response_model=List[DocumentModel])
async def list_documents():
    return [DocumentModel.from_entry(entry) for entry in await _refreshed_entries()]


@app.post("/documents", response_model=OutcomeModel)
async def create_document(payload: DocumentCreateRequest):
    outcome = await runtime.operations.create(payload.name, payload.content)
    _raise_for_outcome(outcome)
    return _outcome_model(outcome)


@app.post("/documents:upload", response_model=UploadReportModel)
async def upload_documents(files: List[UploadFile] = File(...)):
    batch = []
    for upload in files:
        try:
            batch.append(RawFile(name=upload.filename or "", content=await upload.read(), content_type=upload.content_type))
        finally:
            await upload.close()
    report = await runtime.operations.upload(batch)
    if batch and not report.succeeded:
        raise HTTPException(status_code=502, detail="; ".join(outcome.message for outcome in report.outcomes))
    return UploadReportModel(
        succeeded=report.succeeded,
        failed=report.failed,
        documents=[DocumentModel.from_entry(entry) for entry in report.documents],
        results=[_outcome_model(outcome) for outcome in report.outcomes],
    )


@app.get("/documents/{document_id}/content", response_model=DocumentContentModel)
async def get_document_content(document_id: int):
    entry = await _lookup(document_id)
    content = await runtime.operations.load_content(entry.storage_path)
    if content is None:
        raise HTTPException(status_code=502, detail="Failed to load file. Please try again.")
    return DocumentContentModel(id=entry.id, name=entry.name, storage_path=entry.storage_path, content=content)


@app.put("/documents/{document_id}", response_model=OutcomeModel)
async def update_document(document_id: int, payload: DocumentUpdateRequest):
    entry = await _lookup(document_id)
    outcome = await runtime.operations.update_content(
        entry.id,
        payload.name or entry.name,
        payload.content,
        entry.storage_path,
    )
    _raise_for_outcome(outcome)
    return _outcome_model(outcome)


@app.delete("/documents/{document_id}", response_model=OutcomeModel)
async def delete_document(document_id: int, confirm: bool = False):
    entry = await _lookup(document_id)
    outcome = await runtime.operations.delete(
        entry.id,
        entry.name,
        entry.storage_path,
        confirm=lambda _message: confirm,
    )
    _raise_for_outcome(outcome)
    return _outcome_model(outcome)


@app.get("/notifications", response_model=List[NotificationModel])
async def list_notifications(limit: int = 50):
    return [
        NotificationModel(severity=item.severity, message=item.message, timestamp=item.timestamp)
        for item in reversed(runtime.notifications.recent(limit))
    ]


@app.get("/logs", response_model=List[ActivityModel])
async def list_activity(event_type: Optional[str] = None, limit: int = 100):
    return [
        ActivityModel(id=entry.id, created_at=entry.created_at, event_type=entry.event_type, details=entry.details)
        for entry in runtime.activity_service.list_entries(event_type=event_type, limit=limit)
    ]


@app.get("/ops/orphans", response_model=OrphanReportModel)
async def audit_orphans(prefix: str = ""):
    try:
        report = await runtime.auditor.scan(prefix)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return OrphanReportModel(
        consistent=report.consistent,
        orphaned_blobs=list(report.orphaned_blobs),
        dangling_records=[DocumentModel.from_entry(entry) for entry in report.dangling_records],
        examined_blobs=report.examined_blobs,
        examined_records=report.examined_records,
    )
