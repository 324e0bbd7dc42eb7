"""Exception hierarchy shared by gateways, services and the HTTP surface."""

from __future__ import annotations

from typing import Optional


class DocDriveError(Exception):
    """Base class for every error raised by doc_drive."""


class GatewayError(DocDriveError):
    """A remote store (blob or metadata) rejected or failed a call."""

    def __init__(self, message: str, *, store: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.store = store
        self.status_code = status_code


class BlobNotFoundError(GatewayError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}", store="storage", status_code=404)
        self.key = key


class BlobExistsError(GatewayError):
    def __init__(self, key: str) -> None:
        super().__init__("The resource already exists", store="storage", status_code=409)
        self.key = key


class RecordNotFoundError(GatewayError):
    def __init__(self, document_id: int) -> None:
        super().__init__(f"Document {document_id} not found", store="metadata", status_code=404)
        self.document_id = document_id


class InvalidStateError(DocDriveError):
    """An operation was invoked without the fields it needs."""


class UserCancelledError(DocDriveError):
    """The caller declined or dismissed a confirmation prompt."""
