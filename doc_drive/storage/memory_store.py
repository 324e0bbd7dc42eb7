"""Dict-backed blob store for development and tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ..errors import BlobExistsError, BlobNotFoundError, GatewayError


@dataclass
class StoredBlob:
    data: bytes
    content_type: str


def validate_key(key: str) -> str:
    if not key or key.startswith("/") or key.endswith("/") or "\x00" in key:
        raise GatewayError(f"Invalid storage key: {key!r}", store="storage", status_code=400)
    return key


class InMemoryBlobStore:
    def __init__(self) -> None:
        self._blobs: Dict[str, StoredBlob] = {}

    async def put(self, key: str, data: bytes, *, content_type: str, overwrite: bool = False) -> None:
        validate_key(key)
        if key in self._blobs and not overwrite:
            raise BlobExistsError(key)
        self._blobs[key] = StoredBlob(data=bytes(data), content_type=content_type)

    async def get(self, key: str) -> bytes:
        blob = self._blobs.get(key)
        if blob is None:
            raise BlobNotFoundError(key)
        return blob.data

    async def delete(self, key: str) -> None:
        if self._blobs.pop(key, None) is None:
            raise BlobNotFoundError(key)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._blobs if key.startswith(prefix))

    def content_type(self, key: str) -> str:
        blob = self._blobs.get(key)
        if blob is None:
            raise BlobNotFoundError(key)
        return blob.content_type

    def __contains__(self, key: object) -> bool:
        return key in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
