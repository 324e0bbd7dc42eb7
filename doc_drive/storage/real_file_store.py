from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import BlobExistsError, BlobNotFoundError, GatewayError
from .memory_store import validate_key

logger = logging.getLogger(__name__)

INDEX_NAME = "index.json"


class LocalBlobStore:
    """Disk-backed blob store; key segments map onto sub-directories."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).expanduser().resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._index_path = self.base_path / INDEX_NAME
        self._entries: Dict[str, Dict[str, object]] = {}
        self._lock = threading.Lock()
        self._load_index()

    def _load_index(self) -> None:
        if not self._index_path.exists():
            return
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                self._entries = data
        except (json.JSONDecodeError, OSError):
            # Corrupt index; start fresh but keep existing blobs.
            logger.warning("Ignoring unreadable blob index at %s", self._index_path)
            self._entries = {}

    def _persist_index(self, entries: Dict[str, Dict[str, object]]) -> None:
        temp_path = self._index_path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(entries, indent=2, sort_keys=True), encoding="utf-8")
            temp_path.replace(self._index_path)
        except OSError as exc:
            raise GatewayError(f"Unable to update blob index: {exc}", store="storage") from exc

    def _resolve(self, key: str) -> Path:
        validate_key(key)
        try:
            target = (self.base_path / key).resolve()
        except (OSError, ValueError) as exc:
            raise GatewayError(f"Invalid storage key: {key!r}", store="storage", status_code=400) from exc
        if self.base_path not in target.parents or target == self._index_path:
            raise GatewayError(f"Invalid storage key: {key!r}", store="storage", status_code=400)
        return target

    # Blocking helpers ------------------------------------------------------

    def _write(self, key: str, data: bytes, content_type: str, overwrite: bool) -> None:
        target = self._resolve(key)
        if target.exists() and not overwrite:
            raise BlobExistsError(key)
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(data)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise GatewayError(f"Unable to write {key}: {exc}", store="storage") from exc
        with self._lock:
            # Index first: a failed index write leaves the previous blob in place.
            entries = {**self._entries, key: {"content_type": content_type, "size_bytes": len(data)}}
            try:
                self._persist_index(entries)
            except GatewayError:
                temp_path.unlink(missing_ok=True)
                raise
            try:
                temp_path.replace(target)
            except OSError as exc:
                temp_path.unlink(missing_ok=True)
                self._restore_index()
                raise GatewayError(f"Unable to write {key}: {exc}", store="storage") from exc
            self._entries = entries

    def _read(self, key: str) -> bytes:
        target = self._resolve(key)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(key) from exc
        except OSError as exc:
            raise GatewayError(f"Unable to read {key}: {exc}", store="storage") from exc

    def _remove(self, key: str) -> None:
        target = self._resolve(key)
        if not target.is_file():
            raise BlobNotFoundError(key)
        with self._lock:
            entries = {name: entry for name, entry in self._entries.items() if name != key}
            if key in self._entries:
                self._persist_index(entries)
            try:
                os.remove(target)
            except FileNotFoundError as exc:
                self._entries = entries
                raise BlobNotFoundError(key) from exc
            except OSError as exc:
                self._restore_index()
                raise GatewayError(f"Unable to delete {key}: {exc}", store="storage") from exc
            self._entries = entries
        parent = target.parent
        try:
            while parent != self.base_path and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
        except OSError:
            logger.debug("Leaving directory %s in place", parent)

    def _restore_index(self) -> None:
        try:
            self._persist_index(self._entries)
        except GatewayError as exc:
            logger.warning("Blob index may be stale: %s", exc.message)

    def _scan(self, prefix: str) -> List[str]:
        keys = []
        for path in self.base_path.rglob("*"):
            if not path.is_file() or path == self._index_path or path.name.endswith(".tmp"):
                continue
            key = path.relative_to(self.base_path).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    # StorageGateway --------------------------------------------------------

    async def put(self, key: str, data: bytes, *, content_type: str, overwrite: bool = False) -> None:
        await asyncio.to_thread(self._write, key, bytes(data), content_type, overwrite)

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._read, key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._scan, prefix)

    def describe(self, key: str) -> Optional[Dict[str, object]]:
        entry = self._entries.get(key)
        if not entry or not self._resolve(key).exists():
            return None
        return dict(entry)
