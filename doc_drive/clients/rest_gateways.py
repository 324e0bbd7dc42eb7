"""HTTP adapters for a hosted object store and a PostgREST-style record store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import requests

from ..errors import BlobExistsError, BlobNotFoundError, GatewayError, RecordNotFoundError
from ..models import DocumentListEntry

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000


def _error_message(response: Any) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "msg"):
            value = payload.get(key)
            if value:
                return str(value)
    text = getattr(response, "text", "") or ""
    return text.strip() or f"HTTP {response.status_code}"


@dataclass
class _RestClient:
    base_url: str
    api_key: Optional[str] = None
    timeout: float = 10.0
    http_client: Any = requests
    store: str = "rest"

    def _url(self, suffix: str) -> str:
        return f"{self.base_url.rstrip('/')}{suffix}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method: str, suffix: str, *, headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> Any:
        url = self._url(suffix)
        try:
            response = self.http_client.request(
                method,
                url,
                headers=self._headers(headers),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"{method} {url} failed: {exc}", store=self.store) from exc
        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug("%s %s -> %s %s", method, url, response.status_code, message)
            raise GatewayError(message, store=self.store, status_code=response.status_code)
        return response

    def _json(self, response: Any) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("Malformed response body", store=self.store, status_code=response.status_code) from exc


@dataclass
class RestStorageGateway(_RestClient):
    """Object API laid out as ``/storage/v1/object/{bucket}/{key}``."""

    bucket: str = "files"
    store: str = "storage"

    def _object_path(self, key: str) -> str:
        return f"/storage/v1/object/{quote(self.bucket)}/{quote(key, safe='/')}"

    def _put(self, key: str, data: bytes, content_type: str, overwrite: bool) -> None:
        try:
            self._send(
                "POST",
                self._object_path(key),
                headers={"Content-Type": content_type, "x-upsert": "true" if overwrite else "false"},
                data=data,
            )
        except GatewayError as exc:
            if not overwrite and exc.status_code in (400, 409) and "exists" in exc.message.lower():
                raise BlobExistsError(key) from exc
            raise

    def _get(self, key: str) -> bytes:
        try:
            return self._send("GET", self._object_path(key)).content
        except GatewayError as exc:
            if exc.status_code == 404 or (exc.status_code == 400 and "not found" in exc.message.lower()):
                raise BlobNotFoundError(key) from exc
            raise

    def _delete(self, key: str) -> None:
        response = self._send("DELETE", f"/storage/v1/object/{quote(self.bucket)}", json={"prefixes": [key]})
        removed = self._json(response)
        if isinstance(removed, list) and not removed:
            raise BlobNotFoundError(key)

    def _list(self, prefix: str) -> List[str]:
        keys: List[str] = []
        pending = [prefix.rpartition("/")[0]]
        while pending:
            current = pending.pop()
            offset = 0
            while True:
                response = self._send(
                    "POST",
                    f"/storage/v1/object/list/{quote(self.bucket)}",
                    json={
                        "prefix": current,
                        "limit": LIST_PAGE_SIZE,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                )
                items = self._json(response) or []
                for item in items:
                    path = f"{current}/{item['name']}" if current else item["name"]
                    if item.get("id") is None:
                        # Folder placeholder: descend.
                        pending.append(path)
                    else:
                        keys.append(path)
                if len(items) < LIST_PAGE_SIZE:
                    break
                offset += LIST_PAGE_SIZE
        return sorted(key for key in keys if key.startswith(prefix))

    async def put(self, key: str, data: bytes, *, content_type: str, overwrite: bool = False) -> None:
        await asyncio.to_thread(self._put, key, data, content_type, overwrite)

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._get, key)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    async def list_keys(self, prefix: str = "") -> List[str]:
        return await asyncio.to_thread(self._list, prefix)


@dataclass
class RestMetadataGateway(_RestClient):
    """Record API laid out as ``/rest/v1/{table}`` with PostgREST filters."""

    table: str = "documents"
    list_view: str = "documents_with_storage_path"
    path_column: str = "storage_object_path"
    store: str = "metadata"
    field_map: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.field_map = {"name": "name", "storage_path": self.path_column, **self.field_map}

    def _list(self) -> List[DocumentListEntry]:
        response = self._send(
            "GET",
            f"/rest/v1/{self.list_view}",
            params={"select": f"id,name,{self.path_column}", "order": "id.asc"},
        )
        return [
            DocumentListEntry(id=int(row["id"]), name=row.get("name") or "", storage_path=row.get(self.path_column) or "")
            for row in self._json(response) or []
        ]

    def _insert(self, name: str, storage_path: str) -> int:
        response = self._send(
            "POST",
            f"/rest/v1/{self.table}",
            headers={"Prefer": "return=representation"},
            json={"name": name, self.path_column: storage_path},
        )
        rows = self._json(response) or []
        if not rows or "id" not in rows[0]:
            raise GatewayError("Insert returned no document id", store=self.store)
        return int(rows[0]["id"])

    def _update(self, document_id: int, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - set(self.field_map)
        if unknown:
            raise GatewayError(f"Cannot update fields: {', '.join(sorted(unknown))}", store=self.store, status_code=400)
        body = {self.field_map[key]: value for key, value in fields.items()}
        response = self._send(
            "PATCH",
            f"/rest/v1/{self.table}",
            headers={"Prefer": "return=representation"},
            params={"id": f"eq.{document_id}"},
            json=body,
        )
        if not self._json(response):
            raise RecordNotFoundError(document_id)

    def _delete(self, document_id: int) -> None:
        response = self._send(
            "DELETE",
            f"/rest/v1/{self.table}",
            headers={"Prefer": "return=representation"},
            params={"id": f"eq.{document_id}"},
        )
        if not self._json(response):
            raise RecordNotFoundError(document_id)

    async def list(self) -> List[DocumentListEntry]:
        return await asyncio.to_thread(self._list)

    async def insert(self, name: str, storage_path: str) -> int:
        return await asyncio.to_thread(self._insert, name, storage_path)

    async def update(self, document_id: int, fields: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._update, document_id, fields)

    async def delete(self, document_id: int) -> None:
        await asyncio.to_thread(self._delete, document_id)
