from __future__ import annotations

import asyncio

import pytest
import requests

from doc_drive.clients import RestMetadataGateway, RestStorageGateway
from doc_drive.errors import BlobExistsError, BlobNotFoundError, GatewayError, RecordNotFoundError


class _DummyResponse:
    def __init__(self, status_code=200, payload=None, content=b"", text=""):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class _StubHTTP:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, headers, timeout, **kwargs):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _storage(*responses):
    http = _StubHTTP(responses)
    gateway = RestStorageGateway(base_url="http://store.local/", api_key="anon", http_client=http, bucket="files")
    return gateway, http


def _metadata(*responses):
    http = _StubHTTP(responses)
    gateway = RestMetadataGateway(base_url="http://store.local", api_key="anon", http_client=http)
    return gateway, http


def test_storage_put_sends_upsert_flag_and_auth():
    gateway, http = _storage(_DummyResponse(payload={"Key": "files/k1/a.md"}))

    asyncio.run(gateway.put("k1/a b.md", b"text", content_type="text/plain", overwrite=True))

    sent = http.requests[0]
    assert sent["method"] == "POST"
    assert sent["url"] == "http://store.local/storage/v1/object/files/k1/a%20b.md"
    assert sent["headers"]["x-upsert"] == "true"
    assert sent["headers"]["Content-Type"] == "text/plain"
    assert sent["headers"]["Authorization"] == "Bearer anon"
    assert sent["data"] == b"text"


def test_storage_put_conflict_maps_to_exists():
    gateway, _ = _storage(_DummyResponse(status_code=400, payload={"message": "The resource already exists"}))

    with pytest.raises(BlobExistsError):
        asyncio.run(gateway.put("k1/a.md", b"text", content_type="text/plain"))


def test_storage_get_missing_object():
    gateway, _ = _storage(_DummyResponse(status_code=400, payload={"error": "not_found", "message": "Object not found"}))

    with pytest.raises(BlobNotFoundError):
        asyncio.run(gateway.get("k1/a.md"))


def test_storage_delete_of_unknown_key():
    gateway, http = _storage(_DummyResponse(payload=[]))

    with pytest.raises(BlobNotFoundError):
        asyncio.run(gateway.delete("k1/a.md"))
    assert http.requests[0]["json"] == {"prefixes": ["k1/a.md"]}


def test_storage_list_descends_into_folders():
    gateway, http = _storage(
        _DummyResponse(payload=[{"name": "k1", "id": None}, {"name": "loose.md", "id": "x"}]),
        _DummyResponse(payload=[{"name": "a.md", "id": "y"}]),
    )

    keys = asyncio.run(gateway.list_keys())

    assert keys == ["k1/a.md", "loose.md"]
    assert http.requests[1]["json"]["prefix"] == "k1"


def test_transport_error_becomes_gateway_error():
    gateway, _ = _storage(requests.ConnectionError("refused"))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.get("k1/a.md"))
    assert excinfo.value.store == "storage"


def test_metadata_list_reads_view():
    gateway, http = _metadata(
        _DummyResponse(payload=[{"id": 1, "name": "a.md", "storage_object_path": "k1/a.md"}])
    )

    entries = asyncio.run(gateway.list())

    assert entries[0].storage_path == "k1/a.md"
    assert http.requests[0]["url"] == "http://store.local/rest/v1/documents_with_storage_path"
    assert http.requests[0]["params"]["order"] == "id.asc"


def test_metadata_insert_returns_new_id():
    gateway, http = _metadata(_DummyResponse(status_code=201, payload=[{"id": 42}]))

    document_id = asyncio.run(gateway.insert("a.md", "k1/a.md"))

    assert document_id == 42
    assert http.requests[0]["json"] == {"name": "a.md", "storage_object_path": "k1/a.md"}
    assert http.requests[0]["headers"]["Prefer"] == "return=representation"


def test_metadata_update_filters_by_id():
    gateway, http = _metadata(_DummyResponse(payload=[{"id": 3}]))

    asyncio.run(gateway.update(3, {"name": "b.md"}))

    assert http.requests[0]["method"] == "PATCH"
    assert http.requests[0]["params"] == {"id": "eq.3"}
    assert http.requests[0]["json"] == {"name": "b.md"}


def test_metadata_update_rejects_unknown_fields_without_request():
    gateway, http = _metadata()

    with pytest.raises(GatewayError):
        asyncio.run(gateway.update(3, {"owner": "x"}))
    assert http.requests == []


def test_metadata_delete_of_missing_row():
    gateway, _ = _metadata(_DummyResponse(payload=[]))

    with pytest.raises(RecordNotFoundError):
        asyncio.run(gateway.delete(9))


def test_metadata_error_message_from_body():
    gateway, _ = _metadata(_DummyResponse(status_code=401, payload={"message": "JWT expired"}))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.list())
    assert excinfo.value.message == "JWT expired"
    assert excinfo.value.status_code == 401
