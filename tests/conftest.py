"""Shared fixtures: in-memory gateways that record calls and fail on demand."""

from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Tuple

import pytest

from doc_drive.config import DocDriveConfig
from doc_drive.errors import GatewayError
from doc_drive.runtime import DocDriveRuntime
from doc_drive.services.metadata_service import MetadataStore
from doc_drive.storage.memory_store import InMemoryBlobStore
from doc_drive.telemetry import TelemetryCollector

Failure = Tuple[str, Optional[Callable[[Any], bool]], str]


class _FailureMixin:
    store_name = "test"

    def _init_failures(self) -> None:
        self.calls: List[Tuple[str, Any]] = []
        self._failures: List[Failure] = []

    def fail(self, operation: str, message: str = "boom", *, when: Optional[Callable[[Any], bool]] = None) -> None:
        self._failures.append((operation, when, message))

    def heal(self) -> None:
        self._failures.clear()

    def _record(self, operation: str, target: Any) -> None:
        self.calls.append((operation, target))
        for failing_op, predicate, message in self._failures:
            if failing_op == operation and (predicate is None or predicate(target)):
                raise GatewayError(message, store=self.store_name)

    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]


class RecordingStorage(_FailureMixin, InMemoryBlobStore):
    store_name = "storage"

    def __init__(self) -> None:
        super().__init__()
        self._init_failures()

    async def put(self, key: str, data: bytes, *, content_type: str, overwrite: bool = False) -> None:
        self._record("put", key)
        await super().put(key, data, content_type=content_type, overwrite=overwrite)

    async def get(self, key: str) -> bytes:
        self._record("get", key)
        return await super().get(key)

    async def delete(self, key: str) -> None:
        self._record("delete", key)
        await super().delete(key)


class RecordingMetadata(_FailureMixin, MetadataStore):
    store_name = "metadata"

    def __post_init__(self) -> None:
        super().__post_init__()
        self._init_failures()

    async def list(self):
        self._record("list", None)
        return await super().list()

    async def insert(self, name: str, storage_path: str) -> int:
        self._record("insert", name)
        return await super().insert(name, storage_path)

    async def update(self, document_id: int, fields: Mapping[str, Any]) -> None:
        self._record("update", document_id)
        await super().update(document_id, fields)

    async def delete(self, document_id: int) -> None:
        self._record("delete", document_id)
        await super().delete(document_id)


@pytest.fixture
def config() -> DocDriveConfig:
    return DocDriveConfig.default()


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def metadata(config: DocDriveConfig) -> RecordingMetadata:
    return RecordingMetadata(config=config, telemetry=TelemetryCollector(config.observability))


@pytest.fixture
def runtime(config: DocDriveConfig, storage: RecordingStorage, metadata: RecordingMetadata) -> DocDriveRuntime:
    return DocDriveRuntime.bootstrap(config, storage=storage, metadata=metadata)
