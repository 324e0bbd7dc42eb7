"""Configuration primitives for the document drive."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional


def _default_data_dir() -> str:
    return str(Path.home() / ".doc_drive")


@dataclass
class StorageConfig:
    backend: str = "memory"
    base_path: str = field(default_factory=lambda: str(Path(_default_data_dir()) / "blobs"))
    bucket: str = "files"
    content_type: str = "text/plain"
    rest_url: Optional[str] = None
    api_key: Optional[str] = None


@dataclass
class MetadataConfig:
    backend: str = "memory"
    state_path: Optional[str] = None
    table: str = "documents"
    list_view: str = "documents_with_storage_path"
    path_column: str = "storage_object_path"
    rest_url: Optional[str] = None
    api_key: Optional[str] = None


@dataclass
class GatewayConfig:
    # None disables the boundary and lets a hung call hang.
    timeout_seconds: Optional[float] = 30.0
    http_timeout_seconds: float = 10.0


@dataclass
class MessageBusConfig:
    backend: str = "in-memory"
    topics: List[str] = field(default_factory=lambda: [
        "documents.invalidated",
        "documents.activity",
    ])


@dataclass
class ObservabilityConfig:
    log_level: str = "INFO"
    notification_history: int = 100
    activity_history: int = 200


@dataclass
class DocDriveConfig:
    storage: StorageConfig
    metadata: MetadataConfig
    gateway: GatewayConfig
    message_bus: MessageBusConfig
    observability: ObservabilityConfig

    @staticmethod
    def default() -> "DocDriveConfig":
        return DocDriveConfig(
            storage=StorageConfig(),
            metadata=MetadataConfig(),
            gateway=GatewayConfig(),
            message_bus=MessageBusConfig(),
            observability=ObservabilityConfig(),
        )

    @staticmethod
    def local(data_dir: str) -> "DocDriveConfig":
        """Disk-backed blobs and a JSON metadata file under ``data_dir``."""
        base = Path(data_dir).expanduser()
        cfg = DocDriveConfig.default()
        cfg.storage.backend = "local"
        cfg.storage.base_path = str(base / "blobs")
        cfg.metadata.backend = "memory"
        cfg.metadata.state_path = str(base / "documents.json")
        return cfg

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "DocDriveConfig":
        env = os.environ if environ is None else environ
        data_dir = env.get("DOC_DRIVE_DATA_DIR")
        cfg = DocDriveConfig.local(data_dir) if data_dir else DocDriveConfig.default()

        rest_url = env.get("DOC_DRIVE_REST_URL")
        api_key = env.get("DOC_DRIVE_API_KEY")
        cfg.storage.backend = env.get("DOC_DRIVE_STORAGE_BACKEND", cfg.storage.backend)
        cfg.storage.bucket = env.get("DOC_DRIVE_BUCKET", cfg.storage.bucket)
        cfg.storage.rest_url = rest_url
        cfg.storage.api_key = api_key
        cfg.metadata.backend = env.get("DOC_DRIVE_METADATA_BACKEND", cfg.metadata.backend)
        cfg.metadata.rest_url = rest_url
        cfg.metadata.api_key = api_key

        timeout = env.get("DOC_DRIVE_GATEWAY_TIMEOUT")
        if timeout is not None:
            value = float(timeout)
            cfg.gateway.timeout_seconds = value if value > 0 else None
        cfg.observability.log_level = env.get("DOC_DRIVE_LOG_LEVEL", cfg.observability.log_level)
        return cfg
