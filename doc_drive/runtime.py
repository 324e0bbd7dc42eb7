"""Runtime wiring for the document drive."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .clients.rest_gateways import RestMetadataGateway, RestStorageGateway
from .config import DocDriveConfig
from .gateways import MetadataGateway, StorageGateway
from .messaging import InMemoryBus, build_bus
from .services.activity_service import ActivityService
from .services.document_list import DocumentListCache
from .services.file_operations import FileOperations
from .services.metadata_service import MetadataStore
from .services.reconciliation import OrphanAuditor
from .services.viewer import ViewerNavigator
from .storage.memory_store import InMemoryBlobStore
from .storage.real_file_store import LocalBlobStore
from .telemetry import NotificationLog, Notifier, TelemetryCollector


def build_storage(cfg: DocDriveConfig) -> StorageGateway:
    backend = cfg.storage.backend
    if backend == "memory":
        return InMemoryBlobStore()
    if backend == "local":
        return LocalBlobStore(cfg.storage.base_path)
    if backend == "rest":
        if not cfg.storage.rest_url:
            raise ValueError("storage.rest_url is required for the rest backend")
        return RestStorageGateway(
            base_url=cfg.storage.rest_url,
            api_key=cfg.storage.api_key,
            timeout=cfg.gateway.http_timeout_seconds,
            bucket=cfg.storage.bucket,
        )
    raise ValueError(f"Unknown storage backend: {backend}")


def build_metadata(cfg: DocDriveConfig, telemetry: TelemetryCollector) -> MetadataGateway:
    backend = cfg.metadata.backend
    if backend == "memory":
        return MetadataStore(config=cfg, telemetry=telemetry, state_path=cfg.metadata.state_path)
    if backend == "rest":
        if not cfg.metadata.rest_url:
            raise ValueError("metadata.rest_url is required for the rest backend")
        return RestMetadataGateway(
            base_url=cfg.metadata.rest_url,
            api_key=cfg.metadata.api_key,
            timeout=cfg.gateway.http_timeout_seconds,
            table=cfg.metadata.table,
            list_view=cfg.metadata.list_view,
            path_column=cfg.metadata.path_column,
        )
    raise ValueError(f"Unknown metadata backend: {backend}")


@dataclass
class DocDriveRuntime:
    config: DocDriveConfig
    bus: InMemoryBus
    telemetry: TelemetryCollector
    notifications: NotificationLog
    storage: StorageGateway
    metadata: MetadataGateway
    operations: FileOperations
    documents: DocumentListCache
    activity_service: ActivityService
    auditor: OrphanAuditor

    @classmethod
    def bootstrap(
        cls,
        config: Optional[DocDriveConfig] = None,
        *,
        storage: Optional[StorageGateway] = None,
        metadata: Optional[MetadataGateway] = None,
        notifier: Optional[Notifier] = None,
    ) -> "DocDriveRuntime":
        cfg = config or DocDriveConfig.default()
        bus = build_bus(cfg.message_bus.backend)
        telemetry = TelemetryCollector(cfg.observability)
        notifications = NotificationLog(cfg.observability.notification_history)
        sink = notifier or notifications

        storage_gateway = storage if storage is not None else build_storage(cfg)
        metadata_gateway = metadata if metadata is not None else build_metadata(cfg, telemetry)

        documents = DocumentListCache(metadata=metadata_gateway, bus=bus, notifier=sink)
        operations = FileOperations(
            config=cfg,
            telemetry=telemetry,
            storage=storage_gateway,
            metadata=metadata_gateway,
            bus=bus,
            notifier=sink,
        )
        activity_service = ActivityService(
            bus=bus,
            telemetry=telemetry,
            max_entries=cfg.observability.activity_history,
        )
        auditor = OrphanAuditor(config=cfg, telemetry=telemetry, storage=storage_gateway, metadata=metadata_gateway)

        return cls(
            config=cfg,
            bus=bus,
            telemetry=telemetry,
            notifications=notifications,
            storage=storage_gateway,
            metadata=metadata_gateway,
            operations=operations,
            documents=documents,
            activity_service=activity_service,
            auditor=auditor,
        )

    def navigator(self) -> ViewerNavigator:
        return ViewerNavigator(self.documents, self.operations, self.operations.notifier)
