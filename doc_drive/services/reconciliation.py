"""Read-only audit of blob/record consistency.

Compares live storage keys with the storage paths of live records. Nothing is
deleted or rewritten here; repairing what the report finds is left to an
operator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..gateways import MetadataGateway, StorageGateway
from ..models import OrphanReport
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class OrphanAuditor(BaseService):
    storage: StorageGateway
    metadata: MetadataGateway

    async def scan(self, prefix: str = "") -> OrphanReport:
        keys = set(await self.storage.list_keys(prefix))
        records = [entry for entry in await self.metadata.list() if entry.storage_path.startswith(prefix)]
        referenced = {entry.storage_path for entry in records}

        report = OrphanReport(
            orphaned_blobs=tuple(sorted(keys - referenced)),
            dangling_records=tuple(entry for entry in records if entry.storage_path not in keys),
            examined_blobs=len(keys),
            examined_records=len(records),
        )
        self.emit_metric("audit.orphaned_blobs", len(report.orphaned_blobs))
        self.emit_metric("audit.dangling_records", len(report.dangling_records))
        if not report.consistent:
            logger.warning(
                "Storage audit found %d orphaned blobs and %d records without content",
                len(report.orphaned_blobs),
                len(report.dangling_records),
            )
        return report
