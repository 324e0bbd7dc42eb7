from __future__ import annotations

import asyncio

from doc_drive.config import DocDriveConfig
from doc_drive.messaging import DOCUMENTS_ACTIVITY, InMemoryBus, MessageEnvelope
from doc_drive.services.activity_service import ActivityService
from doc_drive.telemetry import NotificationLog, TelemetryCollector


def _publish(bus, event_type, details):
    asyncio.run(bus.publish(MessageEnvelope(topic=DOCUMENTS_ACTIVITY, payload={"event_type": event_type, "details": details})))


def test_activity_is_newest_first_and_bounded():
    config = DocDriveConfig.default()
    bus = InMemoryBus()
    telemetry = TelemetryCollector(config.observability)
    service = ActivityService(bus=bus, telemetry=telemetry, max_entries=2)

    _publish(bus, "document_created", "a.md")
    _publish(bus, "document_updated", "a.md")
    _publish(bus, "document_deleted", "a.md")

    entries = service.list_entries()
    assert [entry.event_type for entry in entries] == ["document_deleted", "document_updated"]
    assert entries[0].id == 3
    assert [entry.event_type for entry in service.list_entries(event_type="document_updated")] == ["document_updated"]
    assert len(service.list_entries(limit=1)) == 1
    assert telemetry.events[-1]["message"] == "activity_document_deleted"


def test_operations_feed_activity_and_metrics(runtime):
    asyncio.run(runtime.operations.create("a.md", "text"))

    entries = runtime.activity_service.list_entries()
    assert entries[0].event_type == "document_created"
    assert entries[0].details.startswith("a.md (")
    assert runtime.telemetry.counter("documents.created") == 1


def test_failures_are_counted(runtime, storage):
    storage.fail("put")
    asyncio.run(runtime.operations.create("a.md", "text"))

    assert runtime.telemetry.counter("documents.failed") == 1
    assert runtime.activity_service.list_entries() == []


def test_audit_finds_dangling_records(runtime, storage):
    async def scenario():
        await runtime.operations.create("a.md", "text")
        entry = (await runtime.metadata.list())[0]
        await storage.delete(entry.storage_path)
        return entry, await runtime.auditor.scan()

    entry, report = asyncio.run(scenario())

    assert report.dangling_records == (entry,)
    assert report.orphaned_blobs == ()
    assert not report.consistent


def test_audit_of_clean_store(runtime):
    asyncio.run(runtime.operations.create("a.md", "text"))

    report = asyncio.run(runtime.auditor.scan())

    assert report.consistent
    assert report.examined_blobs == 1
    assert report.examined_records == 1


def test_notification_log_keeps_recent(caplog):
    log = NotificationLog(max_entries=2)

    with caplog.at_level("INFO", logger="doc_drive.telemetry"):
        log.info("one")
        log.error("two")
        log.info("three")

    assert [note.message for note in log.recent()] == ["two", "three"]
    assert [note.message for note in log.recent(1)] == ["three"]
    assert "notify[error] two" in caplog.text
