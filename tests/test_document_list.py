from __future__ import annotations

import asyncio

import pytest

from doc_drive.errors import GatewayError
from doc_drive.messaging import DOCUMENTS_INVALIDATED, MessageEnvelope


def test_refresh_reflects_store_order(runtime):
    async def scenario():
        await runtime.metadata.insert("b.md", "k1/b.md")
        await runtime.metadata.insert("a.md", "k2/a.md")
        return await runtime.documents.refresh()

    entries = asyncio.run(scenario())

    assert [entry.name for entry in entries] == ["b.md", "a.md"]
    assert runtime.documents.index_of(entries[1].id) == 1
    assert runtime.documents.get(2) is None


def test_invalidation_triggers_refresh(runtime):
    async def scenario():
        await runtime.metadata.insert("a.md", "k1/a.md")
        await runtime.bus.publish(MessageEnvelope(topic=DOCUMENTS_INVALIDATED, payload={"reason": "external"}))

    asyncio.run(scenario())

    assert len(runtime.documents) == 1
    assert runtime.documents.version == 1


def test_failed_refresh_keeps_last_snapshot(runtime, metadata):
    asyncio.run(runtime.operations.create("a.md", "text"))
    before = runtime.documents.current()
    metadata.fail("list", "connection reset")

    with pytest.raises(GatewayError):
        asyncio.run(runtime.documents.refresh())

    assert runtime.documents.current() == before
    assert runtime.notifications.last.message == "Failed to fetch documents"


def test_failed_refresh_after_invalidation_is_logged(runtime, metadata, caplog):
    metadata.fail("list", "connection reset")

    with caplog.at_level("WARNING", logger="doc_drive.services.document_list"):
        asyncio.run(runtime.bus.publish(MessageEnvelope(topic=DOCUMENTS_INVALIDATED, payload={"reason": "deleted"})))

    assert "Refresh after deleted failed" in caplog.text
    assert runtime.documents.current() == ()


def test_older_response_does_not_replace_newer(runtime, metadata):
    original_list = metadata.list

    async def scenario():
        await metadata.insert("a.md", "k1/a.md")
        gate = asyncio.Event()
        calls = 0

        async def slow_first_list():
            nonlocal calls
            calls += 1
            if calls == 1:
                snapshot = await original_list()
                await gate.wait()
                return snapshot
            return await original_list()

        metadata.list = slow_first_list
        slow = asyncio.create_task(runtime.documents.refresh())
        await asyncio.sleep(0)
        await metadata.insert("b.md", "k2/b.md")
        fresh = await runtime.documents.refresh()
        gate.set()
        stale = await slow
        return fresh, stale

    fresh, stale = asyncio.run(scenario())

    assert [entry.name for entry in fresh] == ["a.md", "b.md"]
    assert stale == fresh
    assert [entry.name for entry in runtime.documents.current()] == ["a.md", "b.md"]
