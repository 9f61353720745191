"""
Unit tests for InMemoryEmailStore status bookkeeping.
"""
from datetime import timedelta

import pytest

from core.domain.entities import Email
from core.domain.enums import LogStatus, ProcessingStatus
from mailpipe_sdk.utils.datetime import utc_now


@pytest.mark.asyncio
async def test_add_email_rejects_duplicate_source_id(store, make_email):
    email = await make_email(source_id="<dup@example.com>")

    with pytest.raises(ValueError):
        await store.add_email(Email(id="other", source_id="<dup@example.com>"))

    found = await store.find_by_source_id("<dup@example.com>")
    assert found.id == email.id


@pytest.mark.asyncio
async def test_loaded_email_is_a_copy(store, make_email):
    email = await make_email()

    loaded = await store.load_entity(email.id)
    loaded.body["content"] = "changed"

    assert (await store.load_entity(email.id)).body["content"] != "changed"


@pytest.mark.asyncio
async def test_log_insert_creates_status_record(store):
    await store.append_execution_log("e1", "strip_html", LogStatus.OK, {"duration_ms": 4})

    record = await store.get_processing_status("e1")
    assert record.status == ProcessingStatus.PROCESSING
    assert record.current_step == "strip_html"
    assert record.completed_steps == ["strip_html"]
    assert record.failed_steps == []
    assert record.started_at is not None


@pytest.mark.asyncio
async def test_log_insert_updates_step_history(store):
    await store.upsert_processing_status("e1", ProcessingStatus.PROCESSING, "a")

    await store.append_execution_log("e1", "a", LogStatus.ERROR, {})
    await store.append_execution_log("e1", "b", LogStatus.OK, {})
    await store.append_execution_log("e1", "a", LogStatus.OK, {})
    await store.append_execution_log("e1", "b", LogStatus.OK, {})
    await store.append_execution_log("e1", "inpoint", LogStatus.DUPLICATE, {})

    record = await store.get_processing_status("e1")
    # Each step appears at most once per list
    assert record.completed_steps == ["a", "b"]
    assert record.failed_steps == ["a"]
    assert record.current_step == "inpoint"
    # The log effect never changes the overall status
    assert record.status == ProcessingStatus.PROCESSING


@pytest.mark.asyncio
async def test_upsert_sets_completed_at_only_when_completed(store):
    await store.upsert_processing_status("e1", ProcessingStatus.PROCESSING, "a")
    assert (await store.get_processing_status("e1")).completed_at is None

    await store.upsert_processing_status("e1", ProcessingStatus.PARTIAL_FAILURE)
    assert (await store.get_processing_status("e1")).completed_at is None

    await store.upsert_processing_status("e1", ProcessingStatus.COMPLETED)
    record = await store.get_processing_status("e1")
    assert record.completed_at is not None
    assert record.current_step is None


@pytest.mark.asyncio
async def test_stuck_emails_are_listed_and_reset(store):
    await store.upsert_processing_status("old", ProcessingStatus.PROCESSING, "summary")
    await store.upsert_processing_status("fresh", ProcessingStatus.PROCESSING, "strip_html")
    await store.upsert_processing_status("done", ProcessingStatus.COMPLETED)
    stale = utc_now() - timedelta(hours=2)
    store._statuses["old"].updated_at = stale
    store._statuses["done"].updated_at = stale

    stuck = await store.list_stuck(timedelta(minutes=30))
    assert [r.email_id for r in stuck] == ["old"]

    assert await store.reset_stuck(timedelta(minutes=30)) == ["old"]

    record = await store.get_processing_status("old")
    assert record.status == ProcessingStatus.PENDING
    assert record.current_step is None
    assert await store.list_stuck(timedelta(minutes=30)) == []


@pytest.mark.asyncio
async def test_reset_status_optionally_keeps_history(store):
    await store.append_execution_log("e1", "a", LogStatus.OK, {})
    await store.append_execution_log("e1", "b", LogStatus.ERROR, {})

    assert await store.reset_status("e1", clear_history=False) is True
    record = await store.get_processing_status("e1")
    assert record.status == ProcessingStatus.PENDING
    assert record.completed_steps == ["a"]
    assert record.failed_steps == ["b"]

    assert await store.reset_status("e1") is True
    record = await store.get_processing_status("e1")
    assert record.completed_steps == []
    assert record.failed_steps == []

    assert await store.reset_status("unknown") is False


@pytest.mark.asyncio
async def test_execution_stats_group_by_step_and_status(store):
    await store.append_execution_log("e1", "a", LogStatus.OK, {"duration_ms": 10})
    await store.append_execution_log("e2", "a", LogStatus.OK, {"duration_ms": 30})
    await store.append_execution_log("e1", "a", LogStatus.ERROR, {"error": "x"})
    await store.append_execution_log("e1", "b", LogStatus.OK, {"duration_ms": 5})

    stats = await store.get_execution_stats()

    assert [(s.step, s.status, s.count, s.avg_duration_ms) for s in stats] == [
        ("a", "error", 1, None),
        ("a", "ok", 2, 20),
        ("b", "ok", 1, 5),
    ]

    only_e2 = await store.get_execution_stats("e2")
    assert [(s.step, s.count) for s in only_e2] == [("a", 1)]

    future = await store.get_execution_stats(since=utc_now() + timedelta(minutes=1))
    assert future == []
