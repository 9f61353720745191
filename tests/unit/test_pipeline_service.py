"""
Unit tests for PipelineService.
"""
import dataclasses
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from core.application.services import PipelineService
from core.domain.entities import Email
from core.domain.enums import LogStatus, ProcessingStatus
from core.settings import PipelineSettings
from mailpipe_sdk.utils.datetime import utc_now
from orchestration import create_default_orchestrator
from orchestration.exceptions import StepExecutionFailure
from orchestration.workflow import StepDefinition


@pytest.fixture
def calls():
    return []


@pytest.fixture
def orchestrator(store, calls):
    async def first(email: Email) -> None:
        calls.append("first")

    async def second(email: Email) -> None:
        calls.append("second")

    return create_default_orchestrator(
        store,
        steps=[
            StepDefinition(name="first", action=first, retryable=True),
            StepDefinition(name="second", action=second, dependencies=["first"]),
        ],
    )


@pytest.fixture
def trigger():
    return AsyncMock()


@pytest.fixture
def service(orchestrator, store, trigger):
    settings = PipelineSettings(
        stuck_after_minutes=30, stuck_reset_after_minutes=60, stats_window_hours=24
    )
    return PipelineService(orchestrator, store, settings=settings, trigger=trigger)


@pytest.mark.asyncio
async def test_process_email_returns_run_summary(service, make_email, calls):
    email = await make_email()

    run = await service.process_email(email.id)

    assert calls == ["first", "second"]
    assert run.email_id == email.id
    assert run.status == ProcessingStatus.COMPLETED.value
    assert run.completed_steps == ["first", "second"]
    assert run.failed_steps == []
    assert [r.name for r in run.results] == ["first", "second"]
    assert run.total_duration_ms is not None


@pytest.mark.asyncio
async def test_run_specific_steps_skips_dependencies(service, make_email, calls):
    email = await make_email()

    run = await service.run_specific_steps(email.id, ["second"])

    assert calls == ["second"]
    assert run.executed_steps == ["second"]


@pytest.mark.asyncio
async def test_process_email_escalates_retryable_failure(store, make_email):
    async def broken(email: Email) -> None:
        raise ConnectionError("database unavailable")

    orchestrator = create_default_orchestrator(
        store, steps=[StepDefinition(name="broken", action=broken, retryable=True)]
    )
    service = PipelineService(orchestrator, store)
    email = await make_email()

    with pytest.raises(StepExecutionFailure):
        await service.process_email(email.id)

    record = await service.get_processing_status(email.id)
    assert record.status == ProcessingStatus.FAILED


@pytest.mark.asyncio
async def test_pipeline_stats_for_one_email_and_window(service, store, make_email):
    email = await make_email()
    await service.process_email(email.id)
    # An execution outside the stats window
    await store.append_execution_log("old-email", "first", LogStatus.OK, {"duration_ms": 1})
    store._logs[-1] = dataclasses.replace(
        store._logs[-1], created_at=utc_now() - timedelta(hours=48)
    )

    per_email = await service.get_pipeline_stats(email.id)
    assert [(s.step, s.status, s.count) for s in per_email] == [
        ("first", "ok", 1),
        ("second", "ok", 1),
    ]

    windowed = await service.get_pipeline_stats()
    assert [(s.step, s.count) for s in windowed] == [("first", 1), ("second", 1)]


@pytest.mark.asyncio
async def test_list_stuck_and_cleanup_use_configured_thresholds(service, store):
    await store.upsert_processing_status("forty", ProcessingStatus.PROCESSING, "first")
    await store.upsert_processing_status("ninety", ProcessingStatus.PROCESSING, "first")
    store._statuses["forty"].updated_at = utc_now() - timedelta(minutes=40)
    store._statuses["ninety"].updated_at = utc_now() - timedelta(minutes=90)

    stuck = await service.list_stuck()
    assert [r.email_id for r in stuck] == ["ninety", "forty"]

    reset = await service.cleanup_stuck()

    assert reset == ["ninety"]
    assert (await store.get_processing_status("ninety")).status == ProcessingStatus.PENDING
    assert (await store.get_processing_status("forty")).status == ProcessingStatus.PROCESSING


@pytest.mark.asyncio
async def test_reset_status_clears_history(service, store, make_email):
    email = await make_email()
    await service.process_email(email.id)

    assert await service.reset_status(email.id) is True

    record = await service.get_processing_status(email.id)
    assert record.status == ProcessingStatus.PENDING
    assert record.completed_steps == []


@pytest.mark.asyncio
async def test_retry_failed_resets_and_requeues(service, store, trigger):
    await store.append_execution_log("e1", "first", LogStatus.ERROR, {})
    await store.upsert_processing_status("e1", ProcessingStatus.FAILED)
    await store.upsert_processing_status("e2", ProcessingStatus.FAILED)
    trigger.side_effect = [None, RuntimeError("queue full")]

    retried = await service.retry_failed(["e1", "e2"])

    assert retried == 1
    assert [call.args[0] for call in trigger.await_args_list] == ["e1", "e2"]
    record = await store.get_processing_status("e1")
    assert record.status == ProcessingStatus.PENDING
    # History is kept on retry
    assert record.failed_steps == ["first"]


@pytest.mark.asyncio
async def test_retry_failed_requires_trigger(orchestrator, store):
    service = PipelineService(orchestrator, store)

    with pytest.raises(RuntimeError):
        await service.retry_failed(["e1"])
