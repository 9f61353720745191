"""Tests for PipelineOrchestrator - absorbed and escalated step failures."""

from unittest.mock import AsyncMock

import pytest

from core.domain.entities import Email
from core.domain.enums import LogStatus, ProcessingStatus
from orchestration.exceptions import StepExecutionFailure
from orchestration.orchestrator import PipelineOrchestrator
from orchestration.registry import StepRegistry
from orchestration.workflow import StepDefinition


def abc_registry(calls: list[str], b_retryable: bool) -> StepRegistry:
    """A <- B <- C where B always raises."""

    async def a(email: Email) -> None:
        calls.append("A")

    async def b(email: Email) -> None:
        calls.append("B")
        raise ValueError("B is broken")

    async def c(email: Email) -> None:
        calls.append("C")

    registry = StepRegistry()
    registry.register(StepDefinition(name="A", action=a, retryable=True))
    registry.register(StepDefinition(name="B", action=b, dependencies=["A"], retryable=b_retryable))
    registry.register(StepDefinition(name="C", action=c, dependencies=["B"]))
    return registry


@pytest.mark.asyncio
async def test_retryable_failure_aborts_run_and_marks_failed(store, make_email):
    calls: list[str] = []
    orchestrator = PipelineOrchestrator(abc_registry(calls, b_retryable=True), store)
    email = await make_email()

    with pytest.raises(StepExecutionFailure) as exc_info:
        await orchestrator.execute_steps(email.id)

    failure = exc_info.value
    assert failure.step_name == "B"
    assert isinstance(failure.cause, ValueError)

    # C is never attempted
    assert calls == ["A", "B"]

    context = failure.context
    assert context is not None
    assert context.completed_steps == {"A"}
    assert context.failed_steps == {"B"}
    assert context.status == ProcessingStatus.FAILED

    record = await store.get_processing_status(email.id)
    assert record.status == ProcessingStatus.FAILED
    assert record.completed_steps == ["A"]
    assert record.failed_steps == ["B"]
    assert record.completed_at is None

    logged = [(log.step, log.status) for log in await store.list_execution_logs(email.id)]
    assert logged == [("A", LogStatus.OK), ("B", LogStatus.ERROR)]


@pytest.mark.asyncio
async def test_non_retryable_failure_continues_and_marks_partial_failure(store, make_email):
    calls: list[str] = []
    orchestrator = PipelineOrchestrator(abc_registry(calls, b_retryable=False), store)
    email = await make_email()

    context = await orchestrator.execute_steps(email.id)

    # C still runs: its level starts once B's level has settled
    assert calls == ["A", "B", "C"]
    assert context.completed_steps == {"A", "C"}
    assert context.failed_steps == {"B"}
    assert context.status == ProcessingStatus.PARTIAL_FAILURE
    assert "B is broken" in context.step_results["B"].error

    record = await store.get_processing_status(email.id)
    assert record.status == ProcessingStatus.PARTIAL_FAILURE
    assert record.completed_steps == ["A", "C"]
    assert record.failed_steps == ["B"]


@pytest.mark.asyncio
async def test_level_waits_for_all_steps_before_raising(store, make_email):
    """A retryable failure does not cancel its siblings in the same level."""
    finished: list[str] = []

    async def broken(email: Email) -> None:
        raise RuntimeError("boom")

    async def sibling(email: Email) -> None:
        finished.append("sibling")

    async def later(email: Email) -> None:
        finished.append("later")

    registry = StepRegistry()
    registry.register(StepDefinition(name="broken", action=broken, retryable=True))
    registry.register(StepDefinition(name="sibling", action=sibling, retryable=True))
    registry.register(
        StepDefinition(name="later", action=later, dependencies=["broken", "sibling"])
    )
    orchestrator = PipelineOrchestrator(registry, store)
    email = await make_email()

    with pytest.raises(StepExecutionFailure) as exc_info:
        await orchestrator.execute_steps(email.id)

    assert finished == ["sibling"]
    assert exc_info.value.context.completed_steps == {"sibling"}
    assert exc_info.value.context.failed_steps == {"broken"}


@pytest.mark.asyncio
async def test_rerun_after_failure_accumulates_history(store, make_email):
    state = {"fail": True}

    async def a(email: Email) -> None:
        if state["fail"]:
            raise ValueError("transient")

    registry = StepRegistry()
    registry.register(StepDefinition(name="A", action=a, retryable=True))
    orchestrator = PipelineOrchestrator(registry, store)
    email = await make_email()

    with pytest.raises(StepExecutionFailure):
        await orchestrator.execute_all(email.id)

    state["fail"] = False
    context = await orchestrator.execute_all(email.id)

    assert context.status == ProcessingStatus.COMPLETED
    record = await store.get_processing_status(email.id)
    assert record.status == ProcessingStatus.COMPLETED
    # History survives across runs: A failed once, succeeded later
    assert record.failed_steps == ["A"]
    assert record.completed_steps == ["A"]


@pytest.mark.asyncio
async def test_status_write_failure_never_changes_outcome(make_email, store):
    calls: list[str] = []

    async def a(email: Email) -> None:
        calls.append("A")

    registry = StepRegistry()
    registry.register(StepDefinition(name="A", action=a))

    broken_store = AsyncMock()
    broken_store.load_entity.return_value = await make_email()
    broken_store.upsert_processing_status.side_effect = RuntimeError("status table gone")

    orchestrator = PipelineOrchestrator(registry, broken_store)
    context = await orchestrator.execute_all("any")

    assert calls == ["A"]
    assert context.status == ProcessingStatus.COMPLETED
    assert broken_store.upsert_processing_status.await_count == 2
