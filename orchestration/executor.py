"""Step executor - runs one step with timeout, retry policy and logging."""

import asyncio
import time

from core.domain.enums import LogStatus
from core.domain.repositories import EntityStore
from mailpipe_sdk.logging import get_logger
from mailpipe_sdk.utils.datetime import utc_now

from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .exceptions import StepExecutionFailure, StepTimeout
from .models import RunContext, StepResult
from .registry import StepRegistry
from .workflow import StepDefinition

DEFAULT_STEP_TIMEOUT_SECONDS = 30.0


class StepExecutor:
    """Runs a single registered step against the email of a run context."""

    def __init__(
        self,
        registry: StepRegistry,
        entity_store: EntityStore,
        event_bus: EventBusProtocol | None = None,
        default_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize executor.

        Args:
            registry: StepRegistry to look steps up in
            entity_store: EntityStore receiving execution log rows
            event_bus: EventBusProtocol for step events
            default_timeout: Timeout in seconds for steps without one
        """
        self._registry = registry
        self._store = entity_store
        self._event_bus = event_bus or InMemoryEventBus()
        self._default_timeout = default_timeout
        self._logger = get_logger("orchestration.executor")

    async def execute_step(self, context: RunContext, step_name: str) -> None:
        """Execute one step and record the outcome in context.

        Args:
            context: RunContext of the current run (mutated)
            step_name: Name of the step to run

        Raises:
            UnknownStep: step_name is not registered
            StepExecutionFailure: the step failed and is retryable
        """
        step = self._registry.get(step_name)
        policy = step.retry_policy
        attempts = policy.max_attempts
        started = time.monotonic()

        self._logger.info("Executing step: %s for email %s", step.name, context.entity_id)

        attempt = 1
        while True:
            attempt_started = time.monotonic()
            try:
                await self._run_with_timeout(step, context)
            except Exception as exc:
                attempt_ms = _elapsed_ms(attempt_started)
                failure = self._wrap(step, exc, attempt_ms)
                await self._append_log(
                    context,
                    step.name,
                    LogStatus.ERROR,
                    {
                        "error": failure.error_message,
                        "duration_ms": attempt_ms,
                        "attempt": attempt,
                        "executed_at": utc_now().isoformat(),
                    },
                )
                self._logger.warning(
                    "Step %s attempt %d/%d failed (%dms): %s",
                    step.name,
                    attempt,
                    attempts,
                    attempt_ms,
                    failure.error_message,
                )
                if attempt >= attempts:
                    await self._record_failure(context, step, failure, attempt, started)
                    return
                if policy.backoff_seconds > 0:
                    await asyncio.sleep(policy.backoff_seconds)
                attempt += 1
                continue

            duration_ms = _elapsed_ms(started)
            executed_at = utc_now().isoformat()
            context.record_success(
                StepResult(
                    name=step.name,
                    success=True,
                    duration_ms=duration_ms,
                    attempts=attempt,
                    metadata={"executed_at": executed_at},
                )
            )
            await self._append_log(
                context,
                step.name,
                LogStatus.OK,
                {"duration_ms": duration_ms, "attempt": attempt, "executed_at": executed_at},
            )
            await self._publish(
                context,
                "pipeline.step.succeeded",
                {"step_name": step.name, "attempts": attempt, "duration_ms": duration_ms},
            )
            self._logger.info("Step completed: %s (%dms)", step.name, duration_ms)
            return

    async def _record_failure(
        self,
        context: RunContext,
        step: StepDefinition,
        failure: StepExecutionFailure,
        attempts: int,
        started: float,
    ) -> None:
        """Record the final failure; raise it when the step is retryable."""
        duration_ms = _elapsed_ms(started)
        failure.duration_ms = duration_ms
        context.record_failure(
            StepResult(
                name=step.name,
                success=False,
                duration_ms=duration_ms,
                attempts=attempts,
                error=failure.error_message,
                metadata={"executed_at": utc_now().isoformat()},
            )
        )
        await self._publish(
            context,
            "pipeline.step.failed",
            {
                "step_name": step.name,
                "attempts": attempts,
                "error": failure.error_message,
                "retryable": step.retryable,
            },
        )
        self._logger.error(
            "Step failed: %s (%dms): %s", step.name, duration_ms, failure.error_message
        )

        if not step.retryable:
            self._logger.info("Step %s marked as non-retryable, continuing pipeline", step.name)
            return
        raise failure

    async def _run_with_timeout(self, step: StepDefinition, context: RunContext) -> None:
        """Await the step action; once the timeout elapses the attempt fails.

        On timeout the action is cancelled and left to unwind on its own.
        Whatever it does afterwards does not change the outcome.
        """
        timeout = step.timeout or self._default_timeout
        started = time.monotonic()
        task = asyncio.ensure_future(step.action(context.email))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            task.result()
            return

        task.cancel()
        task.add_done_callback(self._discard_late_outcome(step.name))
        raise StepTimeout(step.name, timeout, _elapsed_ms(started))

    def _discard_late_outcome(self, step_name: str):
        def callback(task: asyncio.Future) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                self._logger.debug("Timed out step %s later raised: %r", step_name, exc)

        return callback

    @staticmethod
    def _wrap(step: StepDefinition, exc: Exception, duration_ms: int) -> StepExecutionFailure:
        if isinstance(exc, StepExecutionFailure):
            return exc
        failure = StepExecutionFailure(step.name, duration_ms, cause=exc)
        failure.__cause__ = exc
        return failure

    async def _append_log(
        self, context: RunContext, step_name: str, status: LogStatus, details: dict
    ) -> None:
        """Append an execution log row. Persistence errors are logged, not raised."""
        try:
            await self._store.append_execution_log(context.entity_id, step_name, status, details)
        except Exception as exc:
            self._logger.warning(
                "Failed to write execution log for %s/%s: %s",
                context.entity_id,
                step_name,
                exc,
            )

    async def _publish(self, context: RunContext, name: str, payload: dict[str, object]) -> None:
        metadata = EventMetadata(
            run_id=str(context.run_id),
            email_id=context.entity_id,
            timestamp=utc_now(),
        )
        await self._event_bus.publish(Event(name=name, payload=payload, metadata=metadata))


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
