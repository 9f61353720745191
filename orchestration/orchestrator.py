"""Orchestrator - runs planned pipeline levels for one email and tracks status."""

import asyncio
from collections.abc import Sequence
from datetime import datetime

from core.domain.entities import StepStats
from core.domain.enums import ProcessingStatus
from core.domain.repositories import EntityStore
from core.domain.value_objects import RunID
from mailpipe_sdk.logging import get_logger
from mailpipe_sdk.utils.datetime import utc_now

from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .exceptions import EntityNotFound, StepExecutionFailure
from .executor import DEFAULT_STEP_TIMEOUT_SECONDS, StepExecutor
from .models import ExecutionPlan, RunContext
from .planner import ExecutionPlanner
from .registry import StepRegistry
from .workflow import PipelineStep, StepDefinition


class PipelineOrchestrator:
    """Coordinates registry, planner and executor across one pipeline run.

    Status transitions of the processing-status record:

        (entry)            -> processing, current step = first planned step
        (between levels)   -> processing, current step = first step of next level
        no failed steps    -> completed
        absorbed failures  -> partial_failure
        escalated failure  -> failed (exception re-raised)

    Status writes are best-effort: a failing write is logged and never
    replaces the outcome of the run.
    """

    def __init__(
        self,
        registry: StepRegistry,
        entity_store: EntityStore,
        event_bus: EventBusProtocol | None = None,
        default_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize orchestrator.

        Args:
            registry: StepRegistry holding the pipeline steps
            entity_store: EntityStore for emails, status and execution logs
            event_bus: EventBusProtocol for run events
            default_timeout: Step timeout in seconds when a step sets none
        """
        self._registry = registry
        self._store = entity_store
        self._event_bus = event_bus or InMemoryEventBus()
        self._planner = ExecutionPlanner(registry)
        self._executor = StepExecutor(
            registry, entity_store, event_bus=self._event_bus, default_timeout=default_timeout
        )
        self._logger = get_logger("orchestration.orchestrator")

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    @property
    def planner(self) -> ExecutionPlanner:
        return self._planner

    def register_step(self, step: StepDefinition | PipelineStep) -> StepDefinition:
        """Register a step (see StepRegistry.register)."""
        return self._registry.register(step)

    def get_steps(self) -> list[StepDefinition]:
        """Registered steps in display order."""
        return self._registry.sorted_steps()

    async def execute_all(self, entity_id: str) -> RunContext:
        """Run every registered step for an email."""
        return await self.execute_steps(entity_id)

    async def execute_steps(
        self,
        entity_id: str,
        requested_steps: Sequence[str] | None = None,
        skip_dependencies: bool = False,
    ) -> RunContext:
        """Run the requested steps (default: all) for an email.

        Args:
            entity_id: Email id
            requested_steps: Step names to run, None for every registered step
            skip_dependencies: Run exactly the requested steps, without
                adding their dependencies (manual re-runs)

        Returns:
            RunContext with completed/failed steps and per-step results

        Raises:
            EntityNotFound: the email does not exist (nothing is written)
            UnknownStep: a requested step is not registered (nothing is written)
            StepExecutionFailure: a retryable step failed; status is failed
                and exc.context holds the run context
        """
        self._logger.info("Starting pipeline execution for email %s", entity_id)

        email = await self._store.load_entity(entity_id)
        if email is None:
            raise EntityNotFound(entity_id)

        steps_to_run = (
            list(requested_steps) if requested_steps is not None else self._registry.names()
        )
        plan = self._planner.plan(steps_to_run, include_dependencies=not skip_dependencies)

        context = RunContext(
            run_id=RunID.generate(),
            entity_id=entity_id,
            email=email,
            started_at=utc_now(),
            plan=plan,
        )

        self._logger.info(
            "Execution plan for %s: %d step(s) in %d level(s), requested=%s, skip_dependencies=%s",
            entity_id,
            plan.total_steps,
            len(plan.levels),
            steps_to_run,
            skip_dependencies,
        )

        await self._update_status(entity_id, ProcessingStatus.PROCESSING, plan.first_step)
        await self._publish(
            context,
            "pipeline.started",
            {"steps": list(plan.steps), "level_count": len(plan.levels)},
        )

        try:
            await self._execute_plan(context, plan)
        except Exception as exc:
            await self._finish(context, ProcessingStatus.FAILED)
            if isinstance(exc, StepExecutionFailure):
                exc.context = context
            self._logger.error("Pipeline failed for email %s: %s", entity_id, exc)
            raise

        if context.failed_steps:
            await self._finish(context, ProcessingStatus.PARTIAL_FAILURE)
            self._logger.warning(
                "Pipeline completed with failures for email %s: %s",
                entity_id,
                sorted(context.failed_steps),
            )
        else:
            await self._finish(context, ProcessingStatus.COMPLETED)
            self._logger.info("Pipeline completed successfully for email %s", entity_id)

        return context

    async def get_execution_stats(
        self, entity_id: str | None = None, since: datetime | None = None
    ) -> list[StepStats]:
        """Per (step, status) execution figures from the execution log."""
        return await self._store.get_execution_stats(entity_id, since=since)

    async def _execute_plan(self, context: RunContext, plan: ExecutionPlan) -> None:
        """Run levels in order; a level settles completely before the next starts."""
        for index, level in enumerate(plan.levels):
            self._logger.info(
                "Executing parallel group %d/%d for email %s: %s",
                index + 1,
                len(plan.levels),
                context.entity_id,
                list(level),
            )
            await self._publish(
                context, "pipeline.level.started", {"level": index, "steps": list(level)}
            )

            outcomes = await asyncio.gather(
                *(self._executor.execute_step(context, name) for name in level),
                return_exceptions=True,
            )
            errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if errors:
                raise errors[0]

            if index + 1 < len(plan.levels):
                next_level = plan.levels[index + 1]
                await self._update_status(
                    context.entity_id, ProcessingStatus.PROCESSING, next_level[0]
                )

    async def _finish(self, context: RunContext, status: ProcessingStatus) -> None:
        context.status = status
        context.finished_at = utc_now()
        await self._update_status(context.entity_id, status)
        await self._publish(
            context,
            "pipeline.finished",
            {
                "status": status.value,
                "completed_steps": sorted(context.completed_steps),
                "failed_steps": sorted(context.failed_steps),
                "duration_ms": context.duration_ms,
            },
        )

    async def _update_status(
        self, entity_id: str, status: ProcessingStatus, current_step: str | None = None
    ) -> None:
        """Upsert the processing-status record; failures are only logged."""
        try:
            await self._store.upsert_processing_status(entity_id, status, current_step)
        except Exception as exc:
            self._logger.warning("Failed to update processing status for %s: %s", entity_id, exc)

    async def _publish(self, context: RunContext, name: str, payload: dict[str, object]) -> None:
        metadata = EventMetadata(
            run_id=str(context.run_id),
            email_id=context.entity_id,
            timestamp=utc_now(),
        )
        await self._event_bus.publish(Event(name=name, payload=payload, metadata=metadata))
