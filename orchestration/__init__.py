"""Orchestration layer - dependency-aware pipeline execution with eventing."""

from collections.abc import Iterable
from typing import TYPE_CHECKING

from .bus import EventBusProtocol, InMemoryEventBus
from .events import Event, EventMetadata
from .exceptions import (
    CyclicDependency,
    EntityNotFound,
    InvalidStepDefinition,
    PipelineError,
    StepExecutionFailure,
    StepTimeout,
    UnknownStep,
)
from .executor import DEFAULT_STEP_TIMEOUT_SECONDS, StepExecutor
from .models import ExecutionPlan, RunContext, StepResult
from .orchestrator import PipelineOrchestrator
from .planner import ExecutionPlanner
from .registry import StepRegistry
from .workflow import PipelineStep, RetryPolicy, StepAction, StepDefinition

if TYPE_CHECKING:
    from core.domain.repositories import EntityStore

__all__ = [
    "CyclicDependency",
    "DEFAULT_STEP_TIMEOUT_SECONDS",
    "EntityNotFound",
    "Event",
    "EventBusProtocol",
    "EventMetadata",
    "ExecutionPlan",
    "ExecutionPlanner",
    "InMemoryEventBus",
    "InvalidStepDefinition",
    "PipelineError",
    "PipelineOrchestrator",
    "PipelineStep",
    "RetryPolicy",
    "RunContext",
    "StepAction",
    "StepDefinition",
    "StepExecutionFailure",
    "StepExecutor",
    "StepRegistry",
    "StepResult",
    "StepTimeout",
    "UnknownStep",
    "create_default_orchestrator",
]


def create_default_orchestrator(
    entity_store: "EntityStore",
    steps: Iterable[StepDefinition | PipelineStep] = (),
    default_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    event_bus: EventBusProtocol | None = None,
) -> PipelineOrchestrator:
    """Create an orchestrator with a fresh registry.

    Args:
        entity_store: EntityStore for emails, status and logs
        steps: Steps to register, in order
        default_timeout: Step timeout in seconds when a step sets none
        event_bus: Bus receiving run and step events (a new in-memory bus if omitted)

    Returns:
        PipelineOrchestrator instance
    """
    registry = StepRegistry()
    for step in steps:
        registry.register(step)
    return PipelineOrchestrator(
        registry=registry,
        entity_store=entity_store,
        event_bus=event_bus or InMemoryEventBus(),
        default_timeout=default_timeout,
    )
