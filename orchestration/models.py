"""Orchestration models - ExecutionPlan, StepResult, RunContext."""

from dataclasses import dataclass, field
from datetime import datetime

from core.domain.entities import Email
from core.domain.enums import ProcessingStatus
from core.domain.value_objects import RunID


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered steps of one run, partitioned into concurrent levels."""

    steps: tuple[str, ...] = ()
    levels: tuple[tuple[str, ...], ...] = ()

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def first_step(self) -> str | None:
        return self.steps[0] if self.steps else None

    def is_empty(self) -> bool:
        return not self.steps


@dataclass
class StepResult:
    """Result of a step execution."""

    name: str
    success: bool
    duration_ms: int
    attempts: int = 1
    error: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)


@dataclass
class RunContext:
    """State of one pipeline run for one email."""

    run_id: RunID
    entity_id: str
    email: Email
    started_at: datetime
    plan: ExecutionPlan = field(default_factory=ExecutionPlan)
    completed_steps: set[str] = field(default_factory=set)
    failed_steps: set[str] = field(default_factory=set)
    step_results: dict[str, StepResult] = field(default_factory=dict)
    status: ProcessingStatus | None = None
    finished_at: datetime | None = None

    @property
    def duration_ms(self) -> int | None:
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def record_success(self, result: StepResult) -> None:
        self.step_results[result.name] = result
        self.completed_steps.add(result.name)

    def record_failure(self, result: StepResult) -> None:
        self.step_results[result.name] = result
        self.failed_steps.add(result.name)
