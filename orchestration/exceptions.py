"""Pipeline error taxonomy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RunContext


class PipelineError(Exception):
    """Base class for orchestration errors."""


class InvalidStepDefinition(PipelineError):
    """A step definition is malformed. Raised at registration time."""


class CyclicDependency(PipelineError):
    """Registering a step would close a dependency cycle."""

    def __init__(self, path: list[str]) -> None:
        self.path = path
        super().__init__(f"Circular dependency detected: {' -> '.join(path)}")


class UnknownStep(PipelineError):
    """A step name does not resolve in the registry."""

    def __init__(self, step_name: str) -> None:
        self.step_name = step_name
        super().__init__(f"Unknown pipeline step: {step_name}")


class EntityNotFound(PipelineError):
    """The email a run was requested for does not exist."""

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"Email not found: {entity_id}")


class StepExecutionFailure(PipelineError):
    """A step action failed. Wraps the original error with step context."""

    def __init__(
        self,
        step_name: str,
        duration_ms: int,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.step_name = step_name
        self.duration_ms = duration_ms
        self.cause = cause
        # Set by the orchestrator when the failure aborts a run
        self.context: RunContext | None = None
        if message is None:
            message = str(cause) if cause is not None and str(cause) else repr(cause)
        self.error_message = message
        super().__init__(f"Step {step_name} failed after {duration_ms}ms: {message}")


class StepTimeout(StepExecutionFailure):
    """A step action did not finish within its timeout."""

    def __init__(self, step_name: str, timeout_seconds: float, duration_ms: int) -> None:
        self.timeout_ms = int(timeout_seconds * 1000)
        super().__init__(
            step_name,
            duration_ms,
            message=f"Step {step_name} timed out after {self.timeout_ms}ms",
        )
