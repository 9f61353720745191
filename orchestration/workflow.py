"""Step definitions - StepAction, RetryPolicy, StepDefinition, PipelineStep."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import ClassVar

from core.domain.entities import Email

# Type alias for step actions: receives the email, writes derived outputs
StepAction = Callable[[Email], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """In-run retry policy for a step."""

    max_attempts: int = 1
    backoff_seconds: float = 0.0


@dataclass(frozen=True)
class StepDefinition:
    """Static description of one unit of pipeline work.

    retryable=False means a failure is absorbed and the run continues;
    retryable=True escalates the failure to the caller of the run so the
    job queue can retry it. timeout is in seconds, None uses the
    orchestrator default.
    """

    name: str
    action: StepAction
    dependencies: list[str] = field(default_factory=list)
    retryable: bool = False
    priority: int = 0
    timeout: float | None = None
    description: str = ""
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


class PipelineStep(ABC):
    """Base class for concrete pipeline steps.

    Subclasses declare their scheduling attributes as class variables and
    implement run().
    """

    name: ClassVar[str]
    dependencies: ClassVar[tuple[str, ...]] = ()
    retryable: ClassVar[bool] = False
    priority: ClassVar[int] = 0
    timeout: ClassVar[float | None] = None
    description: ClassVar[str] = ""
    retry_policy: ClassVar[RetryPolicy] = RetryPolicy()

    @abstractmethod
    async def run(self, email: Email) -> None:
        """Process one email and persist the derived output."""

    def definition(self) -> StepDefinition:
        """Build the registry entry for this step."""
        return StepDefinition(
            name=self.name,
            action=self.run,
            dependencies=list(self.dependencies),
            retryable=self.retryable,
            priority=self.priority,
            timeout=self.timeout,
            description=self.description,
            retry_policy=self.retry_policy,
        )
