"""Application DTOs for pipeline runs."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from orchestration.models import RunContext


class StepResultDTO(BaseModel):
    """Outcome of one step within a run."""

    name: str = Field(..., description="Step name")
    success: bool
    duration_ms: int = Field(..., ge=0)
    attempts: int = Field(default=1, ge=1)
    error: Optional[str] = None

    model_config = {"frozen": True}


class PipelineRunDTO(BaseModel):
    """Response DTO for one pipeline run."""

    run_id: str = Field(..., description="Run identifier")
    email_id: str = Field(..., description="Processed email")
    status: Optional[str] = Field(None, description="Final processing status")
    executed_steps: List[str] = Field(default_factory=list, description="Planned steps in order")
    completed_steps: List[str] = Field(default_factory=list)
    failed_steps: List[str] = Field(default_factory=list)
    results: List[StepResultDTO] = Field(default_factory=list)
    started_at: datetime
    finished_at: Optional[datetime] = None
    total_duration_ms: Optional[int] = Field(None, ge=0)

    model_config = {"frozen": True}

    @classmethod
    def from_context(cls, context: RunContext) -> "PipelineRunDTO":
        """Create PipelineRunDTO from a finished run context."""
        return cls(
            run_id=str(context.run_id),
            email_id=context.entity_id,
            status=context.status.value if context.status else None,
            executed_steps=list(context.plan.steps) if context.plan else [],
            completed_steps=sorted(context.completed_steps),
            failed_steps=sorted(context.failed_steps),
            results=[
                StepResultDTO(
                    name=r.name,
                    success=r.success,
                    duration_ms=r.duration_ms,
                    attempts=r.attempts,
                    error=r.error,
                )
                for r in context.step_results.values()
            ],
            started_at=context.started_at,
            finished_at=context.finished_at,
            total_duration_ms=context.duration_ms,
        )
