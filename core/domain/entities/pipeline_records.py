"""Persistent pipeline bookkeeping records."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..enums import LogStatus, ProcessingStatus


@dataclass
class ProcessingStatusRecord:
    """
    Per-email processing status.

    completed_steps / failed_steps accumulate over every run ever made for
    the email; a step may appear in both when it failed once and succeeded
    later.
    """

    email_id: str
    status: ProcessingStatus
    current_step: Optional[str] = None
    completed_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def apply_log(self, step: str, status: LogStatus, at: datetime) -> None:
        """Fold an execution log insert into the record."""
        self.current_step = step
        if status == LogStatus.OK:
            self.completed_steps = _append_unique(self.completed_steps, step)
        elif status == LogStatus.ERROR:
            self.failed_steps = _append_unique(self.failed_steps, step)
        self.updated_at = at


@dataclass(frozen=True)
class ExecutionLogRecord:
    """One appended execution log row. Never mutated."""

    id: str
    email_id: str
    step: str
    status: LogStatus
    details: Dict[str, Any]
    created_at: datetime
    batch_id: Optional[str] = None


@dataclass(frozen=True)
class StepStats:
    """Aggregated execution log figures for one (step, status) pair."""

    step: str
    status: str
    count: int
    avg_duration_ms: Optional[float]
    first_execution: Optional[datetime]
    last_execution: Optional[datetime]


def _append_unique(steps: List[str], step: str) -> List[str]:
    """Move step to the end of the list, keeping it unique."""
    return [s for s in steps if s != step] + [step]
