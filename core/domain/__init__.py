"""Domain layer - pure domain models and interfaces."""

from .entities import Email, ExecutionLogRecord, ProcessingStatusRecord
from .enums import LogStatus, ProcessingStatus
from .repositories import EntityStore, OutputRepository
from .value_objects import RunID

__all__ = [
    "Email",
    "EntityStore",
    "ExecutionLogRecord",
    "LogStatus",
    "OutputRepository",
    "ProcessingStatus",
    "ProcessingStatusRecord",
    "RunID",
]
