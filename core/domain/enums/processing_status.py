"""
Processing Status Enums.

Status values for the per-email processing record and the execution log.
"""
from enum import Enum


class ProcessingStatus(str, Enum):
    """Lifecycle of an email's processing-status record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"


class LogStatus(str, Enum):
    """Outcome of a single step attempt in the execution log."""

    OK = "ok"
    ERROR = "error"
    DUPLICATE = "duplicate"
