"""Repository interface for emails and pipeline bookkeeping."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..entities import Email, ExecutionLogRecord, ProcessingStatusRecord, StepStats
from ..enums import LogStatus, ProcessingStatus


class EntityStore(ABC):
    """Abstract store the orchestrator reads emails from and writes status to."""

    @abstractmethod
    async def load_entity(self, email_id: str) -> Optional[Email]:
        """Fetch an email by id.

        Args:
            email_id: Email identifier

        Returns:
            Email if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_source_id(self, source_id: str) -> Optional[Email]:
        """Fetch an email by its deduplication key (internetMessageId)."""
        pass

    @abstractmethod
    async def add_email(self, email: Email) -> Email:
        """Insert a new email and return it with its assigned id."""
        pass

    @abstractmethod
    async def upsert_processing_status(
        self,
        email_id: str,
        status: ProcessingStatus,
        current_step: Optional[str] = None,
    ) -> None:
        """Insert or overwrite the status record (last write wins).

        Completed/failed step history is preserved. completed_at is stamped
        when the status becomes completed.

        Args:
            email_id: Email identifier
            status: New status
            current_step: Step currently running, None clears it
        """
        pass

    @abstractmethod
    async def append_execution_log(
        self,
        email_id: str,
        step: str,
        status: LogStatus,
        details: Dict[str, Any],
        batch_id: Optional[str] = None,
    ) -> None:
        """Append an execution log row.

        Also folds the row into the processing-status record: the record
        is created as processing when missing, current_step becomes the
        logged step, ok steps join completed_steps and error steps join
        failed_steps.
        """
        pass

    @abstractmethod
    async def get_processing_status(self, email_id: str) -> Optional[ProcessingStatusRecord]:
        """Read the status record of an email."""
        pass

    @abstractmethod
    async def list_execution_logs(self, email_id: str) -> List[ExecutionLogRecord]:
        """All log rows of an email, oldest first."""
        pass

    @abstractmethod
    async def get_execution_stats(
        self,
        email_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[StepStats]:
        """Aggregate log rows per (step, status).

        Args:
            email_id: Restrict to one email
            since: Restrict to rows created after this instant
        """
        pass

    @abstractmethod
    async def list_stuck(
        self, older_than: timedelta, limit: int = 50
    ) -> List[ProcessingStatusRecord]:
        """Records still processing and not updated within older_than."""
        pass

    @abstractmethod
    async def reset_status(self, email_id: str, clear_history: bool = True) -> bool:
        """Put a record back to pending.

        Returns:
            True if a record existed
        """
        pass

    @abstractmethod
    async def reset_stuck(self, older_than: timedelta) -> List[str]:
        """Move stale processing records back to pending.

        Returns:
            Ids of the reset emails
        """
        pass
