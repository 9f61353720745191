"""
In-Memory Email Store Implementation.

This is an in-memory implementation of EntityStore and OutputRepository
for tests and local runs.
"""
import copy
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

from core.domain.entities import (
    ConversationEmailRow,
    ConversationOutput,
    Email,
    EmailOutput,
    ExecutionLogRecord,
    ProcessingStatusRecord,
    StepStats,
)
from core.domain.enums import LogStatus, ProcessingStatus
from core.domain.repositories import EntityStore, OutputRepository
from mailpipe_sdk.utils.datetime import utc_now


logger = logging.getLogger(__name__)


class InMemoryEmailStore(EntityStore, OutputRepository):
    """
    In-memory implementation of EntityStore and OutputRepository.

    Stores everything in dictionaries. Records handed out are copies, so
    callers never mutate stored state.
    """

    def __init__(self):
        """Initialize empty storage."""
        self._emails: Dict[str, Email] = {}
        self._statuses: Dict[str, ProcessingStatusRecord] = {}
        self._logs: List[ExecutionLogRecord] = []
        self._email_outputs: Dict[Tuple[str, str, str], EmailOutput] = {}
        self._conversations: Dict[str, ConversationOutput] = {}
        logger.info("InMemoryEmailStore initialized (in-memory storage)")

    # =========================================================================
    # EMAILS
    # =========================================================================

    async def load_entity(self, email_id: str) -> Optional[Email]:
        email = self._emails.get(email_id)
        return copy.deepcopy(email) if email else None

    async def find_by_source_id(self, source_id: str) -> Optional[Email]:
        for email in self._emails.values():
            if email.source_id == source_id:
                return copy.deepcopy(email)
        return None

    async def add_email(self, email: Email) -> Email:
        """
        Insert a new email.

        Raises:
            ValueError: source_id already stored
        """
        if await self.find_by_source_id(email.source_id):
            raise ValueError(f"Email already stored: {email.source_id}")
        if not email.id:
            email.id = str(uuid.uuid4())

        self._emails[email.id] = copy.deepcopy(email)
        return email

    # =========================================================================
    # PROCESSING STATUS
    # =========================================================================

    async def upsert_processing_status(
        self,
        email_id: str,
        status: ProcessingStatus,
        current_step: Optional[str] = None,
    ) -> None:
        now = utc_now()
        record = self._statuses.get(email_id)
        if record is None:
            record = ProcessingStatusRecord(email_id=email_id, status=status, started_at=now)
            self._statuses[email_id] = record

        record.status = status
        record.current_step = current_step
        record.updated_at = now
        if status == ProcessingStatus.COMPLETED:
            record.completed_at = now

    async def get_processing_status(self, email_id: str) -> Optional[ProcessingStatusRecord]:
        record = self._statuses.get(email_id)
        return copy.deepcopy(record) if record else None

    async def list_stuck(
        self, older_than: timedelta, limit: int = 50
    ) -> List[ProcessingStatusRecord]:
        stuck = sorted(self._stale(older_than), key=lambda r: r.updated_at)
        return [copy.deepcopy(r) for r in stuck[:limit]]

    async def reset_status(self, email_id: str, clear_history: bool = True) -> bool:
        record = self._statuses.get(email_id)
        if record is None:
            return False

        record.status = ProcessingStatus.PENDING
        record.current_step = None
        record.updated_at = utc_now()
        if clear_history:
            record.completed_steps = []
            record.failed_steps = []
        return True

    async def reset_stuck(self, older_than: timedelta) -> List[str]:
        email_ids = []
        now = utc_now()
        for record in self._stale(older_than):
            record.status = ProcessingStatus.PENDING
            record.current_step = None
            record.updated_at = now
            email_ids.append(record.email_id)
        return email_ids

    def _stale(self, older_than: timedelta) -> List[ProcessingStatusRecord]:
        cutoff = utc_now() - older_than
        return [
            r
            for r in self._statuses.values()
            if r.status == ProcessingStatus.PROCESSING and r.updated_at and r.updated_at < cutoff
        ]

    # =========================================================================
    # EXECUTION LOG
    # =========================================================================

    async def append_execution_log(
        self,
        email_id: str,
        step: str,
        status: LogStatus,
        details: Dict[str, Any],
        batch_id: Optional[str] = None,
    ) -> None:
        now = utc_now()
        self._logs.append(
            ExecutionLogRecord(
                id=str(uuid.uuid4()),
                email_id=email_id,
                step=step,
                status=status,
                details=copy.deepcopy(details),
                created_at=now,
                batch_id=batch_id,
            )
        )

        record = self._statuses.get(email_id)
        if record is None:
            record = ProcessingStatusRecord(
                email_id=email_id, status=ProcessingStatus.PROCESSING, started_at=now
            )
            self._statuses[email_id] = record
        record.apply_log(step, status, now)

    async def list_execution_logs(self, email_id: str) -> List[ExecutionLogRecord]:
        return [log for log in self._logs if log.email_id == email_id]

    async def get_execution_stats(
        self,
        email_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[StepStats]:
        groups: Dict[Tuple[str, str], List[ExecutionLogRecord]] = defaultdict(list)
        for log in self._logs:
            if email_id is not None and log.email_id != email_id:
                continue
            if since is not None and log.created_at <= since:
                continue
            groups[(log.step, log.status.value)].append(log)

        stats = []
        for (step, status), logs in sorted(groups.items()):
            durations = [
                log.details["duration_ms"]
                for log in logs
                if isinstance(log.details.get("duration_ms"), (int, float))
            ]
            stats.append(
                StepStats(
                    step=step,
                    status=status,
                    count=len(logs),
                    avg_duration_ms=sum(durations) / len(durations) if durations else None,
                    first_execution=min(log.created_at for log in logs),
                    last_execution=max(log.created_at for log in logs),
                )
            )
        return stats

    # =========================================================================
    # OUTPUTS
    # =========================================================================

    async def upsert_email_output(self, output: EmailOutput) -> None:
        stored = copy.deepcopy(output)
        stored.created_at = utc_now()
        self._email_outputs[(output.email_id, output.output_type, output.pipeline_version)] = stored

    async def get_email_output(
        self, email_id: str, output_type: str, pipeline_version: str = "v1"
    ) -> Optional[EmailOutput]:
        output = self._email_outputs.get((email_id, output_type, pipeline_version))
        return copy.deepcopy(output) if output else None

    async def list_conversation_emails(
        self, conversation_id: str, output_type: str = "plain_text", pipeline_version: str = "v1"
    ) -> List[ConversationEmailRow]:
        emails = [e for e in self._emails.values() if e.conversation_id == conversation_id]
        # Missing received_at sorts last, as NULLs do in PostgreSQL ascending order
        emails.sort(key=lambda e: (e.received_at is None, e.received_at or datetime.min))

        rows = []
        for email in emails:
            output = self._email_outputs.get((email.id, output_type, pipeline_version))
            rows.append(
                ConversationEmailRow(
                    id=email.id,
                    subject=email.subject,
                    received_at=email.received_at,
                    content=copy.deepcopy(output.content) if output else None,
                )
            )
        return rows

    async def upsert_conversation_output(
        self,
        conversation_id: str,
        content: Dict[str, Any],
        metadata: Dict[str, Any],
        pipeline_version: str = "v1",
    ) -> None:
        now = utc_now()
        existing = self._conversations.get(conversation_id)
        if existing:
            existing.content = copy.deepcopy(content)
            existing.metadata = copy.deepcopy(metadata)
            existing.pipeline_version = pipeline_version
            existing.updated_at = now
            return

        self._conversations[conversation_id] = ConversationOutput(
            conversation_id=conversation_id,
            content=copy.deepcopy(content),
            metadata=copy.deepcopy(metadata),
            pipeline_version=pipeline_version,
            created_at=now,
            updated_at=now,
        )

    async def get_conversation_output(self, conversation_id: str) -> Optional[ConversationOutput]:
        output = self._conversations.get(conversation_id)
        return copy.deepcopy(output) if output else None

    async def update_conversation_summary(
        self,
        conversation_id: str,
        title: str,
        summary: str,
        category: str,
        tags: List[str],
        summary_metadata: Dict[str, Any],
    ) -> None:
        existing = self._conversations.get(conversation_id)
        if existing is None:
            logger.warning(f"No conversation output to summarize: {conversation_id}")
            return

        existing.title = title
        existing.summary = summary
        existing.category = category
        existing.tags = list(tags)
        existing.summary_metadata = copy.deepcopy(summary_metadata)
        existing.updated_at = utc_now()
