"""
SQLAlchemy Entity Store Implementation.

Implements EntityStore using SQLAlchemy (PostgreSQL in production,
SQLite in tests).
"""
import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional
import logging

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain.entities import Email, ExecutionLogRecord, ProcessingStatusRecord, StepStats
from core.domain.enums import LogStatus, ProcessingStatus
from core.domain.repositories import EntityStore
from core.infrastructure.database.models import (
    EmailModel,
    PipelineLogModel,
    ProcessingStatusModel,
)
from mailpipe_sdk.utils.datetime import ensure_utc, utc_now


logger = logging.getLogger(__name__)


class SQLAlchemyEntityStore(EntityStore):
    """
    SQLAlchemy implementation of EntityStore.

    Every operation runs in its own session from the factory, so steps
    running concurrently never share a session. Read-modify-write of a
    status row is serialized per email inside the process and guarded by
    SELECT ... FOR UPDATE on PostgreSQL.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize store with a session factory.

        Args:
            session_factory: Factory producing async sessions
        """
        self._session_factory = session_factory
        self._status_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _status_lock(self, email_id: str) -> AsyncIterator[None]:
        """Per-email lock, dropped once nobody holds or waits for it."""
        lock = self._status_locks.setdefault(email_id, asyncio.Lock())
        self._lock_users[email_id] = self._lock_users.get(email_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[email_id] -= 1
            if self._lock_users[email_id] == 0:
                del self._lock_users[email_id]
                del self._status_locks[email_id]

    # =========================================================================
    # EMAILS
    # =========================================================================

    async def load_entity(self, email_id: str) -> Optional[Email]:
        async with self._session_factory() as session:
            model = await session.get(EmailModel, email_id)
            return self._to_email(model) if model else None

    async def find_by_source_id(self, source_id: str) -> Optional[Email]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EmailModel).where(EmailModel.source_id == source_id)
            )
            model = result.scalar_one_or_none()
            return self._to_email(model) if model else None

    async def add_email(self, email: Email) -> Email:
        """
        Insert a new email.

        Raises:
            IntegrityError: source_id already stored
        """
        if not email.id:
            email.id = str(uuid.uuid4())

        async with self._session_factory() as session:
            session.add(
                EmailModel(
                    id=email.id,
                    source_id=email.source_id,
                    received_at=email.received_at,
                    subject=email.subject,
                    meta=email.meta,
                    body=email.body,
                    conversation_id=email.conversation_id,
                )
            )
            await session.commit()

        logger.info(f"Stored email {email.id} (source_id={email.source_id})")
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
        async with self._status_lock(email_id):
            async with self._session_factory() as session:
                try:
                    await self._write_status(session, email_id, status, current_step)
                    await session.commit()
                except IntegrityError:
                    # Row inserted concurrently by another writer: update it instead
                    await session.rollback()
                    await self._write_status(session, email_id, status, current_step)
                    await session.commit()

        logger.debug(f"Processing status for {email_id}: {status.value} ({current_step})")

    async def _write_status(
        self,
        session: AsyncSession,
        email_id: str,
        status: ProcessingStatus,
        current_step: Optional[str],
    ) -> None:
        now = utc_now()
        model = await self._select_status(session, email_id)

        if model is None:
            session.add(
                ProcessingStatusModel(
                    email_id=email_id,
                    status=status.value,
                    current_step=current_step,
                    completed_steps=[],
                    failed_steps=[],
                    started_at=now,
                    completed_at=now if status == ProcessingStatus.COMPLETED else None,
                    updated_at=now,
                )
            )
            await session.flush()
            return

        model.status = status.value
        model.current_step = current_step
        model.updated_at = now
        if status == ProcessingStatus.COMPLETED:
            model.completed_at = now

    async def get_processing_status(self, email_id: str) -> Optional[ProcessingStatusRecord]:
        async with self._session_factory() as session:
            model = await session.get(ProcessingStatusModel, email_id)
            return self._to_status_record(model) if model else None

    async def list_stuck(
        self, older_than: timedelta, limit: int = 50
    ) -> List[ProcessingStatusRecord]:
        cutoff = utc_now() - older_than
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProcessingStatusModel)
                .where(
                    and_(
                        ProcessingStatusModel.status == ProcessingStatus.PROCESSING.value,
                        ProcessingStatusModel.updated_at < cutoff,
                    )
                )
                .order_by(ProcessingStatusModel.updated_at.asc())
                .limit(limit)
            )
            return [self._to_status_record(m) for m in result.scalars().all()]

    async def reset_status(self, email_id: str, clear_history: bool = True) -> bool:
        async with self._status_lock(email_id):
            async with self._session_factory() as session:
                model = await self._select_status(session, email_id)
                if model is None:
                    return False

                model.status = ProcessingStatus.PENDING.value
                model.current_step = None
                model.updated_at = utc_now()
                if clear_history:
                    model.completed_steps = []
                    model.failed_steps = []
                await session.commit()

        logger.info(f"Reset processing status for {email_id}")
        return True

    async def reset_stuck(self, older_than: timedelta) -> List[str]:
        cutoff = utc_now() - older_than
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProcessingStatusModel.email_id).where(
                    and_(
                        ProcessingStatusModel.status == ProcessingStatus.PROCESSING.value,
                        ProcessingStatusModel.updated_at < cutoff,
                    )
                )
            )
            email_ids = list(result.scalars().all())
            if not email_ids:
                return []

            await session.execute(
                update(ProcessingStatusModel)
                .where(ProcessingStatusModel.email_id.in_(email_ids))
                .values(
                    status=ProcessingStatus.PENDING.value,
                    current_step=None,
                    updated_at=utc_now(),
                )
            )
            await session.commit()

        logger.info(f"Reset {len(email_ids)} stuck email(s) to pending")
        return email_ids

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
        duration = details.get("duration_ms")

        async with self._status_lock(email_id):
            async with self._session_factory() as session:
                session.add(
                    PipelineLogModel(
                        email_id=email_id,
                        batch_id=batch_id,
                        step=step,
                        status=status.value,
                        details=details,
                        duration_ms=int(duration) if isinstance(duration, (int, float)) else None,
                        created_at=now,
                    )
                )
                await self._apply_log_to_status(session, email_id, step, status, now)
                await session.commit()

    async def _apply_log_to_status(
        self,
        session: AsyncSession,
        email_id: str,
        step: str,
        status: LogStatus,
        at: datetime,
    ) -> None:
        """Fold a log insert into the status row, creating it as processing."""
        model = await self._select_status(session, email_id)
        if model is None:
            model = ProcessingStatusModel(
                email_id=email_id,
                status=ProcessingStatus.PROCESSING.value,
                completed_steps=[],
                failed_steps=[],
                started_at=at,
            )
            session.add(model)

        record = ProcessingStatusRecord(
            email_id=email_id,
            status=ProcessingStatus(model.status),
            completed_steps=list(model.completed_steps or []),
            failed_steps=list(model.failed_steps or []),
        )
        record.apply_log(step, status, at)

        # JSON columns are only flushed when reassigned
        model.current_step = record.current_step
        model.completed_steps = record.completed_steps
        model.failed_steps = record.failed_steps
        model.updated_at = at

    async def list_execution_logs(self, email_id: str) -> List[ExecutionLogRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PipelineLogModel)
                .where(PipelineLogModel.email_id == email_id)
                .order_by(PipelineLogModel.created_at.asc())
            )
            return [self._to_log_record(m) for m in result.scalars().all()]

    async def get_execution_stats(
        self,
        email_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[StepStats]:
        query = select(
            PipelineLogModel.step,
            PipelineLogModel.status,
            func.count().label("count"),
            func.avg(PipelineLogModel.duration_ms).label("avg_duration_ms"),
            func.min(PipelineLogModel.created_at).label("first_execution"),
            func.max(PipelineLogModel.created_at).label("last_execution"),
        )
        if email_id is not None:
            query = query.where(PipelineLogModel.email_id == email_id)
        if since is not None:
            query = query.where(PipelineLogModel.created_at > since)
        query = query.group_by(PipelineLogModel.step, PipelineLogModel.status).order_by(
            PipelineLogModel.step, PipelineLogModel.status
        )

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [
                StepStats(
                    step=row.step,
                    status=row.status,
                    count=int(row.count),
                    avg_duration_ms=(
                        float(row.avg_duration_ms) if row.avg_duration_ms is not None else None
                    ),
                    first_execution=_as_datetime(row.first_execution),
                    last_execution=_as_datetime(row.last_execution),
                )
                for row in result.all()
            ]

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    async def _select_status(
        session: AsyncSession, email_id: str
    ) -> Optional[ProcessingStatusModel]:
        result = await session.execute(
            select(ProcessingStatusModel)
            .where(ProcessingStatusModel.email_id == email_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_email(model: EmailModel) -> Email:
        return Email(
            id=model.id,
            source_id=model.source_id,
            subject=model.subject,
            body=model.body or {},
            conversation_id=model.conversation_id,
            received_at=ensure_utc(model.received_at),
            meta=model.meta or {},
        )

    @staticmethod
    def _to_status_record(model: ProcessingStatusModel) -> ProcessingStatusRecord:
        return ProcessingStatusRecord(
            email_id=model.email_id,
            status=ProcessingStatus(model.status),
            current_step=model.current_step,
            completed_steps=list(model.completed_steps or []),
            failed_steps=list(model.failed_steps or []),
            started_at=ensure_utc(model.started_at),
            completed_at=ensure_utc(model.completed_at),
            updated_at=ensure_utc(model.updated_at),
        )

    @staticmethod
    def _to_log_record(model: PipelineLogModel) -> ExecutionLogRecord:
        return ExecutionLogRecord(
            id=model.id,
            email_id=model.email_id,
            step=model.step,
            status=LogStatus(model.status),
            details=model.details or {},
            created_at=ensure_utc(model.created_at),
            batch_id=model.batch_id,
        )


def _as_datetime(value: Any) -> Optional[datetime]:
    """Aggregates over DateTime come back as strings on SQLite."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return ensure_utc(value)
