"""Application service for pipeline operations."""

from datetime import timedelta
from typing import List, Optional, Sequence
import logging

from core.application.dtos.pipeline_dto import PipelineRunDTO
from core.application.interfaces import PipelineTrigger
from core.domain.entities import ProcessingStatusRecord, StepStats
from core.domain.repositories import EntityStore
from core.settings.modules.pipeline_settings import PipelineSettings
from mailpipe_sdk.utils.datetime import utc_now
from orchestration.orchestrator import PipelineOrchestrator


logger = logging.getLogger(__name__)


class PipelineService:
    """
    Application service for running and administering the pipeline.

    Responsibilities:
    - Run the full pipeline for the job worker
    - Manual re-runs of individual steps
    - Status inspection and recovery of stuck or failed emails
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        entity_store: EntityStore,
        settings: Optional[PipelineSettings] = None,
        trigger: Optional[PipelineTrigger] = None,
    ) -> None:
        """Initialize pipeline service.

        Args:
            orchestrator: PipelineOrchestrator running the steps
            entity_store: EntityStore holding status and logs
            settings: Pipeline settings (stuck thresholds, stats window)
            trigger: Re-enqueues an email for processing (used by retry_failed)
        """
        self._orchestrator = orchestrator
        self._store = entity_store
        self._settings = settings or PipelineSettings()
        self._trigger = trigger

    async def process_email(self, email_id: str) -> PipelineRunDTO:
        """Run every registered step for an email.

        Raises:
            EntityNotFound: Unknown email
            StepExecutionFailure: A retryable step failed (the job should be retried)
        """
        context = await self._orchestrator.execute_all(email_id)
        return PipelineRunDTO.from_context(context)

    async def run_specific_steps(self, email_id: str, steps: Sequence[str]) -> PipelineRunDTO:
        """Re-run exactly the given steps, without their dependencies.

        Args:
            email_id: Email ID
            steps: Step names to run

        Returns:
            PipelineRunDTO of the run
        """
        logger.info(f"Manual run of steps {list(steps)} for email {email_id}")
        context = await self._orchestrator.execute_steps(
            email_id, requested_steps=steps, skip_dependencies=True
        )
        return PipelineRunDTO.from_context(context)

    async def get_processing_status(self, email_id: str) -> Optional[ProcessingStatusRecord]:
        """Processing-status record of an email, None if never processed."""
        return await self._store.get_processing_status(email_id)

    async def get_pipeline_stats(self, email_id: Optional[str] = None) -> List[StepStats]:
        """Execution statistics per (step, status).

        Args:
            email_id: Restrict to one email (all time); otherwise the last
                stats_window_hours over every email
        """
        if email_id is not None:
            return await self._orchestrator.get_execution_stats(email_id)

        since = utc_now() - timedelta(hours=self._settings.stats_window_hours)
        return await self._orchestrator.get_execution_stats(since=since)

    async def list_stuck(self, limit: int = 50) -> List[ProcessingStatusRecord]:
        """Emails still processing without an update for stuck_after_minutes."""
        return await self._store.list_stuck(
            timedelta(minutes=self._settings.stuck_after_minutes), limit=limit
        )

    async def reset_status(self, email_id: str) -> bool:
        """Put an email back to pending, clearing current step and step history.

        Returns:
            True if the email had a status record
        """
        return await self._store.reset_status(email_id, clear_history=True)

    async def cleanup_stuck(self) -> List[str]:
        """Reset emails processing for longer than stuck_reset_after_minutes.

        Returns:
            IDs of the emails moved back to pending
        """
        email_ids = await self._store.reset_stuck(
            timedelta(minutes=self._settings.stuck_reset_after_minutes)
        )
        logger.info(f"Reset {len(email_ids)} stuck emails")
        return email_ids

    async def retry_failed(self, email_ids: Sequence[str]) -> int:
        """Reset emails to pending and re-enqueue them.

        A failure for one email is logged and does not stop the others.

        Returns:
            Number of emails re-enqueued

        Raises:
            RuntimeError: No trigger configured
        """
        if self._trigger is None:
            raise RuntimeError("retry_failed requires a pipeline trigger")

        retried = 0
        for email_id in email_ids:
            try:
                await self._store.reset_status(email_id, clear_history=False)
                await self._trigger(email_id)
                retried += 1
            except Exception as e:
                logger.error(f"Failed to retry email processing for {email_id}: {e}")

        logger.info(f"Retried {retried}/{len(email_ids)} emails")
        return retried
