"""
Conversation Step.

Aggregates every email sharing the conversation id of the processed
email into one chronological thread, stored as the conversation output.
"""
import time
import logging

from core.domain.entities import Email
from core.domain.repositories import OutputRepository
from core.domain.value_objects import ConversationContent, ConversationEmail, DateRange
from mailpipe_sdk.utils.datetime import to_iso
from orchestration.workflow import PipelineStep

from .strip_html import PLAIN_TEXT_OUTPUT


logger = logging.getLogger(__name__)


class ConversationStep(PipelineStep):
    """Pipeline step: build the conversation aggregate."""

    name = "conversation"
    dependencies = ("strip_html",)
    retryable = True
    priority = 2
    timeout = 30.0
    description = "Aggregate all emails in a conversation into a single conversation output"

    def __init__(self, outputs: OutputRepository, pipeline_version: str = "v1"):
        self._outputs = outputs
        self._pipeline_version = pipeline_version

    async def run(self, email: Email) -> None:
        start = time.monotonic()

        conversation_id = email.conversation_id
        if not conversation_id:
            logger.warning(f"[conversation] Email {email.id} has no conversation_id, skipping")
            return

        logger.info(
            f"[conversation] Processing conversation {conversation_id} "
            f"triggered by email {email.id}"
        )

        rows = await self._outputs.list_conversation_emails(
            conversation_id, output_type=PLAIN_TEXT_OUTPUT, pipeline_version=self._pipeline_version
        )
        if not rows:
            logger.warning(f"[conversation] No emails found for conversation {conversation_id}")
            return

        emails = [
            ConversationEmail(
                id=row.id,
                subject=row.subject,
                received_at=to_iso(row.received_at),
                plain_text_content=(row.content or {}).get("text") or "",
                attachments=list((row.content or {}).get("attachments") or []),
            )
            for row in rows
        ]

        # Unique subjects in first-seen order
        subjects = list(dict.fromkeys(row.subject for row in rows if row.subject is not None))

        received = sorted(e.received_at for e in emails if e.received_at is not None)
        date_range = DateRange(
            earliest=received[0] if received else None,
            latest=received[-1] if received else None,
        )

        content = ConversationContent(
            conversation_id=conversation_id,
            emails=emails,
            date_range=date_range,
            subjects=subjects,
        )

        metadata = {
            "email_count": content.email_count,
            "total_text_length": content.total_text_length,
            "total_attachments": content.total_attachments,
            "unique_subjects": len(subjects),
            "date_range": date_range.to_dict(),
            "triggered_by_email": email.id,
            "processing_time_ms": int((time.monotonic() - start) * 1000),
        }

        await self._outputs.upsert_conversation_output(
            conversation_id,
            content.to_dict(),
            metadata,
            pipeline_version=self._pipeline_version,
        )

        logger.info(
            f"[conversation] Completed conversation {conversation_id}: "
            f"{content.email_count} emails, {content.total_text_length} chars total"
        )
