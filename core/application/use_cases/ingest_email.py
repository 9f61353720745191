"""
Ingest Email Use Case.

Stores a batch of already PII-scrubbed messages (Microsoft Graph message
shape) and hands every new email to the pipeline trigger.

Flow:
1. Assign a batch id
2. Deduplicate each message by source id (internetMessageId)
3. Store new emails and log the ingestion
4. Enqueue new emails for processing
"""
import copy
import html
import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
import logging

from core.application.interfaces import PipelineTrigger
from core.domain.entities import Email
from core.domain.enums import LogStatus
from core.domain.repositories import EntityStore


logger = logging.getLogger(__name__)

INPOINT_STEP = "inpoint"


@dataclass
class IngestBatchResult:
    """Outcome of ingesting one batch."""

    batch_id: str
    inserted: int = 0
    duplicates: int = 0


class IngestEmailUseCase:
    """
    Use case for ingesting email batches.

    Re-posting the same message is harmless: it is recorded as a duplicate
    and never enqueued twice.
    """

    def __init__(self, entity_store: EntityStore, trigger: PipelineTrigger):
        """
        Initialize use case.

        Args:
            entity_store: Store for emails and execution logs
            trigger: Enqueues an email id for pipeline processing
        """
        self.entity_store = entity_store
        self.trigger = trigger

    async def execute(self, messages: Iterable[Dict[str, Any]]) -> IngestBatchResult:
        """
        Ingest a batch of messages.

        Args:
            messages: Scrubbed Graph messages

        Returns:
            IngestBatchResult with counts

        Raises:
            ValueError: A message has neither internetMessageId nor id
        """
        result = IngestBatchResult(batch_id=str(uuid.uuid4()))

        for message in messages:
            source_id = message.get("internetMessageId") or message.get("id")
            if not source_id:
                raise ValueError("Message has neither internetMessageId nor id")

            existing = await self.entity_store.find_by_source_id(source_id)
            if existing:
                result.duplicates += 1
                await self.entity_store.append_execution_log(
                    existing.id,
                    INPOINT_STEP,
                    LogStatus.DUPLICATE,
                    {"note": "already ingested"},
                    batch_id=result.batch_id,
                )
                continue

            email = await self.entity_store.add_email(self._to_email(message, source_id))
            result.inserted += 1

            await self.entity_store.append_execution_log(
                email.id,
                INPOINT_STEP,
                LogStatus.OK,
                {"body_size": len(json.dumps(email.body, default=str))},
                batch_id=result.batch_id,
            )
            await self.trigger(email.id)

        logger.info(
            f"Ingested batch {result.batch_id}: "
            f"{result.inserted} inserted, {result.duplicates} duplicates"
        )
        return result

    @staticmethod
    def _to_email(message: Dict[str, Any], source_id: str) -> Email:
        body = copy.deepcopy(message)

        raw_html = (message.get("body") or {}).get("content") or ""
        if not raw_html.strip():
            # No HTML body: keep the preview text
            raw_html = f"<pre>{html.escape(message.get('bodyPreview') or '', quote=False)}</pre>"
        body["body"] = {"contentType": "html", "content": raw_html}

        return Email(
            id=str(uuid.uuid4()),
            source_id=source_id,
            subject=message.get("subject"),
            body=body,
            conversation_id=message.get("conversationId"),
            received_at=_parse_datetime(message.get("receivedDateTime")),
            meta={
                "graphId": message.get("id"),
                "conversationId": message.get("conversationId"),
                "folder": message.get("folderName"),
                "hasAttachments": bool(message.get("hasAttachments")),
            },
        )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse Graph ISO timestamps ("2024-01-01T10:00:00Z")."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
