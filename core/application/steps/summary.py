"""
Summary Step.

Generates title, summary, category and tags for a conversation with
the configured ConversationSummarizer.
"""
import time
import logging

from core.application.interfaces import ConversationSummarizer
from core.domain.entities import Email
from core.domain.repositories import OutputRepository
from mailpipe_sdk.utils.datetime import utc_now
from orchestration.workflow import PipelineStep


logger = logging.getLogger(__name__)


class SummaryStep(PipelineStep):
    """
    Pipeline step: summarize the conversation of an email.

    Non-retryable: an LLM failure is recorded and the run continues.
    """

    name = "summary"
    dependencies = ("conversation",)
    retryable = False
    priority = 3
    timeout = 120.0
    description = "Generate conversation summary, title, tags and category"

    def __init__(self, outputs: OutputRepository, summarizer: ConversationSummarizer):
        self._outputs = outputs
        self._summarizer = summarizer

    async def run(self, email: Email) -> None:
        start = time.monotonic()

        conversation_id = email.conversation_id
        if not conversation_id:
            logger.warning(f"[summary] Email {email.id} has no conversation_id, skipping")
            return

        logger.info(
            f"[summary] Processing summary for conversation {conversation_id} "
            f"triggered by email {email.id}"
        )

        output = await self._outputs.get_conversation_output(conversation_id)
        if output is None:
            logger.warning(
                f"[summary] No conversation data found for conversation {conversation_id}"
            )
            return

        conversation = output.content
        if not conversation or not conversation.get("emails"):
            logger.warning(f"[summary] No emails found in conversation {conversation_id}")
            return

        result = await self._summarizer.summarize(conversation)

        await self._outputs.update_conversation_summary(
            conversation_id,
            title=result.title,
            summary=result.summary,
            category=result.category,
            tags=list(result.tags),
            summary_metadata={
                "processing_time_ms": int((time.monotonic() - start) * 1000),
                "email_count": len(conversation["emails"]),
                "generated_at": utc_now().isoformat(),
                "triggered_by_email": email.id,
                "method": "llm",
                "confidence": result.confidence,
                "key_topics": list(result.key_topics),
                "urgency_level": result.urgency_level,
                "ticket_status": result.ticket_status,
                "action_required": result.action_required,
                "next_steps": list(result.next_steps),
            },
        )

        logger.info(
            f'[summary] Completed summary for conversation {conversation_id}: '
            f'"{result.title}" ({result.category})'
        )
