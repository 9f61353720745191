"""Application layer interfaces."""
from typing import Any, Awaitable, Callable, Dict, Protocol

from core.application.dtos.summary_dto import SummaryResult


# Hands an email id to the job queue that runs the pipeline for it
PipelineTrigger = Callable[[str], Awaitable[None]]


class ConversationSummarizer(Protocol):
    """
    Interface for conversation summarization.

    This interface defines the contract for the LLM integration,
    allowing the summary step to run without depending on a specific
    provider.
    """

    async def summarize(self, conversation: Dict[str, Any]) -> SummaryResult:
        """
        Summarize an aggregated conversation.

        Args:
            conversation: Conversation content as stored by the conversation
                step (emails, date_range, subjects)

        Returns:
            Validated SummaryResult

        Raises:
            SummaryValidationError: The model output did not validate
        """
        ...


__all__ = ["ConversationSummarizer", "PipelineTrigger"]
