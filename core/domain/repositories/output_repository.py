"""Repository interface for derived pipeline outputs."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..entities import ConversationEmailRow, ConversationOutput, EmailOutput


class OutputRepository(ABC):
    """Abstract storage for step outputs. Every write is an upsert."""

    @abstractmethod
    async def upsert_email_output(self, output: EmailOutput) -> None:
        """Insert or replace the output for (email, type, version)."""
        pass

    @abstractmethod
    async def get_email_output(
        self, email_id: str, output_type: str, pipeline_version: str = "v1"
    ) -> Optional[EmailOutput]:
        pass

    @abstractmethod
    async def list_conversation_emails(
        self, conversation_id: str, output_type: str = "plain_text", pipeline_version: str = "v1"
    ) -> List[ConversationEmailRow]:
        """Emails of a conversation ordered by received_at, each with its output content."""
        pass

    @abstractmethod
    async def upsert_conversation_output(
        self,
        conversation_id: str,
        content: Dict[str, Any],
        metadata: Dict[str, Any],
        pipeline_version: str = "v1",
    ) -> None:
        """Insert or refresh content/metadata, keeping existing summary fields."""
        pass

    @abstractmethod
    async def get_conversation_output(self, conversation_id: str) -> Optional[ConversationOutput]:
        pass

    @abstractmethod
    async def update_conversation_summary(
        self,
        conversation_id: str,
        title: str,
        summary: str,
        category: str,
        tags: List[str],
        summary_metadata: Dict[str, Any],
    ) -> None:
        """Store the summary fields of an existing conversation output."""
        pass
