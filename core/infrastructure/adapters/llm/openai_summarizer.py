"""
OpenAI Conversation Summarizer.

Implements ConversationSummarizer with the OpenAI chat completions API
in JSON mode.
"""
import json
import time
from typing import Any, Dict, Optional
import logging

from openai import AsyncOpenAI

from core.application.dtos.summary_dto import SummaryResult, parse_summary_response
from core.settings.modules.llm_settings import LLMSettings


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You analyze customer email conversations and turn them into entries for an internal knowledge base.

CATEGORIES (choose the most appropriate):
- "project": project quotes, calculations, drawings, layouts
- "pricing": product pricing, availability, delivery times, discounts
- "technical_support": installation help, troubleshooting, product questions
- "administrative": orders, invoices, price lists, general admin
- "warranty": claims, defective products, returns
- "marketing": training, courses, webinars, product presentations
- "internal": employee-to-employee communication
- "not_relevant": spam, automatic notifications, irrelevant content

TITLE: at most 100 characters, naming products, issue type or business function. Never include company names.

TAGS: short tags for filtering and search (product models, technical terms, processes). Never include company names.

SUMMARY: extract every technical detail (product names, model and part numbers, quantities, dimensions, prices, procedures, error codes). Replace personal data with placeholders such as "Customer", "Agent" and "Project location".

URGENCY: "high" (urgent or critical), "medium" (time-sensitive), "low" (general inquiry).

TICKET STATUS:
- "closed": resolved, no further action needed
- "open": new inquiry, needs a response
- "pending_internal": waiting for internal action
- "awaiting_customer": waiting for the customer

Respond ONLY with valid JSON."""

RESPONSE_SHAPE = """{
  "title": "Clear, descriptive title (max 100 chars)",
  "summary": "Technical knowledge extracted from the conversation",
  "category": "most_appropriate_category",
  "tags": ["relevant", "tags"],
  "confidence": 0.95,
  "key_topics": ["main", "topics"],
  "urgency_level": "low|medium|high",
  "ticket_status": "closed|open|pending_internal|awaiting_customer",
  "action_required": true,
  "next_steps": ["if", "action", "required"]
}"""


def build_user_prompt(conversation: Dict[str, Any]) -> str:
    """Render the conversation into the user message."""
    date_range = conversation.get("date_range") or {}
    request = {
        "emails": [
            {
                "subject": email.get("subject"),
                "content": email.get("plain_text_content") or "",
                "received_at": email.get("received_at"),
                "attachments": email.get("attachments") or [],
            }
            for email in conversation.get("emails") or []
        ],
        "date_range": date_range,
    }

    return (
        "Analyze this email conversation and provide structured summary information:\n\n"
        f"CONVERSATION DATA:\n{json.dumps(request, indent=2, ensure_ascii=False)}\n\n"
        f"EMAIL COUNT: {len(request['emails'])}\n"
        f"DATE RANGE: {date_range.get('earliest')} to {date_range.get('latest')}\n\n"
        f"Please provide a JSON response with:\n{RESPONSE_SHAPE}"
    )


class OpenAISummarizer:
    """
    ConversationSummarizer backed by OpenAI.

    The client is created on first use, so the pipeline can be wired up
    without an API key. Temperature is omitted for o-series reasoning
    models, which reject it.
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize summarizer.

        Args:
            settings: LLM settings (loaded from OPENAI_* env vars if omitted)
            client: Preconfigured AsyncOpenAI client
        """
        self.settings = settings or LLMSettings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            client_kwargs: Dict[str, Any] = {"timeout": self.settings.timeout_seconds}
            if self.settings.api_key:
                client_kwargs["api_key"] = self.settings.api_key
            if self.settings.base_url:
                client_kwargs["base_url"] = self.settings.base_url
            self._client = AsyncOpenAI(**client_kwargs)
        return self._client

    async def summarize(self, conversation: Dict[str, Any]) -> SummaryResult:
        start = time.monotonic()

        request_params: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(conversation)},
            ],
            "response_format": {"type": "json_object"},
        }
        if self.settings.supports_temperature:
            request_params["temperature"] = self.settings.temperature

        response = await self.client.chat.completions.create(**request_params)
        content = response.choices[0].message.content or ""

        result = parse_summary_response(content)

        logger.info(
            f"LLM summary generated in {int((time.monotonic() - start) * 1000)}ms "
            f"(model={self.settings.model}, emails={len(conversation.get('emails') or [])})"
        )
        return result

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if one was created."""
        if self._client is not None:
            await self._client.close()
