"""
Unit tests for the OpenAI summarizer with a mocked client.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.application.dtos import SummaryValidationError
from core.infrastructure.adapters.llm.openai_summarizer import (
    SYSTEM_PROMPT,
    OpenAISummarizer,
    build_user_prompt,
)
from core.settings import LLMSettings


CONVERSATION = {
    "conversation_id": "conv-1",
    "emails": [
        {
            "id": "e1",
            "subject": "Quote request",
            "received_at": "2024-03-01T09:30:00+00:00",
            "plain_text_content": "Please quote 4 panels",
            "attachments": ["roof.pdf"],
        }
    ],
    "date_range": {
        "earliest": "2024-03-01T09:30:00+00:00",
        "latest": "2024-03-01T09:30:00+00:00",
    },
    "subjects": ["Quote request"],
}

RESPONSE = {
    "title": "Quote for four solar panels",
    "summary": "Customer requests a quote for 4 panels; roof plan attached.",
    "category": "pricing",
    "tags": ["solar panel", "quote"],
    "confidence": 0.88,
    "key_topics": ["quote"],
    "urgency_level": "low",
    "ticket_status": "open",
    "action_required": True,
    "next_steps": ["Prepare quote"],
}


def mock_client(content: str) -> MagicMock:
    client = MagicMock()
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    client.chat.completions.create = AsyncMock(return_value=completion)
    client.close = AsyncMock()
    return client


def test_user_prompt_contains_conversation_data():
    prompt = build_user_prompt(CONVERSATION)

    assert "Please quote 4 panels" in prompt
    assert "roof.pdf" in prompt
    assert "EMAIL COUNT: 1" in prompt
    assert "DATE RANGE: 2024-03-01T09:30:00+00:00 to 2024-03-01T09:30:00+00:00" in prompt


@pytest.mark.asyncio
async def test_summarize_uses_json_mode_and_omits_temperature_for_reasoning_models():
    client = mock_client(json.dumps(RESPONSE))
    summarizer = OpenAISummarizer(LLMSettings(model="o3-mini"), client=client)

    result = await summarizer.summarize(CONVERSATION)

    assert result.title == "Quote for four solar panels"
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "o3-mini"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "temperature" not in kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert kwargs["messages"][1]["role"] == "user"


@pytest.mark.asyncio
async def test_summarize_sends_temperature_for_chat_models():
    client = mock_client(json.dumps(RESPONSE))
    summarizer = OpenAISummarizer(LLMSettings(model="gpt-4o-mini", temperature=0.3), client=client)

    await summarizer.summarize(CONVERSATION)

    assert client.chat.completions.create.await_args.kwargs["temperature"] == 0.3


@pytest.mark.asyncio
async def test_summarize_rejects_invalid_output():
    client = mock_client("I cannot help with that.")
    summarizer = OpenAISummarizer(LLMSettings(model="o3-mini"), client=client)

    with pytest.raises(SummaryValidationError):
        await summarizer.summarize(CONVERSATION)


@pytest.mark.asyncio
async def test_summarize_propagates_client_errors():
    client = mock_client("{}")
    client.chat.completions.create.side_effect = RuntimeError("rate limited")
    summarizer = OpenAISummarizer(LLMSettings(model="o3-mini"), client=client)

    with pytest.raises(RuntimeError, match="rate limited"):
        await summarizer.summarize(CONVERSATION)


@pytest.mark.asyncio
async def test_aclose_closes_client():
    client = mock_client("{}")
    summarizer = OpenAISummarizer(LLMSettings(), client=client)

    await summarizer.aclose()

    client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_aclose_without_client_is_noop():
    summarizer = OpenAISummarizer(LLMSettings())

    await summarizer.aclose()

    assert summarizer._client is None
