"""
Unit tests for the conversation step.
"""
from datetime import datetime, timezone

import pytest

from core.application.steps import ConversationStep, StripHtmlStep


def at(day: int) -> datetime:
    return datetime(2024, 3, day, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def strip_html(store):
    return StripHtmlStep(store)


@pytest.mark.asyncio
async def test_conversation_without_id_is_skipped(store, make_email):
    email = await make_email(conversation_id=None)

    await ConversationStep(store).run(email)

    assert store._conversations == {}


@pytest.mark.asyncio
async def test_conversation_aggregates_thread_in_received_order(store, make_email, strip_html):
    second = await make_email(
        conversation_id="conv-1",
        subject="RE: Pump offer",
        received_at=at(2),
        body={"content": "<p>Second</p>"},
    )
    first = await make_email(
        conversation_id="conv-1",
        subject="Pump offer",
        received_at=at(1),
        body={"content": "<p>First message</p>"},
    )
    third = await make_email(
        conversation_id="conv-1",
        subject="Pump offer",
        received_at=at(3),
        body={"content": "<p>Third</p>"},
    )
    await make_email(conversation_id="other", subject="Unrelated")
    for email in (first, second, third):
        await strip_html.run(email)

    await ConversationStep(store).run(second)

    output = await store.get_conversation_output("conv-1")
    assert output is not None
    content = output.content
    assert content["conversation_id"] == "conv-1"
    assert [e["id"] for e in content["emails"]] == [first.id, second.id, third.id]
    assert [e["plain_text_content"] for e in content["emails"]] == [
        "First message",
        "Second",
        "Third",
    ]
    assert content["email_count"] == 3
    assert content["subjects"] == ["Pump offer", "RE: Pump offer"]
    assert content["date_range"] == {
        "earliest": at(1).isoformat(),
        "latest": at(3).isoformat(),
    }

    metadata = output.metadata
    assert metadata["email_count"] == 3
    assert metadata["unique_subjects"] == 2
    assert metadata["total_text_length"] == len("First message") + len("Second") + len("Third")
    assert metadata["total_attachments"] == 0
    assert metadata["triggered_by_email"] == second.id


@pytest.mark.asyncio
async def test_conversation_includes_emails_without_plain_text(store, make_email):
    email = await make_email(conversation_id="conv-2", received_at=None)

    await ConversationStep(store).run(email)

    output = await store.get_conversation_output("conv-2")
    assert output.content["emails"][0]["plain_text_content"] == ""
    assert output.content["date_range"] == {"earliest": None, "latest": None}


@pytest.mark.asyncio
async def test_conversation_rerun_keeps_summary_fields(store, make_email, strip_html):
    email = await make_email(conversation_id="conv-3", received_at=at(1))
    await strip_html.run(email)
    step = ConversationStep(store)

    await step.run(email)
    await store.update_conversation_summary(
        "conv-3",
        title="Pump quote",
        summary="Customer asks for a quote",
        category="pricing",
        tags=["pump"],
        summary_metadata={"method": "llm"},
    )
    await step.run(email)

    output = await store.get_conversation_output("conv-3")
    assert output.title == "Pump quote"
    assert output.summary == "Customer asks for a quote"
    assert output.tags == ["pump"]
    assert output.content["email_count"] == 1


def test_conversation_step_definition():
    definition = ConversationStep(outputs=None).definition()

    assert definition.name == "conversation"
    assert definition.dependencies == ["strip_html"]
    assert definition.retryable is True
    assert definition.timeout == 30.0
