"""Integration tests for SQLAlchemyOutputRepository on SQLite."""

from datetime import datetime, timezone

import pytest

from core.domain.entities import EmailOutput


def text_output(email_id: str, text: str, version: str = "v1") -> EmailOutput:
    return EmailOutput(
        email_id=email_id,
        output_type="plain_text",
        content={"text": text},
        metadata={"stripped_length": len(text)},
        pipeline_version=version,
    )


@pytest.mark.asyncio
async def test_email_output_upsert_overwrites(output_repository, add_email):
    email = await add_email()

    await output_repository.upsert_email_output(text_output(email.id, "first"))
    await output_repository.upsert_email_output(text_output(email.id, "second"))

    output = await output_repository.get_email_output(email.id, "plain_text")
    assert output.content == {"text": "second"}
    assert output.metadata == {"stripped_length": 6}
    assert output.created_at is not None
    assert await output_repository.get_email_output(email.id, "plain_text", "v2") is None


@pytest.mark.asyncio
async def test_pipeline_versions_are_stored_side_by_side(output_repository, add_email):
    email = await add_email()

    await output_repository.upsert_email_output(text_output(email.id, "old", "v1"))
    await output_repository.upsert_email_output(text_output(email.id, "new", "v2"))

    v1 = await output_repository.get_email_output(email.id, "plain_text", "v1")
    v2 = await output_repository.get_email_output(email.id, "plain_text", "v2")
    assert (v1.content["text"], v2.content["text"]) == ("old", "new")


@pytest.mark.asyncio
async def test_conversation_emails_join_plain_text(output_repository, add_email):
    late = await add_email(
        conversation_id="conv-1",
        subject="RE: Offer",
        received_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
    )
    early = await add_email(
        conversation_id="conv-1",
        subject="Offer",
        received_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    await add_email(conversation_id="conv-2")
    await output_repository.upsert_email_output(text_output(early.id, "Hello"))

    rows = await output_repository.list_conversation_emails("conv-1")

    assert [row.id for row in rows] == [early.id, late.id]
    assert rows[0].content == {"text": "Hello"}
    assert rows[0].received_at == datetime(2024, 3, 1, tzinfo=timezone.utc)
    # No plain_text output yet
    assert rows[1].content is None
    assert await output_repository.list_conversation_emails("unknown") == []


@pytest.mark.asyncio
async def test_conversation_upsert_preserves_summary(output_repository):
    await output_repository.upsert_conversation_output(
        "conv-1", {"emails": [1]}, {"email_count": 1}
    )
    await output_repository.update_conversation_summary(
        "conv-1",
        title="Offer",
        summary="Customer wants an offer",
        category="pricing",
        tags=["offer"],
        summary_metadata={"confidence": 0.7},
    )

    await output_repository.upsert_conversation_output(
        "conv-1", {"emails": [1, 2]}, {"email_count": 2}
    )

    output = await output_repository.get_conversation_output("conv-1")
    assert output.content == {"emails": [1, 2]}
    assert output.metadata == {"email_count": 2}
    assert output.title == "Offer"
    assert output.summary == "Customer wants an offer"
    assert output.category == "pricing"
    assert output.tags == ["offer"]
    assert output.summary_metadata == {"confidence": 0.7}


@pytest.mark.asyncio
async def test_summary_update_without_conversation_is_ignored(output_repository):
    await output_repository.update_conversation_summary(
        "missing", title="t", summary="s", category="internal", tags=[], summary_metadata={}
    )

    assert await output_repository.get_conversation_output("missing") is None
