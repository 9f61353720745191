"""Shared fixtures: in-memory store and email factory."""

import uuid

import pytest

from core.domain.entities import Email
from core.infrastructure.adapters.persistence.in_memory_store import InMemoryEmailStore


@pytest.fixture
def store() -> InMemoryEmailStore:
    """Empty in-memory entity store / output repository."""
    return InMemoryEmailStore()


@pytest.fixture
def make_email(store):
    """Factory storing an email in the in-memory store."""

    async def _make(**overrides) -> Email:
        email = Email(
            id=overrides.pop("id", str(uuid.uuid4())),
            source_id=overrides.pop("source_id", f"<{uuid.uuid4()}@example.com>"),
            subject=overrides.pop("subject", "Test subject"),
            body=overrides.pop("body", {"content": "<p>Hello <b>world</b></p>"}),
            **overrides,
        )
        return await store.add_email(email)

    return _make
