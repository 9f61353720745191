"""Pytest configuration and fixtures for integration tests."""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from core.domain.entities import Email
from core.infrastructure.database.config import create_session_factory, init_database
from core.infrastructure.database.models import Base
from core.infrastructure.database.repositories import (
    SQLAlchemyEntityStore,
    SQLAlchemyOutputRepository,
)


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    # Create all tables
    await init_database(engine)

    yield engine

    # Cleanup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    """Create test session factory."""
    yield create_session_factory(test_engine)


@pytest.fixture
def entity_store(test_session_factory) -> SQLAlchemyEntityStore:
    return SQLAlchemyEntityStore(test_session_factory)


@pytest.fixture
def output_repository(test_session_factory) -> SQLAlchemyOutputRepository:
    return SQLAlchemyOutputRepository(test_session_factory)


@pytest.fixture
def add_email(entity_store):
    """Factory inserting an email through the SQL entity store."""

    async def _add(**overrides) -> Email:
        email = Email(
            id=overrides.pop("id", str(uuid.uuid4())),
            source_id=overrides.pop("source_id", f"<{uuid.uuid4()}@example.com>"),
            subject=overrides.pop("subject", "Test subject"),
            body=overrides.pop("body", {"content": "<p>Hello <b>world</b></p>"}),
            **overrides,
        )
        return await entity_store.add_email(email)

    return _add
