"""
Composition root.

Builds the pipeline object graph from settings. Every call constructs
fresh instances; callers keep and pass them around.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.application.interfaces import ConversationSummarizer, PipelineTrigger
from core.application.services import PipelineService
from core.application.steps import build_default_steps
from core.application.use_cases import IngestEmailUseCase
from core.infrastructure.database.config import create_engine, create_session_factory
from core.infrastructure.database.repositories import (
    SQLAlchemyEntityStore,
    SQLAlchemyOutputRepository,
)
from core.settings import AppSettings, get_app_settings
from orchestration import InMemoryEventBus, PipelineOrchestrator, create_default_orchestrator

logger = logging.getLogger(__name__)


@dataclass
class PipelineComponents:
    """Wired pipeline: stores, orchestrator and application services."""

    entity_store: SQLAlchemyEntityStore
    outputs: SQLAlchemyOutputRepository
    orchestrator: PipelineOrchestrator
    service: PipelineService
    event_bus: InMemoryEventBus


def build_pipeline(
    settings: Optional[AppSettings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    summarizer: Optional[ConversationSummarizer] = None,
    trigger: Optional[PipelineTrigger] = None,
) -> PipelineComponents:
    """
    Wire the standard pipeline on the SQLAlchemy stores.

    Args:
        settings: Application settings (env/.env if omitted)
        session_factory: Session factory (engine built from settings if omitted)
        summarizer: Summarizer for the summary step (OpenAI if omitted)
        trigger: Re-enqueue callable used by PipelineService.retry_failed
    """
    settings = settings or get_app_settings()

    if session_factory is None:
        session_factory = create_session_factory(create_engine(settings.database))

    if summarizer is None:
        from core.infrastructure.adapters.llm.openai_summarizer import OpenAISummarizer

        summarizer = OpenAISummarizer(settings.llm)

    entity_store = SQLAlchemyEntityStore(session_factory)
    outputs = SQLAlchemyOutputRepository(session_factory)
    event_bus = InMemoryEventBus()

    orchestrator = create_default_orchestrator(
        entity_store,
        steps=build_default_steps(
            outputs, summarizer, pipeline_version=settings.pipeline.pipeline_version
        ),
        default_timeout=settings.pipeline.default_step_timeout_seconds,
        event_bus=event_bus,
    )
    service = PipelineService(
        orchestrator, entity_store, settings=settings.pipeline, trigger=trigger
    )

    logger.info(f"Pipeline wired with steps: {orchestrator.registry.names()}")
    return PipelineComponents(
        entity_store=entity_store,
        outputs=outputs,
        orchestrator=orchestrator,
        service=service,
        event_bus=event_bus,
    )


def build_ingest_use_case(
    components: PipelineComponents, trigger: PipelineTrigger
) -> IngestEmailUseCase:
    """Ingestion use case writing to the pipeline's entity store."""
    return IngestEmailUseCase(components.entity_store, trigger)
