"""Application layer - steps, services, use cases, interfaces, and DTOs."""

from .dtos import PipelineRunDTO, SummaryResult, SummaryValidationError, parse_summary_response
from .interfaces import ConversationSummarizer, PipelineTrigger
from .services import PipelineService
from .steps import build_default_steps, build_registry
from .use_cases import IngestBatchResult, IngestEmailUseCase

__all__ = [
    # DTOs
    "PipelineRunDTO",
    "SummaryResult",
    "SummaryValidationError",
    "parse_summary_response",
    # Interfaces
    "ConversationSummarizer",
    "PipelineTrigger",
    # Services
    "PipelineService",
    # Steps
    "build_default_steps",
    "build_registry",
    # Use Cases
    "IngestBatchResult",
    "IngestEmailUseCase",
]
