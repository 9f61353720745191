"""Application DTOs."""

from .pipeline_dto import PipelineRunDTO, StepResultDTO
from .summary_dto import SummaryResult, SummaryValidationError, parse_summary_response

__all__ = [
    "PipelineRunDTO",
    "StepResultDTO",
    "SummaryResult",
    "SummaryValidationError",
    "parse_summary_response",
]
