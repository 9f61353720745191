"""Application services."""
from .pipeline_service import PipelineService

__all__ = ["PipelineService"]
