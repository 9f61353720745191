"""Application use cases."""
from .ingest_email import IngestBatchResult, IngestEmailUseCase

__all__ = ["IngestBatchResult", "IngestEmailUseCase"]
