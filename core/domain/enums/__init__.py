from .processing_status import LogStatus, ProcessingStatus

__all__ = ["LogStatus", "ProcessingStatus"]
