from .email import Email
from .outputs import ConversationEmailRow, ConversationOutput, EmailOutput
from .pipeline_records import ExecutionLogRecord, ProcessingStatusRecord, StepStats

__all__ = [
    "ConversationEmailRow",
    "ConversationOutput",
    "Email",
    "EmailOutput",
    "ExecutionLogRecord",
    "ProcessingStatusRecord",
    "StepStats",
]
