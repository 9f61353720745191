"""Domain value objects."""

from .value_objects import RunID
from .conversation import ConversationContent, ConversationEmail, DateRange

__all__ = [
    "RunID",
    "ConversationContent",
    "ConversationEmail",
    "DateRange",
]
