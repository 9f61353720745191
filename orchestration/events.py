"""Orchestration events - Event, EventMetadata."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class EventMetadata:
    """Metadata for an event."""

    run_id: str
    email_id: str
    timestamp: datetime


@dataclass
class Event:
    """Something that happened during a pipeline run."""

    name: str
    payload: dict[str, object]
    metadata: EventMetadata
