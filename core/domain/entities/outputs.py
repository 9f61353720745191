"""Derived outputs written by pipeline steps."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class EmailOutput:
    """Processed output of one type for one email (e.g. plain_text)."""

    email_id: str
    output_type: str
    content: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)
    pipeline_version: str = "v1"
    created_at: Optional[datetime] = None


@dataclass
class ConversationOutput:
    """Aggregated conversation plus its LLM summary fields."""

    conversation_id: str
    content: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)
    pipeline_version: str = "v1"
    title: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    summary_metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ConversationEmailRow:
    """An email of a conversation joined with its plain_text output."""

    id: str
    subject: Optional[str]
    received_at: Optional[datetime]
    content: Optional[Dict[str, Any]]
