"""
Email entity.

The unit of work processed by the pipeline. The body is already
PII-scrubbed when it reaches the domain layer.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class Email:
    """Ingested email message."""

    id: str
    source_id: str
    subject: Optional[str] = None
    body: Dict[str, Any] = field(default_factory=dict)
    conversation_id: Optional[str] = None
    received_at: Optional[datetime] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def html_content(self) -> tuple[str, str]:
        """
        Locate the HTML payload of the body.

        Returns:
            (html, source) where source names the field the HTML came from
        """
        body = self.body or {}
        content = body.get("content")
        if content:
            return content, "body.content"

        nested = body.get("body")
        if isinstance(nested, dict) and nested.get("content"):
            return nested["content"], "body.body.content"

        return "", "body.content"
