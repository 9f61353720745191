"""Conversation aggregate content value objects."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ConversationEmail:
    """One email inside an aggregated conversation thread."""

    id: str
    subject: Optional[str]
    received_at: Optional[str]
    plain_text_content: str = ""
    attachments: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "received_at": self.received_at,
            "plain_text_content": self.plain_text_content,
            "attachments": list(self.attachments),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationEmail":
        return cls(
            id=str(data["id"]),
            subject=data.get("subject"),
            received_at=data.get("received_at"),
            plain_text_content=data.get("plain_text_content") or "",
            attachments=list(data.get("attachments") or []),
        )


@dataclass(frozen=True)
class DateRange:
    """Earliest and latest received timestamps (ISO strings)."""

    earliest: Optional[str]
    latest: Optional[str]

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"earliest": self.earliest, "latest": self.latest}


@dataclass(frozen=True)
class ConversationContent:
    """
    Chronological aggregate of every email sharing a conversation id.

    Stored as the `content` of a conversation output and handed to the
    summarizer.
    """

    conversation_id: str
    emails: List[ConversationEmail]
    date_range: DateRange
    subjects: List[str]

    @property
    def email_count(self) -> int:
        return len(self.emails)

    @property
    def total_text_length(self) -> int:
        return sum(len(email.plain_text_content) for email in self.emails)

    @property
    def total_attachments(self) -> int:
        return sum(len(email.attachments) for email in self.emails)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "emails": [email.to_dict() for email in self.emails],
            "email_count": self.email_count,
            "date_range": self.date_range.to_dict(),
            "subjects": list(self.subjects),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationContent":
        date_range = data.get("date_range") or {}
        return cls(
            conversation_id=str(data["conversation_id"]),
            emails=[ConversationEmail.from_dict(e) for e in data.get("emails") or []],
            date_range=DateRange(
                earliest=date_range.get("earliest"),
                latest=date_range.get("latest"),
            ),
            subjects=list(data.get("subjects") or []),
        )
