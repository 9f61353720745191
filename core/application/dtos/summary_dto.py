"""
Conversation summary DTO.

Validated shape of the structured summary returned by the LLM.
"""
import json
import re
from typing import List, Literal

from pydantic import BaseModel, Field, ValidationError


SummaryCategory = Literal[
    "project",
    "pricing",
    "technical_support",
    "administrative",
    "warranty",
    "marketing",
    "internal",
    "not_relevant",
]

UrgencyLevel = Literal["low", "medium", "high"]

TicketStatus = Literal["closed", "open", "pending_internal", "awaiting_customer"]

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


class SummaryValidationError(ValueError):
    """LLM output is not valid JSON or does not match SummaryResult."""


class SummaryResult(BaseModel):
    """Structured summary of a conversation."""

    title: str = Field(..., max_length=100, description="Descriptive title")
    summary: str = Field(..., description="Extracted technical knowledge")
    category: SummaryCategory
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)
    key_topics: List[str] = Field(default_factory=list)
    urgency_level: UrgencyLevel
    ticket_status: TicketStatus
    action_required: bool
    next_steps: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}


def parse_summary_response(text: str) -> SummaryResult:
    """
    Parse raw LLM output into a SummaryResult.

    The whole text is tried as JSON first; when that fails the first
    {...} block is extracted (models sometimes wrap JSON in prose or code
    fences).

    Raises:
        SummaryValidationError: no JSON object found, or schema mismatch
    """
    try:
        payload = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        match = _JSON_BLOCK.search(text or "")
        if match is None:
            raise SummaryValidationError("Could not parse JSON from LLM response") from None
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise SummaryValidationError(f"Could not parse JSON from LLM response: {exc}") from exc

    if not isinstance(payload, dict):
        raise SummaryValidationError("LLM response is not a JSON object")

    try:
        return SummaryResult.model_validate(payload)
    except ValidationError as exc:
        raise SummaryValidationError(f"Invalid summary response: {exc}") from exc
