"""
SQLAlchemy ORM Models.

Maps pipeline entities to database tables.
"""
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from mailpipe_sdk.utils.datetime import utc_now

Base = declarative_base()


def _uuid_str() -> str:
    return str(uuid.uuid4())


# =============================================================================
# EMAIL MODEL
# =============================================================================

class EmailModel(Base):
    """
    Ingested email.

    Subject and body are PII-scrubbed before insert; the body is the
    source for every reprocessing run.
    """

    __tablename__ = "emails"

    id = Column(String(36), primary_key=True, default=_uuid_str)

    # Deduplication key (internetMessageId)
    source_id = Column(String(512), unique=True, nullable=False)

    received_at = Column(DateTime(timezone=True), nullable=True)
    subject = Column(Text, nullable=True)
    meta = Column(JSON, nullable=True)
    body = Column(JSON, nullable=True)
    conversation_id = Column(String(255), nullable=True, index=True)

    inserted_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_emails_conversation_received", "conversation_id", "received_at"),
    )

    def __repr__(self):
        return f"<EmailModel(id={self.id}, source_id={self.source_id})>"


# =============================================================================
# EMAIL OUTPUT MODEL
# =============================================================================

class EmailOutputModel(Base):
    """
    Derived output of a pipeline step for one email.

    One row per (email, output type, pipeline version).
    """

    __tablename__ = "email_outputs"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    email_id = Column(
        String(36), ForeignKey("emails.id", ondelete="CASCADE"), nullable=False, index=True
    )
    output_type = Column(String(100), nullable=False, index=True)
    content = Column(JSON, nullable=True)
    output_metadata = Column("metadata", JSON, nullable=True)
    pipeline_version = Column(String(20), nullable=False, default="v1")
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "email_id", "output_type", "pipeline_version", name="uq_email_outputs_type_version"
        ),
        Index("ix_email_outputs_type_created", "output_type", "created_at"),
    )

    def __repr__(self):
        return f"<EmailOutputModel(email_id={self.email_id}, type={self.output_type})>"


# =============================================================================
# PIPELINE LOG MODEL
# =============================================================================

class PipelineLogModel(Base):
    """
    Execution log row, one per step attempt.

    Append-only. duration_ms is copied out of details so statistics can be
    aggregated in SQL.
    """

    __tablename__ = "pipeline_logs"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    email_id = Column(
        String(36), ForeignKey("emails.id", ondelete="CASCADE"), nullable=False, index=True
    )
    batch_id = Column(String(36), nullable=True, index=True)
    step = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False)
    details = Column(JSON, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_pipeline_logs_step_status", "step", "status"),
        Index("ix_pipeline_logs_email_step_status", "email_id", "step", "status"),
        Index("ix_pipeline_logs_step_created", "step", "created_at"),
    )

    def __repr__(self):
        return f"<PipelineLogModel(email_id={self.email_id}, step={self.step}, status={self.status})>"


# =============================================================================
# PROCESSING STATUS MODEL
# =============================================================================

class ProcessingStatusModel(Base):
    """
    Processing state of each email. One row per email, upserted.
    """

    __tablename__ = "email_processing_status"

    email_id = Column(
        String(36), ForeignKey("emails.id", ondelete="CASCADE"), primary_key=True
    )
    status = Column(String(20), nullable=False, index=True)
    current_step = Column(String(100), nullable=True)
    completed_steps = Column(JSON, nullable=False, default=list)
    failed_steps = Column(JSON, nullable=False, default=list)
    started_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<ProcessingStatusModel(email_id={self.email_id}, status={self.status})>"


# =============================================================================
# CONVERSATION OUTPUT MODEL
# =============================================================================

class ConversationOutputModel(Base):
    """
    Aggregated conversation data combining every email of a thread,
    plus the LLM summary written by the summary step.
    """

    __tablename__ = "conversation_outputs"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    conversation_id = Column(String(255), unique=True, nullable=False)
    content = Column(JSON, nullable=True)
    output_metadata = Column("metadata", JSON, nullable=True)
    pipeline_version = Column(String(20), nullable=False, default="v1")

    # Summary fields
    title = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)
    tags = Column(JSON, nullable=True)
    summary_metadata = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self):
        return f"<ConversationOutputModel(conversation_id={self.conversation_id})>"
