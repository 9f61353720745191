"""
SQLAlchemy Output Repository Implementation.

Implements OutputRepository for email and conversation outputs.
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain.entities import ConversationEmailRow, ConversationOutput, EmailOutput
from core.domain.repositories import OutputRepository
from core.infrastructure.database.models import (
    ConversationOutputModel,
    EmailModel,
    EmailOutputModel,
)
from mailpipe_sdk.utils.datetime import ensure_utc, utc_now


logger = logging.getLogger(__name__)


class SQLAlchemyOutputRepository(OutputRepository):
    """
    SQLAlchemy implementation of OutputRepository.

    Writes are select-then-update upserts keyed on the natural keys
    (email, type, version) and conversation_id.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # =========================================================================
    # EMAIL OUTPUTS
    # =========================================================================

    async def upsert_email_output(self, output: EmailOutput) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EmailOutputModel).where(
                    and_(
                        EmailOutputModel.email_id == output.email_id,
                        EmailOutputModel.output_type == output.output_type,
                        EmailOutputModel.pipeline_version == output.pipeline_version,
                    )
                )
            )
            model = result.scalar_one_or_none()

            if model:
                model.content = output.content
                model.output_metadata = output.metadata
                model.created_at = utc_now()
            else:
                session.add(
                    EmailOutputModel(
                        email_id=output.email_id,
                        output_type=output.output_type,
                        content=output.content,
                        output_metadata=output.metadata,
                        pipeline_version=output.pipeline_version,
                        created_at=utc_now(),
                    )
                )
            await session.commit()

        logger.debug(f"Stored {output.output_type} output for email {output.email_id}")

    async def get_email_output(
        self, email_id: str, output_type: str, pipeline_version: str = "v1"
    ) -> Optional[EmailOutput]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(EmailOutputModel).where(
                    and_(
                        EmailOutputModel.email_id == email_id,
                        EmailOutputModel.output_type == output_type,
                        EmailOutputModel.pipeline_version == pipeline_version,
                    )
                )
            )
            model = result.scalar_one_or_none()
            if model is None:
                return None

            return EmailOutput(
                email_id=model.email_id,
                output_type=model.output_type,
                content=model.content or {},
                metadata=model.output_metadata or {},
                pipeline_version=model.pipeline_version,
                created_at=ensure_utc(model.created_at),
            )

    async def list_conversation_emails(
        self, conversation_id: str, output_type: str = "plain_text", pipeline_version: str = "v1"
    ) -> List[ConversationEmailRow]:
        query = (
            select(
                EmailModel.id,
                EmailModel.subject,
                EmailModel.received_at,
                EmailOutputModel.content,
            )
            .outerjoin(
                EmailOutputModel,
                and_(
                    EmailOutputModel.email_id == EmailModel.id,
                    EmailOutputModel.output_type == output_type,
                    EmailOutputModel.pipeline_version == pipeline_version,
                ),
            )
            .where(EmailModel.conversation_id == conversation_id)
            .order_by(EmailModel.received_at.asc())
        )

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [
                ConversationEmailRow(
                    id=row.id,
                    subject=row.subject,
                    received_at=ensure_utc(row.received_at),
                    content=row.content,
                )
                for row in result.all()
            ]

    # =========================================================================
    # CONVERSATION OUTPUTS
    # =========================================================================

    async def upsert_conversation_output(
        self,
        conversation_id: str,
        content: Dict[str, Any],
        metadata: Dict[str, Any],
        pipeline_version: str = "v1",
    ) -> None:
        async with self._session_factory() as session:
            model = await self._select_conversation(session, conversation_id)

            if model:
                # Summary fields are left untouched
                model.content = content
                model.output_metadata = metadata
                model.pipeline_version = pipeline_version
                model.updated_at = utc_now()
            else:
                now = utc_now()
                session.add(
                    ConversationOutputModel(
                        conversation_id=conversation_id,
                        content=content,
                        output_metadata=metadata,
                        pipeline_version=pipeline_version,
                        created_at=now,
                        updated_at=now,
                    )
                )
            await session.commit()

        logger.debug(f"Stored conversation output {conversation_id}")

    async def get_conversation_output(self, conversation_id: str) -> Optional[ConversationOutput]:
        async with self._session_factory() as session:
            model = await self._select_conversation(session, conversation_id)
            if model is None:
                return None

            return ConversationOutput(
                conversation_id=model.conversation_id,
                content=model.content or {},
                metadata=model.output_metadata or {},
                pipeline_version=model.pipeline_version,
                title=model.title,
                summary=model.summary,
                category=model.category,
                tags=list(model.tags or []),
                summary_metadata=model.summary_metadata,
                created_at=ensure_utc(model.created_at),
                updated_at=ensure_utc(model.updated_at),
            )

    async def update_conversation_summary(
        self,
        conversation_id: str,
        title: str,
        summary: str,
        category: str,
        tags: List[str],
        summary_metadata: Dict[str, Any],
    ) -> None:
        async with self._session_factory() as session:
            model = await self._select_conversation(session, conversation_id)
            if model is None:
                logger.warning(f"No conversation output to summarize: {conversation_id}")
                return

            model.title = title
            model.summary = summary
            model.category = category
            model.tags = list(tags)
            model.summary_metadata = summary_metadata
            model.updated_at = utc_now()
            await session.commit()

        logger.info(f"Stored summary for conversation {conversation_id}")

    @staticmethod
    async def _select_conversation(
        session: AsyncSession, conversation_id: str
    ) -> Optional[ConversationOutputModel]:
        result = await session.execute(
            select(ConversationOutputModel).where(
                ConversationOutputModel.conversation_id == conversation_id
            )
        )
        return result.scalar_one_or_none()
