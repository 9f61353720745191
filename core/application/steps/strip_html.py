"""
Strip HTML Step.

Converts the HTML body of an email to plain text and stores it as the
plain_text output.
"""
import re
import time
import logging

from bs4 import BeautifulSoup, Comment

from core.domain.entities import Email, EmailOutput
from core.domain.repositories import OutputRepository
from orchestration.workflow import PipelineStep


logger = logging.getLogger(__name__)

PLAIN_TEXT_OUTPUT = "plain_text"

# Elements whose text never belongs to the message
_NON_CONTENT_ELEMENTS = ["script", "style", "head", "meta", "link", "noscript"]

_WHITESPACE = re.compile(r"\s+")


def html_to_text(html: str) -> str:
    """
    Convert HTML to plain text.

    Args:
        html: Raw HTML content

    Returns:
        Text content with whitespace collapsed to single spaces
    """
    if not html or not html.strip():
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for element in soup(_NON_CONTENT_ELEMENTS):
        element.decompose()

    text = soup.get_text(separator=" ")
    return _WHITESPACE.sub(" ", text).strip()


class StripHtmlStep(PipelineStep):
    """Pipeline step: strip HTML from the email body."""

    name = "strip_html"
    dependencies = ()
    retryable = True
    priority = 1
    timeout = 10.0
    description = "Convert HTML email content to plain text"

    def __init__(self, outputs: OutputRepository, pipeline_version: str = "v1"):
        self._outputs = outputs
        self._pipeline_version = pipeline_version

    async def run(self, email: Email) -> None:
        start = time.monotonic()

        html, content_source = email.html_content()
        if content_source != "body.content":
            logger.warning(f"[strip_html] falling back to {content_source} for {email.id}")

        original_length = len(html)
        plain_text = html_to_text(html)
        stripped_length = len(plain_text)

        await self._outputs.upsert_email_output(
            EmailOutput(
                email_id=email.id,
                output_type=PLAIN_TEXT_OUTPUT,
                content={"text": plain_text},
                metadata={
                    "original_length": original_length,
                    "stripped_length": stripped_length,
                    "compression_ratio": (
                        stripped_length / original_length if original_length > 0 else 0
                    ),
                    "content_source": content_source,
                    "processing_time_ms": int((time.monotonic() - start) * 1000),
                },
                pipeline_version=self._pipeline_version,
            )
        )

        logger.info(
            f"HTML stripped for email {email.id}: {original_length} -> {stripped_length} chars"
        )
