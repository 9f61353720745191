"""Concrete pipeline steps."""
from typing import List

from core.application.interfaces import ConversationSummarizer
from core.domain.repositories import OutputRepository
from orchestration.registry import StepRegistry
from orchestration.workflow import PipelineStep

from .conversation import ConversationStep
from .strip_html import PLAIN_TEXT_OUTPUT, StripHtmlStep, html_to_text
from .summary import SummaryStep


def build_default_steps(
    outputs: OutputRepository,
    summarizer: ConversationSummarizer,
    pipeline_version: str = "v1",
) -> List[PipelineStep]:
    """
    Create the standard email pipeline: strip_html -> conversation -> summary.

    Args:
        outputs: Repository the steps write their outputs to
        summarizer: Summarizer used by the summary step
        pipeline_version: Version tag of stored outputs
    """
    return [
        StripHtmlStep(outputs, pipeline_version=pipeline_version),
        ConversationStep(outputs, pipeline_version=pipeline_version),
        SummaryStep(outputs, summarizer),
    ]


def build_registry(
    outputs: OutputRepository,
    summarizer: ConversationSummarizer,
    pipeline_version: str = "v1",
) -> StepRegistry:
    """Create a StepRegistry holding the standard pipeline steps."""
    registry = StepRegistry()
    for step in build_default_steps(outputs, summarizer, pipeline_version=pipeline_version):
        registry.register(step)
    return registry


__all__ = [
    "ConversationStep",
    "PLAIN_TEXT_OUTPUT",
    "StripHtmlStep",
    "SummaryStep",
    "build_default_steps",
    "build_registry",
    "html_to_text",
]
