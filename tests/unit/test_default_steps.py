"""
Unit tests for the standard pipeline wiring.
"""
from unittest.mock import AsyncMock

from core.application.steps import build_default_steps, build_registry
from orchestration.planner import ExecutionPlanner


def test_default_steps_order():
    steps = build_default_steps(outputs=AsyncMock(), summarizer=AsyncMock())

    assert [s.name for s in steps] == ["strip_html", "conversation", "summary"]


def test_registry_plans_a_chain():
    registry = build_registry(outputs=AsyncMock(), summarizer=AsyncMock())

    plan = ExecutionPlanner(registry).plan(registry.names())

    assert plan.levels == (("strip_html",), ("conversation",), ("summary",))
    assert [s.name for s in registry.sorted_steps()] == ["strip_html", "conversation", "summary"]


def test_summary_alone_pulls_in_its_chain():
    registry = build_registry(outputs=AsyncMock(), summarizer=AsyncMock())

    plan = ExecutionPlanner(registry).plan(["summary"])

    assert plan.steps == ("strip_html", "conversation", "summary")
