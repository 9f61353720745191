"""Execution planner - dependency expansion, topological sort, level grouping."""

from collections.abc import Sequence

from .exceptions import CyclicDependency
from .models import ExecutionPlan
from .registry import StepRegistry


class ExecutionPlanner:
    """Turns a requested set of step names into an ExecutionPlan."""

    def __init__(self, registry: StepRegistry) -> None:
        self._registry = registry

    def plan(
        self, requested_steps: Sequence[str], include_dependencies: bool = True
    ) -> ExecutionPlan:
        """Build the execution plan for the requested steps.

        Args:
            requested_steps: Step names the caller asked for
            include_dependencies: Add transitive dependencies. When False
                only the requested steps run and their dependencies are
                never looked up.

        Returns:
            ExecutionPlan whose levels concatenate to a topological order

        Raises:
            UnknownStep: a requested step (or, when expanding, a
                dependency) is not registered
        """
        for name in requested_steps:
            self._registry.get(name)

        if not requested_steps:
            return ExecutionPlan()

        if include_dependencies:
            resolved = self._expand(requested_steps)
        else:
            resolved = list(dict.fromkeys(requested_steps))

        ordered = self._topological_sort(resolved)
        levels = self._group_levels(ordered)
        return ExecutionPlan(steps=tuple(ordered), levels=levels)

    def _expand(self, requested_steps: Sequence[str]) -> list[str]:
        """Depth-first expansion, dependencies before dependents."""
        resolved: dict[str, None] = {}

        def add(name: str) -> None:
            if name in resolved:
                return
            step = self._registry.get(name)
            for dep in step.dependencies:
                add(dep)
            resolved[name] = None

        for name in requested_steps:
            add(name)
        return list(resolved)

    def _topological_sort(self, step_names: list[str]) -> list[str]:
        """Order steps so in-set dependencies come first.

        Edges leaving the resolved set are ignored. Independent steps keep
        their first-seen order.
        """
        in_set = set(step_names)
        visiting: set[str] = set()
        visited: set[str] = set()
        result: list[str] = []

        def visit(name: str, path: list[str]) -> None:
            if name in visiting:
                raise CyclicDependency([*path, name])
            if name in visited:
                return
            visiting.add(name)
            for dep in self._registry.get(name).dependencies:
                if dep in in_set:
                    visit(dep, [*path, name])
            visiting.discard(name)
            visited.add(name)
            result.append(name)

        for name in step_names:
            visit(name, [])
        return result

    def _group_levels(self, ordered: list[str]) -> tuple[tuple[str, ...], ...]:
        """level(step) = 1 + max(level of in-set deps), or 0 without any."""
        levels: dict[str, int] = {}
        for name in ordered:
            dep_levels = [
                levels[dep] for dep in self._registry.get(name).dependencies if dep in levels
            ]
            levels[name] = max(dep_levels) + 1 if dep_levels else 0

        groups: list[list[str]] = [[] for _ in range(max(levels.values()) + 1)]
        for name in ordered:
            groups[levels[name]].append(name)
        return tuple(tuple(group) for group in groups)
