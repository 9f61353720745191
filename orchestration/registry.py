"""Step registry - name -> StepDefinition table with cycle validation."""

from collections.abc import Iterator

from mailpipe_sdk.logging import get_logger

from .exceptions import CyclicDependency, InvalidStepDefinition, UnknownStep
from .workflow import PipelineStep, StepDefinition


class StepRegistry:
    """In-memory table of pipeline steps, built once at process start.

    The dependency graph of registered steps is kept acyclic: a
    registration that would close a cycle is rejected and leaves the
    registry untouched. Dependencies may name steps that are not
    registered (yet); they are resolved at planning time.
    """

    def __init__(self) -> None:
        self._steps: dict[str, StepDefinition] = {}
        self._logger = get_logger("orchestration.registry")

    def register(self, step: StepDefinition | PipelineStep) -> StepDefinition:
        """Validate and register a step.

        Args:
            step: StepDefinition, or a PipelineStep implementation

        Returns:
            The registered StepDefinition

        Raises:
            InvalidStepDefinition: name, dependencies or action malformed
            CyclicDependency: the step would close a dependency cycle
        """
        definition = step.definition() if isinstance(step, PipelineStep) else step
        self._validate(definition)
        self._validate_no_cycles(definition)

        if definition.name in self._steps:
            self._logger.warning("Replacing registered step: %s", definition.name)
        self._steps[definition.name] = definition
        self._logger.debug("Registered pipeline step: %s", definition.name)
        return definition

    def get(self, name: str) -> StepDefinition:
        """Return the step definition registered under name.

        Raises:
            UnknownStep: nothing registered under name
        """
        try:
            return self._steps[name]
        except KeyError:
            raise UnknownStep(name) from None

    def list_steps(self) -> list[StepDefinition]:
        """All registered steps, in registration order."""
        return list(self._steps.values())

    def sorted_steps(self) -> list[StepDefinition]:
        """All registered steps ordered for display (priority, then name)."""
        return sorted(self._steps.values(), key=lambda s: (s.priority, s.name))

    def names(self) -> list[str]:
        return list(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self.list_steps())

    @staticmethod
    def _validate(step: StepDefinition) -> None:
        if not isinstance(step.name, str) or not step.name:
            raise InvalidStepDefinition("Step name is required and must be a string")
        if not isinstance(step.dependencies, list):
            raise InvalidStepDefinition(f"Step {step.name}: dependencies must be a list")
        if not all(isinstance(dep, str) and dep for dep in step.dependencies):
            raise InvalidStepDefinition(f"Step {step.name}: dependency names must be strings")
        if not callable(step.action):
            raise InvalidStepDefinition(f"Step {step.name}: action must be callable")
        if step.timeout is not None and step.timeout <= 0:
            raise InvalidStepDefinition(f"Step {step.name}: timeout must be positive")
        if step.retry_policy.max_attempts < 1:
            raise InvalidStepDefinition(f"Step {step.name}: max_attempts must be at least 1")

    def _validate_no_cycles(self, step: StepDefinition) -> None:
        """Depth-first walk of the candidate graph starting at the new step."""
        graph = {name: defn.dependencies for name, defn in self._steps.items()}
        graph[step.name] = step.dependencies

        visiting: set[str] = set()
        visited: set[str] = set()

        def visit(current: str, path: list[str]) -> None:
            if current in visiting:
                raise CyclicDependency([*path, current])
            if current in visited:
                return
            visiting.add(current)
            for dep in graph.get(current, ()):
                visit(dep, [*path, current])
            visiting.discard(current)
            visited.add(current)

        visit(step.name, [])
