"""Domain value objects - pure Python immutable types."""

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True)
class RunID:
    """Unique identifier of one pipeline run, used for log correlation."""

    value: UUID

    @classmethod
    def generate(cls) -> "RunID":
        """Generate a new RunID."""
        return cls(value=uuid4())

    @property
    def short(self) -> str:
        """First eight hex characters, for log lines."""
        return self.value.hex[:8]

    def __str__(self) -> str:
        """Return string representation."""
        return str(self.value)
