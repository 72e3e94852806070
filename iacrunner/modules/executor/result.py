"""Result types produced by the executor."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from iacrunner.modules.api.models import Operation


@dataclass
class ResourceDelta:
    """Resources to add, change and destroy, as reported by the tool."""

    add: int = 0
    change: int = 0
    destroy: int = 0

    @property
    def total(self) -> int:
        return self.add + self.change + self.destroy


@dataclass(frozen=True)
class Run:
    """One execution request; immutable for the run's duration."""

    operation: Operation
    working_dir: str
    tool_path: str
    run_id: Optional[str] = None


@dataclass
class ExecutionResult:
    """Normalized outcome of one operation."""

    operation: Operation
    exit_code: int = 0
    delta: ResourceDelta = field(default_factory=ResourceDelta)
    plan_json: Optional[str] = None
    plan: Optional[Dict[str, Any]] = None
    plan_text: Optional[str] = None
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        """Plan detected changes (detailed exit code 2)."""
        return self.operation == Operation.PLAN and self.exit_code == 2

    @property
    def resources_to_add(self) -> int:
        return self.delta.add

    @property
    def resources_to_change(self) -> int:
        return self.delta.change

    @property
    def resources_to_destroy(self) -> int:
        return self.delta.destroy
