"""Define step, TODO and marker records plus the typed results of each engine call."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional

from .identifiers import todo_id_of


class StepLocation(str, Enum):
    """Where a step file currently lives."""

    PENDING = "pending"
    DONE = "done"


class ResolutionStatus(str, Enum):
    """Four-way outcome of a resolution call, preserved exactly for callers."""

    NEXT_WRITTEN = "NEXT_WRITTEN"
    BLOCKED = "BLOCKED"
    EMPTY = "EMPTY"
    FATAL = "FATAL"


class ExitCode(IntEnum):
    """Process exit codes mirroring `ResolutionStatus`."""

    NEXT_WRITTEN = 0
    BLOCKED = 1
    EMPTY = 2
    FATAL = 3

    @classmethod
    def for_status(cls, status: ResolutionStatus) -> "ExitCode":
        return cls[status.value]


class BlockReason(str, Enum):
    MARKER = "marker"
    DEPENDENCY = "dependency"


class GuiStepType(str, Enum):
    COMPOUND = "compound"
    SIMPLE = "simple"


@dataclass(frozen=True)
class Step:
    """A step file with its parsed id and declared dependencies."""

    id: str
    filename: str
    depends_on: tuple[str, ...] = ()
    location: StepLocation = StepLocation.PENDING

    @property
    def todo_id(self) -> str:
        return todo_id_of(self.id)


@dataclass(frozen=True)
class TodoDoc:
    id: str
    filename: str
    done: bool = False
    cancelled: bool = False


@dataclass(frozen=True)
class PhaseDoc:
    id: str
    filename: str


@dataclass(frozen=True)
class BlockerMarker:
    """A file in the action-required area, optionally naming a step."""

    filename: str
    step_id: Optional[str] = None
    resolved: bool = False


@dataclass
class ScanResult:
    steps: list[Step] = field(default_factory=list)
    phase_filter: Optional[str] = None
    total_pending: int = 0
    all_pending_ids: set[str] = field(default_factory=set)

    @property
    def filter_excluded_all(self) -> bool:
        """True when a filter was given and removed every pending step."""
        return bool(self.phase_filter) and not self.steps and self.total_pending > 0


@dataclass
class GateResult:
    blocking_files: list[str] = field(default_factory=list)
    consumed_markers: list[str] = field(default_factory=list)
    promoted_steps: list[str] = field(default_factory=list)

    @property
    def clear(self) -> bool:
        return not self.blocking_files


@dataclass
class PromotionResult:
    moved_steps: list[str] = field(default_factory=list)
    moved_todos: list[str] = field(default_factory=list)
    moved_phases: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def merge(self, other: "PromotionResult") -> "PromotionResult":
        self.moved_steps.extend(other.moved_steps)
        self.moved_todos.extend(other.moved_todos)
        self.moved_phases.extend(other.moved_phases)
        self.warnings.extend(other.warnings)
        return self

    @property
    def changed(self) -> bool:
        return bool(self.moved_steps or self.moved_todos or self.moved_phases)


@dataclass
class Resolution:
    """Outcome of one resolution call."""

    status: ResolutionStatus
    step: Optional[Step] = None
    block_reason: Optional[BlockReason] = None
    blocking_files: list[str] = field(default_factory=list)
    unready_ids: list[str] = field(default_factory=list)
    message: str = ""
    step_path: Optional[str] = None
    recommended_model: Optional[str] = None
    gui_type: Optional[GuiStepType] = None
    promotion: Optional[PromotionResult] = None

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.for_status(self.status)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["exit_code"] = int(self.exit_code)
        data["block_reason"] = self.block_reason.value if self.block_reason else None
        data["gui_type"] = self.gui_type.value if self.gui_type else None
        if self.step is not None:
            data["step"] = {
                "id": self.step.id,
                "filename": self.step.filename,
                "depends_on": list(self.step.depends_on),
            }
        return data
