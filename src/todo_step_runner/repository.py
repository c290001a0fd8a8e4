from __future__ import annotations

import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger

from .constants import MARKDOWN_SUFFIX
from .io_utils import _read_text
from .layout import TodoLayout


class Area(str, Enum):
    """Logical locations the engine reads from and moves between."""

    PENDING_STEPS = "pending_steps"
    DONE_STEPS = "done_steps"
    ACTIVE_TODOS = "active_todos"
    DONE_TODOS = "done_todos"
    ACTIVE_PHASES = "active_phases"
    DONE_PHASES = "done_phases"
    ACTION_REQUIRED = "action_required"


class StepRepository(ABC):
    """Storage seam for the step/TODO/phase state machine.

    Listings return Markdown filenames only, sorted ascending. Moves return
    False when the source vanished, which callers treat as handled elsewhere.
    """

    @abstractmethod
    def list(self, area: Area) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def read(self, area: Area, filename: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def exists(self, area: Area, filename: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def move(self, source: Area, target: Area, filename: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete(self, area: Area, filename: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def ref(self, area: Area, filename: str) -> str:
        """Project-relative reference for a file, as handed to the executor."""
        raise NotImplementedError

    def move_step_to_done(self, filename: str) -> bool:
        return self.move(Area.PENDING_STEPS, Area.DONE_STEPS, filename)

    def move_todo_to_done(self, filename: str) -> bool:
        return self.move(Area.ACTIVE_TODOS, Area.DONE_TODOS, filename)

    def move_phase_to_done(self, filename: str) -> bool:
        return self.move(Area.ACTIVE_PHASES, Area.DONE_PHASES, filename)


class FileStepRepository(StepRepository):
    def __init__(self, layout: TodoLayout) -> None:
        self.layout = layout
        self._dirs = {
            Area.PENDING_STEPS: layout.active_steps_dir,
            Area.DONE_STEPS: layout.completed_steps_dir,
            Area.ACTIVE_TODOS: layout.active_dir,
            Area.DONE_TODOS: layout.completed_dir,
            Area.ACTIVE_PHASES: layout.active_phases_dir,
            Area.DONE_PHASES: layout.completed_phases_dir,
            Area.ACTION_REQUIRED: layout.action_required_dir,
        }

    def path(self, area: Area, filename: str) -> Path:
        return self._dirs[area] / filename

    def list(self, area: Area) -> list[str]:
        directory = self._dirs[area]
        if not directory.is_dir():
            return []
        return sorted(
            entry.name
            for entry in directory.iterdir()
            if entry.is_file() and entry.name.endswith(MARKDOWN_SUFFIX)
        )

    def read(self, area: Area, filename: str) -> Optional[str]:
        return _read_text(self.path(area, filename))

    def exists(self, area: Area, filename: str) -> bool:
        return self.path(area, filename).is_file()

    def move(self, source: Area, target: Area, filename: str) -> bool:
        src = self.path(source, filename)
        dest = self.path(target, filename)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.replace(src, dest)
        except FileNotFoundError:
            logger.warning(
                "Move skipped, {} no longer in {} (already handled elsewhere)",
                filename,
                source.value,
            )
            return False
        return True

    def delete(self, area: Area, filename: str) -> bool:
        try:
            self.path(area, filename).unlink()
        except FileNotFoundError:
            return False
        return True

    def ref(self, area: Area, filename: str) -> str:
        return self.layout.relative(self.path(area, filename))


class InMemoryStepRepository(StepRepository):
    """Dictionary-backed repository for exercising the state machine without I/O."""

    _REFS = {
        Area.PENDING_STEPS: "docs/TODO/active/steps",
        Area.DONE_STEPS: "docs/TODO/completed/steps",
        Area.ACTIVE_TODOS: "docs/TODO/active",
        Area.DONE_TODOS: "docs/TODO/completed",
        Area.ACTIVE_PHASES: "docs/TODO/active/phases",
        Area.DONE_PHASES: "docs/TODO/completed/phases",
        Area.ACTION_REQUIRED: "docs/TODO/action_required",
    }

    def __init__(self) -> None:
        self.files: dict[Area, dict[str, str]] = {area: {} for area in Area}

    def add(self, area: Area, filename: str, content: str = "") -> None:
        self.files[area][filename] = content

    def list(self, area: Area) -> list[str]:
        return sorted(name for name in self.files[area] if name.endswith(MARKDOWN_SUFFIX))

    def read(self, area: Area, filename: str) -> Optional[str]:
        return self.files[area].get(filename)

    def exists(self, area: Area, filename: str) -> bool:
        return filename in self.files[area]

    def move(self, source: Area, target: Area, filename: str) -> bool:
        if filename not in self.files[source]:
            logger.warning(
                "Move skipped, {} no longer in {} (already handled elsewhere)",
                filename,
                source.value,
            )
            return False
        self.files[target][filename] = self.files[source].pop(filename)
        return True

    def delete(self, area: Area, filename: str) -> bool:
        return self.files[area].pop(filename, None) is not None

    def ref(self, area: Area, filename: str) -> str:
        return f"{self._REFS[area]}/{filename}"
