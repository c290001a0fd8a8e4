"""Describe the on-disk TODO layout as a value passed to repositories.

    <todo_dir>/
      active/              TODO documents in progress
        steps/             pending step files
        phases/            phase documents in progress
      completed/           finished TODO documents
        steps/             done step files
        phases/            finished phase documents
        summaries/         execution summaries written by the agent
      action_required/     blocker markers (resolved_* once handled)
      runner/              NEXT.md, RUNNER_PROMPT.txt and run logs
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import (
    ACTION_REQUIRED_DIR,
    ACTIVE_DIR,
    COMPLETED_DIR,
    DEFAULT_TODO_DIR,
    LAYOUT_SCHEMA_VERSION,
    NEXT_FILE,
    PHASES_DIR,
    PROMPT_FILE,
    RUNNER_DIR,
    STEPS_DIR,
    SUMMARIES_DIR,
    SUMMARY_PROMPT_FILE,
)


@dataclass(frozen=True)
class TodoLayout:
    """Directory schema for one project root."""

    project_dir: Path
    todo_dir: Path
    schema_version: int = LAYOUT_SCHEMA_VERSION

    @classmethod
    def for_project(cls, project_dir: Path, todo_dir: Optional[str] = None) -> "TodoLayout":
        project_dir = Path(project_dir).resolve()
        return cls(project_dir=project_dir, todo_dir=project_dir / (todo_dir or DEFAULT_TODO_DIR))

    @property
    def active_dir(self) -> Path:
        return self.todo_dir / ACTIVE_DIR

    @property
    def active_steps_dir(self) -> Path:
        return self.active_dir / STEPS_DIR

    @property
    def active_phases_dir(self) -> Path:
        return self.active_dir / PHASES_DIR

    @property
    def completed_dir(self) -> Path:
        return self.todo_dir / COMPLETED_DIR

    @property
    def completed_steps_dir(self) -> Path:
        return self.completed_dir / STEPS_DIR

    @property
    def completed_phases_dir(self) -> Path:
        return self.completed_dir / PHASES_DIR

    @property
    def summaries_dir(self) -> Path:
        return self.completed_dir / SUMMARIES_DIR

    @property
    def action_required_dir(self) -> Path:
        return self.todo_dir / ACTION_REQUIRED_DIR

    @property
    def runner_dir(self) -> Path:
        return self.todo_dir / RUNNER_DIR

    @property
    def next_file(self) -> Path:
        return self.runner_dir / NEXT_FILE

    @property
    def prompt_file(self) -> Path:
        return self.runner_dir / PROMPT_FILE

    @property
    def summary_prompt_file(self) -> Path:
        return self.runner_dir / SUMMARY_PROMPT_FILE

    def relative(self, path: Path) -> str:
        """Render a path relative to the project root with forward slashes."""
        try:
            return path.resolve().relative_to(self.project_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def ensure(self) -> None:
        """Create every directory of the layout; safe to call repeatedly."""
        for path in (
            self.active_steps_dir,
            self.active_phases_dir,
            self.completed_steps_dir,
            self.completed_phases_dir,
            self.summaries_dir,
            self.action_required_dir,
            self.runner_dir,
        ):
            path.mkdir(parents=True, exist_ok=True)
