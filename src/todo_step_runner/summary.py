"""Build the execution-summary prompt once a TODO or phase runs dry."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from .artifacts import load_template
from .constants import EXECUTION_SUMMARY_PROMPT, SUMMARY_STEP_EXCERPT_CHARS
from .identifiers import in_scope, parse_todo_id
from .io_utils import _atomic_write_text, _read_text
from .layout import TodoLayout
from .repository import Area, StepRepository
from .scanner import list_done_steps, list_pending_steps
from .utils import _truncate

_PLACEHOLDER_RE = re.compile(r"@(?:TodoFile|CompletedSteps|PendingSteps|ActionRequired|Outcome|OutputPath)\b")


@dataclass
class SummaryPrompt:
    prompt_file: Path
    output_path: str
    todo_filename: str


def choose_todo(layout: TodoLayout, repo: StepRepository, scope: Optional[str]) -> Optional[str]:
    """Most recently completed TODO in scope, by modification time."""
    candidates = []
    for name in repo.list(Area.DONE_TODOS):
        todo_id = parse_todo_id(name)
        if todo_id is not None and in_scope(todo_id, scope):
            candidates.append(name)
    if not candidates:
        return None

    def _mtime(name: str) -> float:
        try:
            return (layout.completed_dir / name).stat().st_mtime
        except OSError:
            return 0.0

    return max(sorted(candidates), key=_mtime)


def _completed_steps_block(repo: StepRepository, scope: str) -> str:
    blocks = []
    for step in list_done_steps(repo, scope):
        content = repo.read(Area.DONE_STEPS, step.filename) or ""
        blocks.append(f"### {step.filename}\n{_truncate(content, SUMMARY_STEP_EXCERPT_CHARS)}")
    return "\n\n".join(blocks)


def write_summary_prompt(
    layout: TodoLayout,
    repo: StepRepository,
    prompts_dir: Path,
    scope: Optional[str] = None,
) -> Optional[SummaryPrompt]:
    """Write `RUNNER_SUMMARY_PROMPT.txt` for the finished TODO in ``scope``.

    Args:
        layout: Project layout.
        repo: Step repository.
        prompts_dir: Directory holding the summary template.
        scope: Phase or TODO id the run was filtered to, or None.

    Returns:
        The written prompt and where the agent should save the summary, or
        None when no completed TODO is in scope.
    """
    todo_filename = choose_todo(layout, repo, scope)
    if todo_filename is None:
        logger.info("No TODO to summarize (none completed for this scope)")
        return None
    todo_id = parse_todo_id(todo_filename) or ""
    steps_scope = scope or todo_id

    pending = [step.filename for step in list_pending_steps(repo, steps_scope).steps]
    markers = repo.list(Area.ACTION_REQUIRED)
    outcome = "SUCCESS" if not pending and not markers else "PARTIAL"

    summary_name = Path(todo_filename).stem + ".summary.md"
    output_path = layout.relative(layout.summaries_dir / summary_name)

    template, _ = load_template(prompts_dir, EXECUTION_SUMMARY_PROMPT)
    replacements = {
        "@TodoFile": _read_text(layout.completed_dir / todo_filename) or "",
        "@CompletedSteps": _completed_steps_block(repo, steps_scope) or "(none listed)",
        "@PendingSteps": "\n".join(f"- {name}" for name in pending) or "None, phase completed.",
        "@ActionRequired": "\n".join(f"- {name}" for name in markers) or "None.",
        "@Outcome": outcome,
        "@OutputPath": output_path,
    }
    template = _PLACEHOLDER_RE.sub(lambda match: replacements[match.group(0)], template)

    layout.summaries_dir.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(layout.summary_prompt_file, template)
    logger.info("Summary prompt written: {} (summary goes to {})", layout.summary_prompt_file, output_path)
    return SummaryPrompt(
        prompt_file=layout.summary_prompt_file,
        output_path=output_path,
        todo_filename=todo_filename,
    )
