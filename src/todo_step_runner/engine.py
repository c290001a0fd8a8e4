"""Run one resolution call: blocker gate, scan, readiness, hand-off.

`resolve` is the single entry point the CLI and the driving loop use. It
never raises for recoverable conditions; configuration problems come back
as a FATAL `Resolution` carrying the error message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .artifacts import PromptOptions, default_prompts_dir, load_template, write_artifact
from .blockers import check_blockers
from .config import get_prompts_dir, get_strict_depends_on, get_todo_dir, load_config_or_defaults
from .errors import ConfigurationError
from .layout import TodoLayout
from .models import BlockReason, Resolution, ResolutionStatus
from .profiles import ExecutionProfile
from .promoter import CompletionPromoter
from .repository import Area, FileStepRepository, StepRepository
from .resolver import DependencyPolicy, missing_dependency_is_satisfied, resolve_next
from .scanner import list_done_step_ids, list_pending_steps


@dataclass
class EngineContext:
    """Everything a resolution call needs for one project root."""

    layout: TodoLayout
    repo: StepRepository
    profile: ExecutionProfile = field(default_factory=ExecutionProfile)
    prompts_dir: Path = field(default_factory=default_prompts_dir)
    strict_depends_on: bool = False
    policy: DependencyPolicy = missing_dependency_is_satisfied
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def promoter(self) -> CompletionPromoter:
        return CompletionPromoter(self.repo)

    @classmethod
    def for_project(
        cls,
        project_dir: Path,
        *,
        prompts_dir: Optional[Path] = None,
        todo_dir: Optional[str] = None,
    ) -> "EngineContext":
        """Build a filesystem-backed context from the project config."""
        project_dir = Path(project_dir).resolve()
        config = load_config_or_defaults(project_dir)
        layout = TodoLayout.for_project(project_dir, todo_dir or get_todo_dir(config))
        return cls(
            layout=layout,
            repo=FileStepRepository(layout),
            profile=ExecutionProfile.from_config(config),
            prompts_dir=prompts_dir or get_prompts_dir(config, project_dir) or default_prompts_dir(),
            strict_depends_on=get_strict_depends_on(config),
            config=config,
        )


def _blocked_by_markers(ctx: EngineContext, blocking_files: list[str]) -> Resolution:
    refs = [ctx.repo.ref(Area.ACTION_REQUIRED, name) for name in blocking_files]
    return Resolution(
        status=ResolutionStatus.BLOCKED,
        block_reason=BlockReason.MARKER,
        blocking_files=refs,
        message="Action required before next step. Resolve and remove: " + ", ".join(refs),
    )


def resolve(
    ctx: EngineContext,
    phase: Optional[str] = None,
    *,
    options: Optional[PromptOptions] = None,
    dry_run: bool = False,
) -> Resolution:
    """Decide the next step and, unless ``dry_run``, write its artifacts.

    Args:
        ctx: Project context.
        phase: Optional phase or TODO id limiting which steps are considered.
        options: Prompt fragment selection.
        dry_run: Report the outcome without consuming markers or writing files.

    Returns:
        A `Resolution`. BLOCKED lists every marker or every unready id,
        EMPTY distinguishes a phase filter that matched nothing and, outside
        dry runs, carries the TODO/phase promotions it triggered. FATAL
        carries the configuration error.
    """
    try:
        gate = check_blockers(ctx.repo, ctx.promoter, consume=not dry_run)
        if not gate.clear:
            return _blocked_by_markers(ctx, gate.blocking_files)

        scan = list_pending_steps(ctx.repo, phase, strict=ctx.strict_depends_on)
        if scan.filter_excluded_all:
            resolution = Resolution(
                status=ResolutionStatus.EMPTY,
                message=f"No pending steps matching phase '{phase}' ({scan.total_pending} pending elsewhere).",
            )
        else:
            resolution = resolve_next(
                scan.steps,
                list_done_step_ids(ctx.repo),
                exists=lambda step: ctx.repo.exists(Area.PENDING_STEPS, step.filename),
                policy=ctx.policy,
                pending_ids=scan.all_pending_ids,
            )
        if resolution.status == ResolutionStatus.EMPTY and not dry_run:
            resolution.promotion = ctx.promoter.on_phase_exhausted(phase)
        if resolution.status != ResolutionStatus.NEXT_WRITTEN or resolution.step is None:
            return resolution

        step = resolution.step
        resolution.step_path = ctx.repo.ref(Area.PENDING_STEPS, step.filename)
        content = ctx.repo.read(Area.PENDING_STEPS, step.filename)
        resolution.gui_type = ctx.profile.classify(step.filename, content)
        resolution.recommended_model = ctx.profile.recommended_model(resolution.gui_type)
        resolution.message = f"Next step: {step.id} ({step.filename})"
        if dry_run:
            return resolution

        template, template_path = load_template(ctx.prompts_dir)
        write_artifact(
            ctx.layout,
            resolution.step_path,
            template,
            options,
            prompts_dir=ctx.prompts_dir,
            template_path=template_path,
            recommended_model=resolution.recommended_model,
            gui_type=resolution.gui_type,
        )
        logger.info(resolution.message)
        return resolution
    except ConfigurationError as exc:
        logger.error("{}", exc)
        return Resolution(status=ResolutionStatus.FATAL, message=str(exc))
