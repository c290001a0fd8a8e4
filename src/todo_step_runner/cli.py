"""Command-line entry point for todo-step-runner.

Subcommands:
    next            resolve the next step and write NEXT.md / RUNNER_PROMPT.txt
    accept          move the step named in NEXT.md to completed
    step-completed  promote the TODO of a completed step when nothing is left
    phase-done      promote finished TODOs/phases and write the summary prompt
    run             loop: resolve, run the agent, accept (default)
    status          show pending, completed and blocking files
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .artifacts import PromptOptions, read_pointer
from .engine import EngineContext, resolve
from .errors import RunnerError
from .loop import RunOptions, run_steps
from .models import BlockReason, ExitCode, GuiStepType, PromotionResult, ResolutionStatus
from .repository import Area
from .scanner import list_done_step_ids, list_pending_steps
from .summary import write_summary_prompt

_SUBCOMMANDS = ("next", "accept", "step-completed", "phase-done", "run", "status")


def _configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def _new_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"TODO Step Runner - {description}")
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser


def _add_prompts_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--prompts-dir",
        type=Path,
        default=None,
        help="Directory with prompt templates and fragments (default: bundled prompts)",
    )


def _build_next_parser() -> argparse.ArgumentParser:
    parser = _new_parser("resolve the next step and write its prompt")
    parser.add_argument(
        "--phase",
        default=None,
        help="Only consider steps of this phase or TODO id (e.g. P1 or P1_03)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Use the no-output fragment in the execute prompt",
    )
    parser.add_argument(
        "--skip-manual",
        action="store_true",
        help="Report manual tests in the summary instead of creating action_required files",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report the outcome; do not write files or consume markers",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )
    _add_prompts_dir(parser)
    return parser


def _build_accept_parser() -> argparse.ArgumentParser:
    return _new_parser("move the current step (from NEXT.md) to completed")


def _build_step_completed_parser() -> argparse.ArgumentParser:
    parser = _new_parser("promote a TODO once none of its steps are pending")
    parser.add_argument("step", help="Completed step filename or id (e.g. P1_01.2_login.md)")
    return parser


def _build_phase_done_parser() -> argparse.ArgumentParser:
    parser = _new_parser("promote finished TODOs and phases, write the summary prompt")
    parser.add_argument("--phase", default=None, help="Phase or TODO id the run was limited to")
    parser.add_argument(
        "--no-summary",
        action="store_true",
        help="Only promote; do not write RUNNER_SUMMARY_PROMPT.txt",
    )
    _add_prompts_dir(parser)
    return parser


def _build_run_parser() -> argparse.ArgumentParser:
    parser = _new_parser("run pending steps with the agent until blocked or done")
    parser.add_argument("--once", action="store_true", help="Run at most one step, then exit")
    parser.add_argument("--steps", type=int, default=None, help="Run at most N steps, then exit")
    parser.add_argument("--phase", default=None, help="Only run steps of this phase or TODO id")
    parser.add_argument(
        "--model",
        default=None,
        help="Agent model (default: config model or auto; GUI steps then use the recommended model)",
    )
    parser.add_argument(
        "--no-summary",
        action="store_true",
        help="When the phase finishes, do not generate an execution summary",
    )
    parser.add_argument(
        "--skip-manual",
        action="store_true",
        help="Do not create action_required files for manual testing",
    )
    parser.add_argument("--quiet", action="store_true", help="Hide agent output")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log agent output and run parameters to runner/agent_output_<stamp>.log",
    )
    parser.add_argument(
        "--agent-command",
        default=None,
        help="Agent command template (placeholders: {prompt}, {prompt_file}, {model}, {project_dir})",
    )
    _add_prompts_dir(parser)
    return parser


def _build_status_parser() -> argparse.ArgumentParser:
    parser = _new_parser("show pending, completed and blocking files")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON",
    )
    return parser


def _write_promotions(result: PromotionResult) -> None:
    for name in result.moved_steps:
        sys.stdout.write(f"Moved to completed: {name}\n")
    for name in result.moved_todos:
        sys.stdout.write(f"Moved TODO to completed: {name}\n")
    for name in result.moved_phases:
        sys.stdout.write(f"Moved phase to completed: {name}\n")
    for warning in result.warnings:
        sys.stdout.write(f"Warning: {warning}\n")


def _next_command(
    project_dir: Path,
    phase: Optional[str],
    *,
    quiet: bool,
    skip_manual: bool,
    dry_run: bool,
    prompts_dir: Optional[Path],
    as_json: bool,
) -> int:
    ctx = EngineContext.for_project(project_dir, prompts_dir=prompts_dir)
    resolution = resolve(
        ctx,
        phase,
        options=PromptOptions(quiet=quiet, skip_manual=skip_manual),
        dry_run=dry_run,
    )
    if as_json:
        sys.stdout.write(json.dumps(resolution.to_dict(), indent=2, sort_keys=True) + "\n")
        return int(resolution.exit_code)

    if resolution.status == ResolutionStatus.BLOCKED and resolution.block_reason == BlockReason.MARKER:
        sys.stdout.write("Action required before next step. Resolve and remove:\n\n")
        for ref in resolution.blocking_files:
            sys.stdout.write(f"  {ref}\n")
        sys.stdout.write("\nThen run this command again.\n")
    elif resolution.status == ResolutionStatus.NEXT_WRITTEN and resolution.step is not None:
        label = ""
        if resolution.gui_type == GuiStepType.COMPOUND:
            label = " [GUI-compound]"
        elif resolution.gui_type == GuiStepType.SIMPLE:
            label = " [GUI]"
        sys.stdout.write(f"Next step: {resolution.step.id} ({resolution.step.filename}){label}\n")
        if not dry_run:
            sys.stdout.write(f"Written: {ctx.layout.next_file}, {ctx.layout.prompt_file}\n")
        if resolution.recommended_model:
            sys.stdout.write(f"Recommended model: {resolution.recommended_model}\n")
    else:
        sys.stdout.write(resolution.message + "\n")
        if resolution.promotion is not None:
            _write_promotions(resolution.promotion)
    return int(resolution.exit_code)


def _accept_command(project_dir: Path) -> int:
    ctx = EngineContext.for_project(project_dir)
    step_path = read_pointer(ctx.layout)
    if step_path is None:
        sys.stdout.write(
            f"Could not find current step path in {ctx.layout.next_file} or {ctx.layout.prompt_file}\n"
        )
        return 1
    filename = Path(step_path).name
    if not (
        ctx.repo.exists(Area.PENDING_STEPS, filename) or ctx.repo.exists(Area.DONE_STEPS, filename)
    ):
        sys.stdout.write(f"Step file not found: {step_path}\n")
        return 1
    result = ctx.promoter.accept_step(filename)
    if not result.moved_steps:
        sys.stdout.write(f"Step already in completed: {filename}\n")
    _write_promotions(result)
    return 0


def _step_completed_command(project_dir: Path, step: str) -> int:
    ctx = EngineContext.for_project(project_dir)
    _write_promotions(ctx.promoter.on_step_completed(Path(step).name))
    return 0


def _phase_done_command(
    project_dir: Path,
    phase: Optional[str],
    *,
    no_summary: bool,
    prompts_dir: Optional[Path],
) -> int:
    ctx = EngineContext.for_project(project_dir, prompts_dir=prompts_dir)
    _write_promotions(ctx.promoter.on_phase_exhausted(phase))
    if no_summary:
        return 0
    summary = write_summary_prompt(ctx.layout, ctx.repo, ctx.prompts_dir, phase)
    if summary is None:
        sys.stdout.write("No TODO to summarize (none completed for this phase).\n")
        return 0
    sys.stdout.write(f"Summary prompt written: {summary.prompt_file}\n")
    sys.stdout.write(f"Summary will be saved to: {summary.output_path}\n")
    return 0


def _status_payload(ctx: EngineContext) -> dict[str, Any]:
    scan = list_pending_steps(ctx.repo)
    check = resolve(ctx, dry_run=True)
    return {
        "project_dir": str(ctx.layout.project_dir),
        "todo_dir": ctx.layout.relative(ctx.layout.todo_dir),
        "pending_steps": [step.filename for step in scan.steps],
        "done_steps": len(list_done_step_ids(ctx.repo)),
        "active_todos": ctx.repo.list(Area.ACTIVE_TODOS),
        "active_phases": ctx.repo.list(Area.ACTIVE_PHASES),
        "action_required": ctx.repo.list(Area.ACTION_REQUIRED),
        "next": check.to_dict(),
    }


def _status_command(project_dir: Path, *, as_json: bool) -> int:
    ctx = EngineContext.for_project(project_dir)
    payload = _status_payload(ctx)
    if as_json:
        sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
        return 0

    sys.stdout.write(f"Project: {payload['project_dir']}\n")
    sys.stdout.write(f"TODO dir: {payload['todo_dir']}\n")
    sys.stdout.write(f"Pending steps: {len(payload['pending_steps'])}\n")
    for name in payload["pending_steps"]:
        sys.stdout.write(f"  - {name}\n")
    sys.stdout.write(f"Completed steps: {payload['done_steps']}\n")
    sys.stdout.write(f"Active TODOs: {len(payload['active_todos'])}\n")
    if payload["action_required"]:
        sys.stdout.write("Action required:\n")
        for name in payload["action_required"]:
            sys.stdout.write(f"  - {name}\n")
    next_info = payload["next"]
    sys.stdout.write(f"Next: {next_info['status']}")
    if next_info.get("step"):
        sys.stdout.write(f" {next_info['step']['filename']}")
    elif next_info.get("message"):
        sys.stdout.write(f" ({next_info['message']})")
    sys.stdout.write("\n")
    return 0


def _dispatch(argv: list[str]) -> int:
    command = argv[0] if argv and argv[0] in _SUBCOMMANDS else "run"
    rest = argv[1:] if argv and argv[0] in _SUBCOMMANDS else argv

    if command == "next":
        args = _build_next_parser().parse_args(rest)
        _configure_logging(args.log_level)
        return _next_command(
            args.project_dir,
            args.phase,
            quiet=bool(args.quiet),
            skip_manual=bool(args.skip_manual),
            dry_run=bool(args.dry_run),
            prompts_dir=args.prompts_dir,
            as_json=bool(args.json),
        )
    if command == "accept":
        args = _build_accept_parser().parse_args(rest)
        _configure_logging(args.log_level)
        return _accept_command(args.project_dir)
    if command == "step-completed":
        args = _build_step_completed_parser().parse_args(rest)
        _configure_logging(args.log_level)
        return _step_completed_command(args.project_dir, args.step)
    if command == "phase-done":
        args = _build_phase_done_parser().parse_args(rest)
        _configure_logging(args.log_level)
        return _phase_done_command(
            args.project_dir,
            args.phase,
            no_summary=bool(args.no_summary),
            prompts_dir=args.prompts_dir,
        )
    if command == "status":
        args = _build_status_parser().parse_args(rest)
        _configure_logging(args.log_level)
        return _status_command(args.project_dir, as_json=bool(args.json))

    args = _build_run_parser().parse_args(rest)
    _configure_logging(args.log_level)
    if args.steps is not None and args.steps < 1:
        logger.error("--steps must be a positive integer")
        return int(ExitCode.FATAL)
    return run_steps(
        RunOptions(
            project_dir=args.project_dir,
            phase=args.phase,
            once=bool(args.once),
            steps=args.steps,
            model=args.model,
            no_summary=bool(args.no_summary),
            skip_manual=bool(args.skip_manual),
            quiet=bool(args.quiet),
            debug=bool(args.debug),
            agent_command=args.agent_command,
            prompts_dir=args.prompts_dir,
        )
    )


def main(argv: list[str] | None = None) -> None:
    """Run the `todo-step-runner` CLI.

    Args:
        argv: Optional argument list (excluding the executable name). When omitted,
            uses `sys.argv[1:]`.

    Raises:
        SystemExit: Raised to return a process exit code for CLI subcommands.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        code = _dispatch(argv)
    except RunnerError as exc:
        logger.error("{}", exc)
        code = int(ExitCode.FATAL)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
