"""Drive the agent through pending steps until blocked, empty, or a run limit."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console

from .agent import run_agent
from .artifacts import PromptOptions
from .blockers import check_blockers
from .config import get_agent_command, get_model
from .constants import DEFAULT_MODEL
from .engine import EngineContext, resolve
from .io_utils import _append_text
from .models import ExitCode, ResolutionStatus
from .repository import Area
from .stream import StreamFormatter
from .summary import write_summary_prompt
from .utils import _log_stamp, _now_iso


@dataclass
class RunOptions:
    project_dir: Path
    phase: Optional[str] = None
    once: bool = False
    steps: Optional[int] = None
    model: Optional[str] = None
    no_summary: bool = False
    skip_manual: bool = False
    quiet: bool = False
    debug: bool = False
    agent_command: Optional[str] = None
    prompts_dir: Optional[Path] = None


class StepRunner:
    """One driving session over a project root."""

    def __init__(self, options: RunOptions, console: Optional[Console] = None) -> None:
        self.options = options
        self.console = console or Console(highlight=False)
        self.ctx = EngineContext.for_project(options.project_dir, prompts_dir=options.prompts_dir)
        self.command = options.agent_command or get_agent_command(self.ctx.config)
        self.model = options.model or get_model(self.ctx.config)
        self.log_path: Optional[Path] = None
        self.runs = 0

    def _say(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False)

    def _start_debug_log(self) -> None:
        opts = self.options
        self.log_path = self.ctx.layout.runner_dir / f"agent_output_{_log_stamp()}.log"
        header = [
            f"run_timestamp={_now_iso()}",
            f"root={self.ctx.layout.project_dir}",
            f"phase={opts.phase or ''}",
            f"model={self.model}",
            f"once={'1' if opts.once else ''}",
            f"steps={opts.steps or ''}",
            f"no_summary={'1' if opts.no_summary else ''}",
            f"skip_manual={'1' if opts.skip_manual else ''}",
            f"quiet={'1' if opts.quiet else ''}",
            "---",
        ]
        _append_text(self.log_path, "\n".join(header) + "\n")

    def _run_agent(self, prompt_file: Path, model: str, label: str) -> int:
        if self.log_path is not None:
            _append_text(self.log_path, f"=== {label} ===\n")
        formatter = None if self.options.quiet else StreamFormatter(self.console)
        result = run_agent(
            self.command,
            prompt_file,
            self.ctx.layout.project_dir,
            model=model,
            log_path=self.log_path,
            on_line=formatter,
        )
        if formatter is not None:
            formatter.finish()
        return result.exit_code

    def phase_done(self) -> None:
        """Promote finished TODOs and phases, then run the summary agent once."""
        opts = self.options
        self.ctx.promoter.on_phase_exhausted(opts.phase)
        if opts.no_summary:
            return
        summary = write_summary_prompt(self.ctx.layout, self.ctx.repo, self.ctx.prompts_dir, opts.phase)
        if summary is None:
            return
        self._say("Generating execution summary (one per phase) ...")
        self._run_agent(summary.prompt_file, self.model, "summary")
        self._say(f"Summary prompt consumed; see {summary.output_path} for output.")

    def _check_phase_complete(self) -> None:
        check = resolve(self.ctx, self.options.phase, dry_run=True)
        if check.status == ResolutionStatus.EMPTY:
            self._say("Phase finished (no pending steps).")
            self.phase_done()

    def _finish_step(self, filename: str) -> None:
        gate = check_blockers(self.ctx.repo, self.ctx.promoter)
        if not gate.clear:
            self._say("Action required after this step: " + ", ".join(gate.blocking_files))
            return
        if self.ctx.repo.exists(Area.PENDING_STEPS, filename):
            self.ctx.promoter.accept_step(filename)
            self._say(f"Step marked completed (runner): {filename}")

    def run(self) -> int:
        opts = self.options
        self.ctx.layout.ensure()
        if opts.debug:
            self._start_debug_log()
        prompt_options = PromptOptions(quiet=opts.quiet, skip_manual=opts.skip_manual)
        last_step: Optional[str] = None

        while True:
            resolution = resolve(self.ctx, opts.phase, options=prompt_options)
            if resolution.status == ResolutionStatus.FATAL:
                self._say(resolution.message)
                return int(ExitCode.FATAL)
            if resolution.status == ResolutionStatus.BLOCKED:
                self._say(resolution.message)
                self._say("Step blocked or action required; resolve then re-run.")
                return int(ExitCode.BLOCKED)
            if resolution.status == ResolutionStatus.EMPTY:
                self._say(resolution.message)
                self.phase_done()
                self._say("No pending steps; stopping.")
                return int(ExitCode.NEXT_WRITTEN)

            step = resolution.step
            if step is None or step.filename == last_step:
                self._say(f"{last_step} was selected again without completing; stopping.")
                return int(ExitCode.BLOCKED)
            last_step = step.filename

            self._say("")
            self._say(f"Next step: {step.filename} (run {self.runs + 1})")
            model = self.model
            if resolution.recommended_model and self.model == DEFAULT_MODEL:
                model = resolution.recommended_model
                self._say(f"Using recommended model for GUI step: {model}")

            exit_code = self._run_agent(self.ctx.layout.prompt_file, model, f"step {step.filename}")
            self._say(f"Step agent finished (exit code {exit_code}).")
            if exit_code != 0:
                logger.warning("Agent exited with {} for {}", exit_code, step.filename)
            self.runs += 1
            self._finish_step(step.filename)

            if opts.once:
                self._check_phase_complete()
                return int(ExitCode.NEXT_WRITTEN)
            if opts.steps and self.runs >= opts.steps:
                self._say(f"Reached --steps {opts.steps}; stopping.")
                self._check_phase_complete()
                return int(ExitCode.NEXT_WRITTEN)


def run_steps(options: RunOptions, console: Optional[Console] = None) -> int:
    """Run the resolve / agent / accept loop and return a process exit code."""
    return StepRunner(options, console).run()
