from __future__ import annotations

import shlex
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from .errors import ConfigurationError
from .io_utils import _append_text
from .utils import _now_iso


@dataclass
class AgentResult:
    command: list[str]
    exit_code: int
    start_time: str
    end_time: str
    runtime_seconds: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _stream_pipe(
    pipe: Any,
    label: str,
    log_path: Optional[Path],
    on_line: Optional[Callable[[str], None]],
    to_stderr: bool,
) -> None:
    for line in iter(pipe.readline, ""):
        if log_path is not None:
            _append_text(log_path, line if label == "stdout" else f"[{label}] {line}")
        if on_line is not None:
            # The pipe must keep draining or the agent blocks on a full buffer.
            try:
                on_line(line)
            except (AttributeError, KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
                logger.warning("Could not render agent {} line: {}: {}", label, exc.__class__.__name__, exc)
        elif to_stderr:
            sys.stderr.write(line)
            sys.stderr.flush()
    try:
        pipe.close()
    except OSError:
        pass


def build_command(
    command: str,
    *,
    prompt: str,
    prompt_file: Path,
    model: str,
    project_dir: Path,
) -> tuple[list[str], bool]:
    """Expand placeholders in an agent command template.

    The template is split before formatting so a multi-line prompt stays a
    single argument.

    Returns:
        ``(argv, feed_stdin)``. ``feed_stdin`` is True when the command takes
        the prompt on stdin via a literal ``-`` argument.
    """
    values = {
        "prompt": prompt,
        "prompt_file": str(prompt_file),
        "model": model,
        "project_dir": str(project_dir),
    }
    raw_parts = shlex.split(command)
    try:
        parts = [part.format(**values) for part in raw_parts]
    except (KeyError, IndexError) as exc:
        raise ConfigurationError(f"Unknown placeholder in agent command: {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"Invalid agent command template: {exc}") from exc

    uses_prompt_placeholder = "{prompt_file}" in command or "{prompt}" in command
    expects_stdin = "-" in raw_parts
    if not uses_prompt_placeholder and not expects_stdin:
        raise ConfigurationError(
            "Agent command must include {prompt_file}, {prompt}, or '-' to accept stdin input."
        )
    return parts, not uses_prompt_placeholder and expects_stdin


def run_agent(
    command: str,
    prompt_file: Path,
    project_dir: Path,
    *,
    model: str,
    log_path: Optional[Path] = None,
    on_line: Optional[Callable[[str], None]] = None,
    timeout_seconds: Optional[int] = None,
) -> AgentResult:
    """Run the external agent on a prompt file and wait for it to finish.

    Args:
        command: Command template with ``{prompt}``, ``{prompt_file}``,
            ``{model}`` and ``{project_dir}`` placeholders, or ``-`` for stdin.
        prompt_file: Prompt written by the resolver.
        project_dir: Working directory for the agent.
        model: Model name substituted into ``{model}``.
        log_path: Optional file receiving the raw agent output.
        on_line: Callback for each stdout line; stdout is discarded when None.
        timeout_seconds: Terminate the agent after this many seconds.

    Raises:
        ConfigurationError: The command template is invalid or the executable
            cannot be found.
    """
    prompt = prompt_file.read_text(encoding="utf-8")
    argv, feed_stdin = build_command(
        command,
        prompt=prompt,
        prompt_file=prompt_file,
        model=model,
        project_dir=project_dir,
    )
    logger.debug("Running agent: {}", argv[0])

    start_time = time.monotonic()
    start_iso = _now_iso()
    timed_out = False
    try:
        process = subprocess.Popen(
            argv,
            cwd=project_dir,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Agent executable not found: {argv[0]}") from exc

    stdout_thread = threading.Thread(
        target=_stream_pipe,
        args=(process.stdout, "stdout", log_path, on_line, False),
        daemon=True,
    )
    stderr_thread = threading.Thread(
        target=_stream_pipe,
        args=(process.stderr, "stderr", log_path, None, True),
        daemon=True,
    )
    stdout_thread.start()
    stderr_thread.start()

    if process.stdin:
        try:
            if feed_stdin:
                process.stdin.write(prompt)
                process.stdin.flush()
            process.stdin.close()
        except BrokenPipeError:
            logger.warning("Agent closed stdin before reading the prompt")

    try:
        process.wait(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()

    exit_code = process.poll()
    if exit_code is None:
        exit_code = -1

    stdout_thread.join(timeout=5)
    stderr_thread.join(timeout=5)

    return AgentResult(
        command=argv,
        exit_code=exit_code,
        start_time=start_iso,
        end_time=_now_iso(),
        runtime_seconds=int(time.monotonic() - start_time),
        timed_out=timed_out,
    )
