"""Render and write the hand-off artifacts for the selected step.

`NEXT.md` is a short pointer for humans; `RUNNER_PROMPT.txt` is the full
instruction payload handed to the agent. Both are replaced atomically so a
reader never sees a half-written file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from .constants import (
    EXECUTE_STEP_PROMPT,
    FRAGMENTS_DIR,
    MANUAL_FRAGMENT_BLOCK,
    MANUAL_FRAGMENT_SKIP,
    MANUAL_TEST_PLACEHOLDER,
    OUTPUT_FRAGMENT_DEFAULT,
    OUTPUT_FRAGMENT_QUIET,
    OUTPUT_PLACEHOLDER,
    STEP_FILE_PLACEHOLDER,
    USER_FRAGMENTS_DIR,
)
from .errors import ConfigurationError, MalformedTemplateError
from .io_utils import _atomic_write_text, _read_text
from .layout import TodoLayout
from .models import GuiStepType
from .profiles import gui_note

_PROMPT_NUMBER_RE = re.compile(r"^(\d{2})-")
_STEP_FILE_LINE_RE = re.compile(r"\*\*Step file:\*\*\s*`(?P<path>[^`]+)`")


@dataclass
class PromptOptions:
    """Fragment selection for the execute-step prompt.

    Attributes:
        quiet: Use the zero-output fragment instead of the step-only one.
        skip_manual: Report manual tests in the summary instead of raising
            an action-required marker.
        output_fragment: Require and fill ``@OutputInstruction``.
        manual_fragment: Require and fill ``@ManualTestInstruction``.
    """

    quiet: bool = False
    skip_manual: bool = False
    output_fragment: bool = True
    manual_fragment: bool = True


@dataclass
class WrittenArtifact:
    step_path: str
    next_file: Path
    prompt_file: Path
    recommended_model: Optional[str] = None
    gui_type: Optional[GuiStepType] = None


def default_prompts_dir() -> Path:
    return Path(__file__).resolve().parent / "prompts"


def load_template(prompts_dir: Path, name: str = EXECUTE_STEP_PROMPT) -> tuple[str, Path]:
    path = prompts_dir / name
    text = _read_text(path)
    if text is None:
        raise ConfigurationError(f"Prompt template not readable: {path}")
    return text, path


def _read_fragment(prompts_dir: Path, name: str) -> str:
    path = prompts_dir / FRAGMENTS_DIR / name
    text = _read_text(path)
    if text is None:
        raise ConfigurationError(f"Prompt fragment not readable: {path}")
    return text.strip()


def prompt_number(template_path: Optional[Path]) -> Optional[str]:
    """Two-digit prefix of a prompt filename (``04-execute-single-step.prompt`` -> ``04``)."""
    if template_path is None:
        return None
    match = _PROMPT_NUMBER_RE.match(template_path.name)
    return match.group(1) if match else None


def load_user_fragments(prompts_dir: Path, number: str) -> Optional[str]:
    """Concatenate ``fragments/user/<number>_*.txt`` in name order."""
    user_dir = prompts_dir / FRAGMENTS_DIR / USER_FRAGMENTS_DIR
    if not user_dir.is_dir():
        return None
    names = sorted(
        entry.name
        for entry in user_dir.iterdir()
        if entry.is_file() and entry.name.startswith(number + "_") and entry.name.endswith(".txt")
    )
    blocks = []
    for name in names:
        content = (_read_text(user_dir / name) or "").strip()
        blocks.append(f"# User fragment: {name}\n{content}")
    return "\n\n".join(blocks) if blocks else None


def _substitute(template: str, placeholder: str, value: str, template_path: Optional[Path]) -> str:
    if placeholder not in template:
        raise MalformedTemplateError(template_path, placeholder)
    return template.replace(placeholder, value, 1)


def render_step_prompt(
    template: str,
    step_path: str,
    prompts_dir: Path,
    options: Optional[PromptOptions] = None,
    template_path: Optional[Path] = None,
) -> str:
    """Fill the execute-step template for one step.

    Args:
        template: Template text.
        step_path: Project-relative path of the step file; rendered as ``@<path>``.
        prompts_dir: Directory holding ``fragments/``.
        options: Fragment selection.
        template_path: Where the template came from, for error messages and
            the user-fragment prefix.

    Raises:
        MalformedTemplateError: A required placeholder is missing.
        ConfigurationError: A selected fragment file cannot be read.
    """
    options = options or PromptOptions()
    text = _substitute(template, STEP_FILE_PLACEHOLDER, "@" + step_path, template_path)
    if options.output_fragment:
        name = OUTPUT_FRAGMENT_QUIET if options.quiet else OUTPUT_FRAGMENT_DEFAULT
        text = _substitute(text, OUTPUT_PLACEHOLDER, _read_fragment(prompts_dir, name), template_path)
    if options.manual_fragment:
        name = MANUAL_FRAGMENT_SKIP if options.skip_manual else MANUAL_FRAGMENT_BLOCK
        text = _substitute(text, MANUAL_TEST_PLACEHOLDER, _read_fragment(prompts_dir, name), template_path)

    number = prompt_number(template_path)
    if number:
        extra = load_user_fragments(prompts_dir, number)
        if extra:
            text += "\n\n" + extra
    return text


def render_pointer(
    step_path: str,
    prompt_path: str,
    recommended_model: Optional[str] = None,
    gui_type: Optional[GuiStepType] = None,
) -> str:
    model_hint = f"\n**Recommended model:** `{recommended_model}`" if recommended_model else ""
    note = gui_note(gui_type)
    note_block = f"\n\n{note}" if note else ""
    return (
        "# Next step\n\n"
        f"**Step file:** `{step_path}`{model_hint}\n\n"
        f"The exact prompt (with this step file @-mentioned) is in `{prompt_path}`.\n\n"
        "For manual run: paste the contents of RUNNER_PROMPT.txt into the chat "
        f"(the @path will attach the step file).{note_block}\n"
    )


def write_artifact(
    layout: TodoLayout,
    step_path: str,
    template: str,
    options: Optional[PromptOptions] = None,
    *,
    prompts_dir: Optional[Path] = None,
    template_path: Optional[Path] = None,
    recommended_model: Optional[str] = None,
    gui_type: Optional[GuiStepType] = None,
) -> WrittenArtifact:
    """Render both artifacts and replace them atomically.

    The prompt is rendered before anything is written, so a malformed
    template leaves the previous artifacts untouched.
    """
    prompts_dir = prompts_dir or default_prompts_dir()
    prompt_text = render_step_prompt(template, step_path, prompts_dir, options, template_path)
    pointer_text = render_pointer(
        step_path,
        layout.relative(layout.prompt_file),
        recommended_model=recommended_model,
        gui_type=gui_type,
    )
    layout.runner_dir.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(layout.prompt_file, prompt_text)
    _atomic_write_text(layout.next_file, pointer_text)
    logger.debug("Wrote {} and {}", layout.next_file, layout.prompt_file)
    return WrittenArtifact(
        step_path=step_path,
        next_file=layout.next_file,
        prompt_file=layout.prompt_file,
        recommended_model=recommended_model,
        gui_type=gui_type,
    )


def read_pointer(layout: TodoLayout) -> Optional[str]:
    """Return the project-relative step path named by the last hand-off.

    Reads `NEXT.md` first and falls back to any pending-step reference in
    `RUNNER_PROMPT.txt`.
    """
    text = _read_text(layout.next_file)
    if text:
        match = _STEP_FILE_LINE_RE.search(text)
        if match:
            return match.group("path").strip()

    steps_ref = layout.relative(layout.active_steps_dir)
    pattern = re.compile(re.escape(steps_ref) + r"/(?P<name>P[^\s`/]+\.md)")
    for path in (layout.next_file, layout.prompt_file):
        text = _read_text(path)
        if not text:
            continue
        match = pattern.search(text)
        if match:
            return f"{steps_ref}/{match.group('name')}"
    return None
