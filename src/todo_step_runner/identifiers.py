"""Parse and relate hierarchical step, TODO and phase identifiers.

Identifiers follow ``P<phase>_<todo>.<step>`` where every component may be
dotted, e.g. ``P2.5_01.5.01``. The last dotted component is the step, the
rest after ``_`` is the TODO path, and the ``P`` prefix is the phase:

    P2.5_01.5.01  ->  step id
    P2.5_01.5     ->  TODO id
    P2.5          ->  phase id

Filenames embed the id followed by ``_`` (``P1_01.2_add-login.md``).
Anything that does not match is not an error, it is simply ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Union


@dataclass(frozen=True)
class StepId:
    """A parsed step identifier split into its structural segments."""

    phase: str
    todo_path: str
    step: str

    @property
    def text(self) -> str:
        return f"{self.phase}_{self.todo_path}.{self.step}"

    @property
    def todo_id(self) -> str:
        return f"{self.phase}_{self.todo_path}"

    @property
    def phase_id(self) -> str:
        return self.phase

    def __str__(self) -> str:
        return self.text


def _scan_digits(text: str, pos: int) -> int:
    end = pos
    while end < len(text) and text[end].isdigit():
        end += 1
    return end


def _scan_number_path(text: str, pos: int) -> tuple[list[str], int]:
    """Consume ``digits(.digits)*`` starting at ``pos``.

    A trailing dot that is not followed by digits is left unconsumed, so
    ``01.2.md`` yields ``["01", "2"]`` and stops before ``.md``.
    """
    end = _scan_digits(text, pos)
    if end == pos:
        return [], pos
    parts = [text[pos:end]]
    pos = end
    while pos < len(text) and text[pos] == ".":
        nxt = _scan_digits(text, pos + 1)
        if nxt == pos + 1:
            break
        parts.append(text[pos + 1:nxt])
        pos = nxt
    return parts, pos


def _scan_phase(text: str, pos: int) -> tuple[Optional[str], int]:
    if not text.startswith("P", pos):
        return None, pos
    parts, end = _scan_number_path(text, pos + 1)
    if not parts:
        return None, pos
    return "P" + ".".join(parts), end


def _match_step_id(text: str, pos: int) -> Optional[tuple[StepId, int]]:
    phase, end = _scan_phase(text, pos)
    if phase is None or end >= len(text) or text[end] != "_":
        return None
    path, end = _scan_number_path(text, end + 1)
    if len(path) < 2:
        return None
    return StepId(phase=phase, todo_path=".".join(path[:-1]), step=path[-1]), end


def _basename(filename: Union[str, PurePath]) -> str:
    return PurePath(str(filename)).name


def parse_step_id(filename: Union[str, PurePath]) -> Optional[StepId]:
    """Return the step id a filename starts with, or None when it does not conform."""
    name = _basename(filename)
    matched = _match_step_id(name, 0)
    if matched is None:
        return None
    step_id, end = matched
    if end >= len(name) or name[end] != "_":
        return None
    return step_id


def step_id_from_filename(filename: Union[str, PurePath]) -> Optional[str]:
    parsed = parse_step_id(filename)
    return parsed.text if parsed else None


def parse_todo_id(filename: Union[str, PurePath]) -> Optional[str]:
    """Return the TODO id of a TODO document name such as ``P1_01_auth.md``."""
    name = _basename(filename)
    phase, end = _scan_phase(name, 0)
    if phase is None or end >= len(name) or name[end] != "_":
        return None
    path, end = _scan_number_path(name, end + 1)
    if not path or end >= len(name) or name[end] != "_":
        return None
    return f"{phase}_{'.'.join(path)}"


def parse_phase_id(filename: Union[str, PurePath]) -> Optional[str]:
    """Return the phase id of a phase document (``P1_backend.md`` or ``P1.md``)."""
    name = _basename(filename)
    phase, end = _scan_phase(name, 0)
    if phase is None:
        return None
    rest = name[end:]
    if rest.startswith("_") or rest == ".md":
        return phase
    return None


def todo_id_of(step_id: Union[str, StepId]) -> str:
    """Strip the trailing dotted component of a step id."""
    text = step_id.text if isinstance(step_id, StepId) else step_id
    idx = text.rfind(".")
    return text[:idx] if idx > 0 else text


def phase_id_of(todo_id: Union[str, StepId]) -> str:
    """Strip the ``_<todo>`` component of a TODO id, leaving the phase id."""
    text = todo_id.todo_id if isinstance(todo_id, StepId) else todo_id
    idx = text.find("_")
    return text[:idx] if idx > 0 else text


def is_under(entity_id: str, prefix: str) -> bool:
    """True when ``entity_id`` equals ``prefix`` or is nested under it by a dot."""
    return entity_id == prefix or entity_id.startswith(prefix + ".")


def in_scope(entity_id: str, scope: Optional[str]) -> bool:
    """Apply a phase/TODO filter to a step or TODO id.

    A scope without ``_`` names a phase and also admits every id of that
    phase (``P1`` admits ``P1_03.2``).
    """
    if not scope:
        return True
    if is_under(entity_id, scope):
        return True
    return "_" not in scope and entity_id.startswith(scope + "_")


def find_step_ids(text: str) -> list[str]:
    """Collect well-formed step ids from free text, de-duplicated in first-seen order."""
    found: list[str] = []
    seen: set[str] = set()
    pos = 0
    while True:
        pos = text.find("P", pos)
        if pos < 0:
            break
        matched = _match_step_id(text, pos)
        if matched is None:
            pos += 1
            continue
        step_id, end = matched
        if step_id.text not in seen:
            seen.add(step_id.text)
            found.append(step_id.text)
        pos = end
    return found
