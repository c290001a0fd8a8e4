"""Read labelled sections out of step and TODO Markdown bodies.

Two shapes are recognised for a label such as ``Depends on``::

    ## Depends on
    P1_01.1, P1_01.2

    **Depends on:** none

The heading form wins when both are present.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .identifiers import find_step_ids
from .utils import _is_placeholder_text

DEPENDS_ON_LABEL = "Depends on"
STATUS_LABEL = "Status"

_CANCELLED_VALUES = ("cancelled", "canceled")


class DependsOnKind(str, Enum):
    """Classify how a step declared (or failed to declare) its dependencies."""

    ABSENT = "absent"
    NONE = "none"
    LIST = "list"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DependsOn:
    kind: DependsOnKind
    ids: tuple[str, ...] = field(default_factory=tuple)
    raw: str = ""

    @property
    def is_malformed(self) -> bool:
        return self.kind == DependsOnKind.MALFORMED


def _heading_title(line: str) -> Optional[str]:
    stripped = line.strip()
    if not stripped.startswith("## "):
        return None
    return stripped[3:].strip().rstrip(":").strip().lower()


def extract_section(content: str, label: str) -> Optional[str]:
    """Return the body under ``## <label>`` up to the next ``## `` heading.

    Returns None when the heading is absent.
    """
    wanted = label.strip().lower()
    lines = content.splitlines()
    for index, line in enumerate(lines):
        if _heading_title(line) != wanted:
            continue
        body: list[str] = []
        for following in lines[index + 1:]:
            if _heading_title(following) is not None:
                break
            body.append(following)
        return "\n".join(body).strip()
    return None


def _label_line_pattern(label: str) -> re.Pattern[str]:
    return re.compile(
        r"^\s*(?:[-*]\s+)?(?:\*\*)?" + re.escape(label) + r"\s*:\s*(?:\*\*)?\s*(?P<value>.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


def extract_label_value(content: str, label: str) -> Optional[str]:
    """Return the value of a ``Label: value`` line, or None when absent."""
    section = extract_section(content, label)
    if section is not None:
        return section
    match = _label_line_pattern(label).search(content)
    if not match:
        return None
    return match.group("value").strip().strip("*").strip()


def parse_depends_on(content: str) -> DependsOn:
    raw = extract_label_value(content, DEPENDS_ON_LABEL)
    if raw is None or not raw.strip():
        return DependsOn(DependsOnKind.ABSENT)
    first_line = raw.strip().splitlines()[0]
    if _is_placeholder_text(first_line) or first_line.strip().lower().startswith("none"):
        return DependsOn(DependsOnKind.NONE, raw=raw)
    ids = find_step_ids(raw)
    if not ids:
        return DependsOn(DependsOnKind.MALFORMED, raw=raw)
    return DependsOn(DependsOnKind.LIST, tuple(ids), raw=raw)


def parse_status(content: str) -> Optional[str]:
    raw = extract_label_value(content, STATUS_LABEL)
    if not raw:
        return None
    return raw.strip().splitlines()[0].strip().strip("`*_").strip().lower() or None


def is_cancelled(content: str) -> bool:
    status = parse_status(content)
    return bool(status) and status.startswith(_CANCELLED_VALUES)
