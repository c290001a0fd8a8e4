"""Test step, TODO and phase identifier parsing."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from todo_step_runner.identifiers import (
    StepId,
    find_step_ids,
    in_scope,
    is_under,
    parse_phase_id,
    parse_step_id,
    parse_todo_id,
    phase_id_of,
    step_id_from_filename,
    todo_id_of,
)


def test_parse_simple_step_filename() -> None:
    parsed = parse_step_id("P1_01.2_add-login.md")
    assert parsed == StepId(phase="P1", todo_path="01", step="2")
    assert parsed.text == "P1_01.2"
    assert parsed.todo_id == "P1_01"
    assert parsed.phase_id == "P1"


def test_parse_dotted_segments() -> None:
    """Ensure every segment may itself be dotted."""
    parsed = parse_step_id("P2.5_01.5.01_refactor.md")
    assert parsed is not None
    assert parsed.phase == "P2.5"
    assert parsed.todo_path == "01.5"
    assert parsed.step == "01"
    assert parsed.todo_id == "P2.5_01.5"


def test_parse_accepts_paths() -> None:
    assert step_id_from_filename("docs/TODO/active/steps/P3_02.1_x.md") == "P3_02.1"


@pytest.mark.parametrize(
    "name",
    [
        "README.md",
        "P1_01_auth.md",
        "P1_01.2.md",
        "p1_01.2_lower.md",
        "P_01.2_x.md",
        "PX_01.2_x.md",
    ],
)
def test_non_conforming_names_are_ignored(name: str) -> None:
    assert parse_step_id(name) is None


def test_todo_and_phase_relations() -> None:
    assert todo_id_of("P2.5_01.5.01") == "P2.5_01.5"
    assert todo_id_of("P1_01.2") == "P1_01"
    assert phase_id_of("P2.5_01.5") == "P2.5"
    assert phase_id_of(todo_id_of("P1_03.2")) == "P1"


def test_is_under_respects_segment_boundaries() -> None:
    assert is_under("P1_03", "P1_03")
    assert is_under("P1_03.2", "P1_03")
    assert not is_under("P1_030.1", "P1_03")


def test_in_scope_with_phase_and_todo_filters() -> None:
    assert in_scope("P1_03.2", None)
    assert in_scope("P1_03.2", "P1_03")
    assert in_scope("P1_03.2", "P1")
    assert not in_scope("P10_01.1", "P1")
    assert not in_scope("P1_04.1", "P1_03")


def test_find_step_ids_dedupes_in_order() -> None:
    text = "P1_01.1, P1_01.2 and again P1_01.1; not an id: P1_01"
    assert find_step_ids(text) == ["P1_01.1", "P1_01.2"]


def test_parse_todo_and_phase_documents() -> None:
    assert parse_todo_id("P1_01_auth.md") == "P1_01"
    assert parse_todo_id("P2.5_01.5_nested.md") == "P2.5_01.5"
    assert parse_todo_id("notes.md") is None
    assert parse_phase_id("P1_backend.md") == "P1"
    assert parse_phase_id("P1.md") == "P1"
    assert parse_phase_id("P1-draft.md") is None
