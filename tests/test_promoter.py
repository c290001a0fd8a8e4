"""Test completion promotion from steps to TODOs to phases."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from todo_step_runner.promoter import CompletionPromoter
from todo_step_runner.repository import Area, InMemoryStepRepository


def _repo() -> InMemoryStepRepository:
    repo = InMemoryStepRepository()
    repo.add(Area.ACTIVE_PHASES, "P1_backend.md", "# Phase 1\n")
    repo.add(Area.ACTIVE_TODOS, "P1_01_auth.md", "# Auth\n")
    repo.add(Area.ACTIVE_TODOS, "P1_02_billing.md", "# Billing\n")
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", "## Depends on\nnone\n")
    repo.add(Area.PENDING_STEPS, "P1_01.2_b.md", "## Depends on\nP1_01.1\n")
    repo.add(Area.PENDING_STEPS, "P1_02.1_c.md", "## Depends on\nnone\n")
    return repo


def test_todo_waits_for_sibling_steps() -> None:
    repo = _repo()
    promoter = CompletionPromoter(repo)

    result = promoter.accept_step("P1_01.1_a.md")
    assert result.moved_steps == ["P1_01.1_a.md"]
    assert result.moved_todos == []
    assert repo.exists(Area.ACTIVE_TODOS, "P1_01_auth.md")

    result = promoter.accept_step("P1_01.2_b.md")
    assert result.moved_todos == ["P1_01_auth.md"]
    assert repo.exists(Area.DONE_TODOS, "P1_01_auth.md")
    assert repo.exists(Area.ACTIVE_TODOS, "P1_02_billing.md")


def test_promotion_is_monotonic() -> None:
    """Ensure re-running promotion never moves a done TODO back or errors."""
    repo = _repo()
    promoter = CompletionPromoter(repo)
    promoter.accept_step("P1_01.1_a.md")
    promoter.accept_step("P1_01.2_b.md")

    again = promoter.on_step_completed("P1_01.2_b.md")
    assert not again.changed
    assert repo.exists(Area.DONE_TODOS, "P1_01_auth.md")
    assert not repo.exists(Area.ACTIVE_TODOS, "P1_01_auth.md")


def test_accept_tolerates_step_already_moved() -> None:
    repo = _repo()
    promoter = CompletionPromoter(repo)
    repo.move_step_to_done("P1_02.1_c.md")

    result = promoter.accept_step("P1_02.1_c.md")
    assert result.moved_steps == []
    assert result.moved_todos == ["P1_02_billing.md"]


def test_accept_unknown_step_changes_nothing() -> None:
    promoter = CompletionPromoter(_repo())
    assert not promoter.accept_step("P1_09.1_ghost.md").changed


def test_todo_without_completed_steps_is_not_promoted() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.ACTIVE_TODOS, "P3_01_empty.md", "# Not broken down yet\n")

    result = CompletionPromoter(repo).on_step_completed("P3_01.1")
    assert not result.changed
    assert repo.exists(Area.ACTIVE_TODOS, "P3_01_empty.md")


def test_ambiguous_todo_moves_first_and_warns() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.ACTIVE_TODOS, "P1_01_b-second.md")
    repo.add(Area.ACTIVE_TODOS, "P1_01_a-first.md")
    repo.add(Area.DONE_STEPS, "P1_01.1_x.md")

    result = CompletionPromoter(repo).on_step_completed("P1_01.1_x.md")
    assert result.moved_todos == ["P1_01_a-first.md"]
    assert len(result.warnings) == 1
    assert "P1_01_b-second.md" in result.warnings[0]
    assert repo.exists(Area.ACTIVE_TODOS, "P1_01_b-second.md")


def test_phase_promoted_once_all_todos_done() -> None:
    repo = _repo()
    promoter = CompletionPromoter(repo)
    for name in ("P1_01.1_a.md", "P1_01.2_b.md"):
        promoter.accept_step(name)

    assert promoter.on_phase_exhausted("P1").moved_phases == []

    promoter.accept_step("P1_02.1_c.md")
    result = promoter.on_phase_exhausted("P1")
    assert result.moved_phases == ["P1_backend.md"]
    assert repo.exists(Area.DONE_PHASES, "P1_backend.md")

    assert not promoter.on_phase_exhausted("P1").changed


def test_phase_exhausted_promotes_leftover_todos() -> None:
    """Steps moved outside the promoter still lead to TODO and phase promotion."""
    repo = _repo()
    for name in ("P1_01.1_a.md", "P1_01.2_b.md", "P1_02.1_c.md"):
        repo.move_step_to_done(name)

    result = CompletionPromoter(repo).on_phase_exhausted(None)
    assert sorted(result.moved_todos) == ["P1_01_auth.md", "P1_02_billing.md"]
    assert result.moved_phases == ["P1_backend.md"]


def test_cancelled_todo_is_skipped_and_not_moved() -> None:
    repo = _repo()
    repo.add(Area.ACTIVE_TODOS, "P1_03_dropped.md", "# Dropped\n\n## Status\nCancelled\n")
    promoter = CompletionPromoter(repo)
    for name in ("P1_01.1_a.md", "P1_01.2_b.md", "P1_02.1_c.md"):
        promoter.accept_step(name)

    result = promoter.on_phase_exhausted("P1")
    assert result.moved_phases == ["P1_backend.md"]
    assert repo.exists(Area.ACTIVE_TODOS, "P1_03_dropped.md")


def test_todo_filter_scopes_phase_check() -> None:
    repo = _repo()
    promoter = CompletionPromoter(repo)
    for name in ("P1_01.1_a.md", "P1_01.2_b.md"):
        repo.move_step_to_done(name)

    result = promoter.on_phase_exhausted("P1_01")
    assert result.moved_todos == ["P1_01_auth.md"]
    assert result.moved_phases == []
    assert repo.exists(Area.ACTIVE_TODOS, "P1_02_billing.md")
