"""Test scanning pending steps and selecting the next ready one."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from todo_step_runner.errors import MalformedDependsOnError
from todo_step_runner.models import BlockReason, ResolutionStatus, Step
from todo_step_runner.repository import Area, InMemoryStepRepository
from todo_step_runner.resolver import (
    missing_dependency_is_unsatisfied,
    ready_steps,
    resolve_next,
)
from todo_step_runner.scanner import list_done_step_ids, list_pending_steps


def _step(deps: str = "none") -> str:
    return f"# Step\n\n## Depends on\n{deps}\n\n## Tasks\n- work\n"


def _resolve(repo: InMemoryStepRepository, phase: str | None = None, **kwargs):
    scan = list_pending_steps(repo, phase)
    return resolve_next(
        scan.steps,
        list_done_step_ids(repo),
        exists=lambda step: repo.exists(Area.PENDING_STEPS, step.filename),
        pending_ids=scan.all_pending_ids,
        **kwargs,
    )


def test_sequence_resolves_in_dependency_order() -> None:
    """Ensure P1_01.1 runs first, then P1_01.2, then nothing is left."""
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_setup.md", _step())
    repo.add(Area.PENDING_STEPS, "P1_01.2_login.md", _step("P1_01.1"))

    first = _resolve(repo)
    assert first.status == ResolutionStatus.NEXT_WRITTEN
    assert first.step is not None and first.step.id == "P1_01.1"

    repo.move_step_to_done("P1_01.1_setup.md")
    second = _resolve(repo)
    assert second.step is not None and second.step.id == "P1_01.2"

    repo.move_step_to_done("P1_01.2_login.md")
    assert _resolve(repo).status == ResolutionStatus.EMPTY


def test_resolution_is_idempotent() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_02.1_b.md", _step())
    repo.add(Area.PENDING_STEPS, "P1_01.3_a.md", _step())

    picks = {_resolve(repo).step.filename for _ in range(5)}
    assert picks == {"P1_01.3_a.md"}


def test_same_id_prefix_picks_lowest_filename() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P2_04.1_b.md", _step())
    repo.add(Area.PENDING_STEPS, "P2_04.1_a.md", _step())

    for _ in range(3):
        assert _resolve(repo).step.filename == "P2_04.1_a.md"


def test_cycle_reports_every_pending_id() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step("P1_01.2"))
    repo.add(Area.PENDING_STEPS, "P1_01.2_b.md", _step("P1_01.1"))

    resolution = _resolve(repo)
    assert resolution.status == ResolutionStatus.BLOCKED
    assert resolution.block_reason == BlockReason.DEPENDENCY
    assert resolution.unready_ids == ["P1_01.1", "P1_01.2"]
    assert "Complete dependencies first" in resolution.message


def test_dependency_missing_everywhere_counts_as_ready() -> None:
    """A dependency that is neither pending nor done does not hold a step back."""
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.2_b.md", _step("P9_09.9"))

    assert _resolve(repo).step.id == "P1_01.2"


def test_strict_policy_holds_back_missing_dependency() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.2_b.md", _step("P9_09.9"))

    resolution = _resolve(repo, policy=missing_dependency_is_unsatisfied)
    assert resolution.status == ResolutionStatus.BLOCKED


def test_no_dependencies_is_always_ready() -> None:
    steps = [Step(id="P1_01.1", filename="P1_01.1_a.md")]
    assert ready_steps(steps, done_ids=set()) == steps


def test_phase_filter_limits_candidates() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step())
    repo.add(Area.PENDING_STEPS, "P1_03.1_c.md", _step())
    repo.add(Area.PENDING_STEPS, "P2_01.1_d.md", _step())

    scan = list_pending_steps(repo, "P1_03")
    assert [step.id for step in scan.steps] == ["P1_03.1"]
    assert not scan.filter_excluded_all

    scan = list_pending_steps(repo, "P2")
    assert [step.id for step in scan.steps] == ["P2_01.1"]


def test_filter_matching_nothing_is_reported() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step())

    scan = list_pending_steps(repo, "P7")
    assert scan.steps == []
    assert scan.filter_excluded_all
    assert not list_pending_steps(InMemoryStepRepository(), "P7").filter_excluded_all


def test_filtered_step_waits_for_pending_dependency_outside_filter() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step())
    repo.add(Area.PENDING_STEPS, "P2_01.1_b.md", _step("P1_01.1"))

    resolution = _resolve(repo, phase="P2")
    assert resolution.status == ResolutionStatus.BLOCKED
    assert resolution.unready_ids == ["P2_01.1"]


def test_vanished_selection_falls_through_once() -> None:
    steps = [
        Step(id="P1_01.1", filename="P1_01.1_a.md"),
        Step(id="P1_01.2", filename="P1_01.2_b.md"),
        Step(id="P1_01.3", filename="P1_01.3_c.md"),
    ]
    present = {"P1_01.2_b.md", "P1_01.3_c.md"}
    resolution = resolve_next(steps, set(), exists=lambda step: step.filename in present)
    assert resolution.step is not None and resolution.step.filename == "P1_01.2_b.md"

    present = {"P1_01.3_c.md"}
    resolution = resolve_next(steps, set(), exists=lambda step: step.filename in present)
    assert resolution.status == ResolutionStatus.EMPTY


def test_non_conforming_files_are_invisible() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "README.md", "notes")
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.txt", _step())

    assert list_pending_steps(repo).steps == []
    assert _resolve(repo).status == ResolutionStatus.EMPTY


def test_malformed_depends_on_is_lenient_by_default() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step("after the schema work"))

    assert list_pending_steps(repo).steps[0].depends_on == ()
    with pytest.raises(MalformedDependsOnError):
        list_pending_steps(repo, strict=True)


def test_every_acyclic_tree_is_exhausted() -> None:
    repo = InMemoryStepRepository()
    repo.add(Area.PENDING_STEPS, "P1_01.1_a.md", _step())
    repo.add(Area.PENDING_STEPS, "P1_01.2_b.md", _step("P1_01.1"))
    repo.add(Area.PENDING_STEPS, "P1_02.1_c.md", _step("P1_01.2, P1_01.1"))
    repo.add(Area.PENDING_STEPS, "P1_02.2_d.md", _step("P1_02.1"))

    order = []
    for _ in range(10):
        resolution = _resolve(repo)
        if resolution.status != ResolutionStatus.NEXT_WRITTEN:
            break
        order.append(resolution.step.id)
        repo.move_step_to_done(resolution.step.filename)

    assert order == ["P1_01.1", "P1_01.2", "P1_02.1", "P1_02.2"]
    assert _resolve(repo).status == ResolutionStatus.EMPTY
