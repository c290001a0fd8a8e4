"""List pending and completed steps and read their declared dependencies."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .errors import MalformedDependsOnError
from .identifiers import in_scope, step_id_from_filename
from .models import ScanResult, Step, StepLocation
from .repository import Area, StepRepository
from .sections import parse_depends_on


def _read_step(repo: StepRepository, filename: str, *, strict: bool) -> Optional[Step]:
    step_id = step_id_from_filename(filename)
    if step_id is None:
        return None
    content = repo.read(Area.PENDING_STEPS, filename)
    if content is None:
        # Vanished between listing and reading.
        return Step(id=step_id, filename=filename)
    declared = parse_depends_on(content)
    if declared.is_malformed:
        if strict:
            raise MalformedDependsOnError(filename, declared.raw)
        logger.warning(
            "{}: 'Depends on' has no step ids ({!r}); treating as no dependencies",
            filename,
            declared.raw.strip()[:80],
        )
    return Step(id=step_id, filename=filename, depends_on=declared.ids)


def list_pending_steps(
    repo: StepRepository,
    phase_filter: Optional[str] = None,
    *,
    strict: bool = False,
) -> ScanResult:
    """Read every conforming step file in the pending area.

    Args:
        repo: Step repository to read from.
        phase_filter: Optional phase or TODO id; only steps equal to it or
            nested under it are returned.
        strict: Raise `MalformedDependsOnError` instead of treating a
            malformed "Depends on" section as empty.

    Returns:
        A `ScanResult` whose `filter_excluded_all` flag tells "filter matched
        nothing" apart from "no pending steps at all".
    """
    steps: list[Step] = []
    for filename in repo.list(Area.PENDING_STEPS):
        step = _read_step(repo, filename, strict=strict)
        if step is not None:
            steps.append(step)
    all_ids = {step.id for step in steps}
    total = len(steps)
    if phase_filter:
        steps = [step for step in steps if in_scope(step.id, phase_filter)]
    return ScanResult(
        steps=steps,
        phase_filter=phase_filter,
        total_pending=total,
        all_pending_ids=all_ids,
    )


def list_done_step_ids(repo: StepRepository) -> set[str]:
    ids: set[str] = set()
    for filename in repo.list(Area.DONE_STEPS):
        step_id = step_id_from_filename(filename)
        if step_id:
            ids.add(step_id)
    return ids


def list_done_steps(repo: StepRepository, scope: Optional[str] = None) -> list[Step]:
    done: list[Step] = []
    for filename in repo.list(Area.DONE_STEPS):
        step_id = step_id_from_filename(filename)
        if step_id and in_scope(step_id, scope):
            done.append(Step(id=step_id, filename=filename, location=StepLocation.DONE))
    return done


def find_pending_step(repo: StepRepository, step_id: str) -> Optional[str]:
    """Return the pending filename carrying ``step_id``, first by name."""
    for filename in repo.list(Area.PENDING_STEPS):
        if step_id_from_filename(filename) == step_id:
            return filename
    return None
