"""Decide which pending step may run next.

A pending step is ready when each declared dependency is either completed
or, under the default policy, not pending at all. Among ready steps the
lowest filename wins, so repeated calls over an unchanged tree agree.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from loguru import logger

from .models import BlockReason, Resolution, ResolutionStatus, Step

DependencyPolicy = Callable[[str, set[str]], bool]


def missing_dependency_is_satisfied(dep_id: str, pending_ids: set[str]) -> bool:
    """Treat a dependency with no pending step as already satisfied.

    Tolerates dependencies on steps that were pruned or never materialised.
    It also hides a dependency deleted by mistake, which is why the rule is
    a named function rather than part of the readiness filter.
    """
    return dep_id not in pending_ids


def missing_dependency_is_unsatisfied(dep_id: str, pending_ids: set[str]) -> bool:
    """Strict alternative: only completed dependencies count."""
    return False


def dependency_satisfied(
    dep_id: str,
    done_ids: set[str],
    pending_ids: set[str],
    policy: DependencyPolicy = missing_dependency_is_satisfied,
) -> bool:
    if dep_id in done_ids:
        return True
    if dep_id in pending_ids:
        return False
    return policy(dep_id, pending_ids)


def ready_steps(
    pending: Iterable[Step],
    done_ids: set[str],
    policy: DependencyPolicy = missing_dependency_is_satisfied,
    pending_ids: Optional[set[str]] = None,
) -> list[Step]:
    pending = list(pending)
    if pending_ids is None:
        pending_ids = {step.id for step in pending}
    ready = [
        step
        for step in pending
        if all(dependency_satisfied(dep, done_ids, pending_ids, policy) for dep in step.depends_on)
    ]
    return sorted(ready, key=lambda step: step.filename)


def resolve_next(
    pending: Iterable[Step],
    done_ids: set[str],
    *,
    exists: Optional[Callable[[Step], bool]] = None,
    policy: DependencyPolicy = missing_dependency_is_satisfied,
    pending_ids: Optional[set[str]] = None,
    max_retries: int = 1,
) -> Resolution:
    """Select exactly one ready step, or report why none can run.

    Args:
        pending: Pending steps, already filtered by phase if needed.
        done_ids: Ids of completed steps.
        exists: Re-check that a selected step file is still present. A miss
            falls through to the next candidate at most ``max_retries`` times,
            then degrades to EMPTY.
        policy: Rule applied to dependencies that are neither done nor pending.
        pending_ids: Every pending id, including steps a phase filter removed
            from ``pending``. Defaults to the ids in ``pending``.

    Returns:
        A `Resolution` with status BLOCKED, EMPTY, or NEXT_WRITTEN carrying
        the selected step (the artifact is not written here).
    """
    pending = list(pending)
    if not pending:
        return Resolution(status=ResolutionStatus.EMPTY, message="No pending steps.")

    ready = ready_steps(pending, done_ids, policy, pending_ids)
    if not ready:
        unready = sorted(step.id for step in pending)
        return Resolution(
            status=ResolutionStatus.BLOCKED,
            block_reason=BlockReason.DEPENDENCY,
            unready_ids=unready,
            message=f"No step ready. Pending: {', '.join(unready)}. Complete dependencies first.",
        )

    attempts = 0
    for candidate in ready:
        if exists is None or exists(candidate):
            return Resolution(status=ResolutionStatus.NEXT_WRITTEN, step=candidate)
        logger.warning("Selected step {} vanished before use", candidate.filename)
        attempts += 1
        if attempts > max_retries:
            break
    return Resolution(
        status=ResolutionStatus.EMPTY,
        message="No runnable step (step file(s) missing, e.g. already completed).",
    )
