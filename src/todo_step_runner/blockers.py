"""Gate resolution on the action-required area.

Any Markdown file in ``action_required/`` blocks selection until a human
resolves it. Renaming a marker with a ``resolved_`` prefix tells the gate the
named step is finished: the step is accepted and the marker is deleted.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .constants import RESOLVED_MARKER_PREFIX
from .identifiers import find_step_ids
from .models import BlockerMarker, GateResult
from .promoter import CompletionPromoter
from .repository import Area, StepRepository
from .scanner import find_pending_step


def parse_marker_name(filename: str) -> BlockerMarker:
    """Split ``[resolved_]<prefix>_<stepId>_<suffix>.md`` into its parts."""
    resolved = filename.startswith(RESOLVED_MARKER_PREFIX)
    ids = find_step_ids(filename)
    return BlockerMarker(filename=filename, step_id=ids[0] if ids else None, resolved=resolved)


def _done_filename(repo: StepRepository, step_id: str) -> Optional[str]:
    for filename in repo.list(Area.DONE_STEPS):
        if find_step_ids(filename)[:1] == [step_id]:
            return filename
    return None


def consume_resolved_markers(repo: StepRepository, promoter: CompletionPromoter) -> GateResult:
    """Accept the step behind every resolved marker, then delete the marker."""
    result = GateResult()
    for filename in repo.list(Area.ACTION_REQUIRED):
        marker = parse_marker_name(filename)
        if not marker.resolved:
            continue
        if marker.step_id is None:
            logger.warning("Resolved marker {} names no step; removing it", filename)
        else:
            pending = find_pending_step(repo, marker.step_id)
            if pending is not None:
                promotion = promoter.accept_step(pending)
                result.promoted_steps.extend(promotion.moved_steps)
            elif _done_filename(repo, marker.step_id) is not None:
                promoter.on_step_completed(marker.step_id)
            else:
                logger.warning("Resolved marker {} names unknown step {}", filename, marker.step_id)
        if repo.delete(Area.ACTION_REQUIRED, filename):
            logger.info("Consumed resolved marker: {}", filename)
            result.consumed_markers.append(filename)
    return result


def check_blockers(
    repo: StepRepository,
    promoter: CompletionPromoter,
    *,
    consume: bool = True,
) -> GateResult:
    """Reconcile resolved markers, then report every marker still blocking.

    With ``consume=False`` resolved markers are left alone (dry runs).

    Returns:
        A `GateResult` that is clear when no unresolved marker remains.
        ``blocking_files`` lists every blocking marker, not just the first.
    """
    result = consume_resolved_markers(repo, promoter) if consume else GateResult()
    result.blocking_files = [
        filename
        for filename in repo.list(Area.ACTION_REQUIRED)
        if not parse_marker_name(filename).resolved
    ]
    if result.blocking_files:
        logger.info("Blocked by action_required: {}", ", ".join(result.blocking_files))
    return result
