"""Cascade completion from steps to TODOs to phases.

Every operation is idempotent: promoting something already done finds no
source file and does nothing. Moves that lose a race are logged by the
repository and reported as not moved.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .identifiers import (
    in_scope,
    is_under,
    parse_phase_id,
    parse_todo_id,
    phase_id_of,
    step_id_from_filename,
    todo_id_of,
)
from .models import PromotionResult, TodoDoc
from .repository import Area, StepRepository
from .scanner import list_done_steps, list_pending_steps
from .sections import is_cancelled


def _as_step_id(step: str) -> Optional[str]:
    if step.endswith(".md") or "/" in step:
        return step_id_from_filename(step)
    return step_id_from_filename(step + "_") or None


class CompletionPromoter:
    """Move TODO and phase documents once nothing under them is pending."""

    def __init__(self, repo: StepRepository) -> None:
        self.repo = repo

    def _todo_docs(self, area: Area = Area.ACTIVE_TODOS) -> list[TodoDoc]:
        docs: list[TodoDoc] = []
        for filename in self.repo.list(area):
            todo_id = parse_todo_id(filename)
            if todo_id is None:
                continue
            content = self.repo.read(area, filename) or ""
            docs.append(
                TodoDoc(
                    id=todo_id,
                    filename=filename,
                    done=area == Area.DONE_TODOS,
                    cancelled=is_cancelled(content),
                )
            )
        return docs

    def _pending_step_ids(self) -> list[str]:
        return [step.id for step in list_pending_steps(self.repo).steps]

    def _pick_one(self, kind: str, entity_id: str, candidates: list[str], result: PromotionResult) -> str:
        chosen = sorted(candidates)[0]
        if len(candidates) > 1:
            warning = (
                f"Ambiguous {kind} promotion for {entity_id}: {', '.join(sorted(candidates))}; "
                f"moving {chosen} only"
            )
            logger.warning(warning)
            result.warnings.append(warning)
        return chosen

    def _promote_todo(self, todo_id: str, result: PromotionResult) -> None:
        candidates = [doc for doc in self._todo_docs() if doc.id == todo_id]
        if not candidates:
            logger.debug("No active TODO document for {}", todo_id)
            return
        live = [doc.filename for doc in candidates if not doc.cancelled]
        if not live:
            logger.info("TODO {} is cancelled; leaving it in place", todo_id)
            return
        chosen = self._pick_one("TODO", todo_id, live, result)
        if self.repo.move_todo_to_done(chosen):
            logger.info("Moved TODO to completed (no sibling steps left): {}", chosen)
            result.moved_todos.append(chosen)

    def on_step_completed(self, step: str) -> PromotionResult:
        """Promote the owning TODO when no sibling step remains pending.

        Args:
            step: Step id (``P1_01.2``) or step filename (``P1_01.2_login.md``).
        """
        result = PromotionResult()
        step_id = _as_step_id(step)
        if step_id is None:
            logger.debug("Not a step id or step filename: {}", step)
            return result
        todo_id = todo_id_of(step_id)

        remaining = [sid for sid in self._pending_step_ids() if is_under(sid, todo_id)]
        if remaining:
            logger.debug("TODO {} still has pending steps: {}", todo_id, ", ".join(remaining))
            return result
        if not list_done_steps(self.repo, todo_id):
            logger.debug("TODO {} has no completed steps; not promoting", todo_id)
            return result

        self._promote_todo(todo_id, result)
        return result

    def accept_step(self, filename: str) -> PromotionResult:
        """Move a pending step to done and cascade to its TODO."""
        result = PromotionResult()
        if self.repo.move_step_to_done(filename):
            logger.info("Moved to completed: {}", filename)
            result.moved_steps.append(filename)
        elif self.repo.exists(Area.DONE_STEPS, filename):
            logger.info("Step already in completed: {}", filename)
        else:
            logger.warning("Step file not found in pending or completed: {}", filename)
            return result
        return result.merge(self.on_step_completed(filename))

    def _phases_in_scope(self, scope: Optional[str], todos: list[TodoDoc]) -> list[str]:
        if scope:
            return [phase_id_of(scope)]
        phases = {parse_phase_id(name) for name in self.repo.list(Area.ACTIVE_PHASES)}
        phases.update(phase_id_of(doc.id) for doc in todos)
        return sorted(p for p in phases if p)

    def _phase_has_history(self, phase_id: str) -> bool:
        for doc in self._todo_docs(Area.DONE_TODOS):
            if phase_id_of(doc.id) == phase_id:
                return True
        return any(phase_id_of(todo_id_of(step.id)) == phase_id for step in list_done_steps(self.repo))

    def on_phase_exhausted(self, scope: Optional[str] = None) -> PromotionResult:
        """Promote finished TODOs and phases after the resolver reports EMPTY.

        Args:
            scope: Phase or TODO id the run was filtered to, or None for the
                whole tree.
        """
        result = PromotionResult()
        pending_ids = self._pending_step_ids()

        for doc in self._todo_docs():
            if doc.cancelled or not in_scope(doc.id, scope):
                continue
            if any(is_under(sid, doc.id) for sid in pending_ids):
                continue
            if not list_done_steps(self.repo, doc.id):
                continue
            if self.repo.exists(Area.ACTIVE_TODOS, doc.filename):
                self._promote_todo(doc.id, result)

        active_todos = self._todo_docs()
        for phase_id in self._phases_in_scope(scope, active_todos):
            self._promote_phase(phase_id, pending_ids, active_todos, result)
        return result

    def _promote_phase(
        self,
        phase_id: str,
        pending_ids: list[str],
        active_todos: list[TodoDoc],
        result: PromotionResult,
    ) -> None:
        docs = [name for name in self.repo.list(Area.ACTIVE_PHASES) if parse_phase_id(name) == phase_id]
        if not docs:
            return
        open_todos = [
            doc.id for doc in active_todos if not doc.cancelled and phase_id_of(doc.id) == phase_id
        ]
        if open_todos:
            logger.info("Phase {} still has open TODOs: {}", phase_id, ", ".join(open_todos))
            return
        open_steps = [sid for sid in pending_ids if phase_id_of(todo_id_of(sid)) == phase_id]
        if open_steps:
            logger.info("Phase {} still has pending steps: {}", phase_id, ", ".join(open_steps))
            return
        if not self._phase_has_history(phase_id):
            logger.debug("Phase {} has no completed work yet; not promoting", phase_id)
            return
        chosen = self._pick_one("phase", phase_id, docs, result)
        if self.repo.move_phase_to_done(chosen):
            logger.info("Moved phase document to completed: {}", chosen)
            result.moved_phases.append(chosen)
