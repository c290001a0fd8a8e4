"""Provide the public `todo_step_runner` package exports."""

from __future__ import annotations

from .engine import EngineContext, resolve
from .loop import RunOptions, run_steps
from .models import ExitCode, Resolution, ResolutionStatus
from .promoter import CompletionPromoter

__all__ = [
    "CompletionPromoter",
    "EngineContext",
    "ExitCode",
    "Resolution",
    "ResolutionStatus",
    "RunOptions",
    "resolve",
    "run_steps",
]
