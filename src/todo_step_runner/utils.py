"""Provide utility helpers for timestamps and small text checks."""

from __future__ import annotations

from datetime import datetime, timezone


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _log_stamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def _normalize_text(value: str) -> str:
    return " ".join(value.split()).strip().lower()


def _is_placeholder_text(value: str) -> bool:
    normalized = _normalize_text(value)
    normalized = normalized.strip().strip("()[]{}").strip(".,;:")
    return normalized in {"none", "n/a", "na", "nil", "null", "-"}


def _truncate(text: str, max_chars: int, marker: str = "\n...") -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker
