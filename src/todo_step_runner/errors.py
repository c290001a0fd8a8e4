"""Define the exception hierarchy for fatal runner conditions.

Recoverable conditions (blockers, unmet dependencies, vanished step files)
are returned as typed results; only configuration-shape problems raise.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class RunnerError(Exception):
    """Base class for errors that abort a runner invocation."""


class ConfigurationError(RunnerError):
    """Raised when a required file or configuration value is unusable."""


class MalformedTemplateError(ConfigurationError):
    """Raised when a prompt template lacks a required placeholder."""

    def __init__(self, template_path: Optional[Path], placeholder: str):
        self.template_path = template_path
        self.placeholder = placeholder
        where = str(template_path) if template_path else "prompt template"
        super().__init__(f"{where} must contain {placeholder} placeholder")


class MalformedDependsOnError(ConfigurationError):
    """Raised in strict mode when a step's "Depends on" section cannot be parsed."""

    def __init__(self, filename: str, raw_value: str):
        self.filename = filename
        self.raw_value = raw_value
        super().__init__(
            f"{filename}: malformed 'Depends on' section: {raw_value.strip()[:120]!r}"
        )
