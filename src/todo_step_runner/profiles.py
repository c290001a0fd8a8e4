"""Classify steps as GUI work and recommend a model for them.

A step is a compound GUI step when its filename carries ``_GUI_`` right
after the id (``P1_02.3_GUI_settings-screen.md``). It is a simple GUI step
when its content matches a configured pattern. Without configured patterns
there is no content-based detection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from .config import get_custom_patterns, get_model_recommendations_config, get_presets
from .constants import DEFAULT_MODEL_RECOMMENDATIONS, GUI_COMPOUND_NOTE, GUI_PRESETS, GUI_SIMPLE_NOTE
from .identifiers import step_id_from_filename
from .models import GuiStepType

_GUI_MARKER = "GUI_"


def compile_gui_patterns(config: dict[str, Any]) -> list[re.Pattern[str]]:
    """Build case-insensitive regexes from ``presets`` and custom patterns.

    Unknown presets and invalid regexes are logged and skipped.
    """
    sources: list[str] = []
    for name in get_presets(config):
        preset = GUI_PRESETS.get(name)
        if preset is None:
            logger.warning(
                "Unknown GUI preset '{}'. Available: {}", name, ", ".join(sorted(GUI_PRESETS))
            )
            continue
        sources.extend(preset)
    sources.extend(get_custom_patterns(config))

    compiled: list[re.Pattern[str]] = []
    for source in sources:
        try:
            compiled.append(re.compile(source, re.IGNORECASE))
        except re.error as exc:
            logger.warning("Invalid GUI pattern '{}': {}", source, exc)
    return compiled


def load_model_recommendations(config: dict[str, Any]) -> dict[str, str]:
    recommendations = dict(DEFAULT_MODEL_RECOMMENDATIONS)
    for key, value in get_model_recommendations_config(config).items():
        if key not in DEFAULT_MODEL_RECOMMENDATIONS:
            logger.warning(
                "Unknown modelRecommendations key '{}'. Valid keys: {}",
                key,
                ", ".join(DEFAULT_MODEL_RECOMMENDATIONS),
            )
            continue
        if isinstance(value, str) and value.strip():
            recommendations[key] = value.strip()
    return recommendations


def is_gui_compound_step(filename: str) -> bool:
    step_id = step_id_from_filename(filename)
    if step_id is None:
        return False
    rest = filename.rsplit("/", 1)[-1][len(step_id) + 1:]
    return rest.upper().startswith(_GUI_MARKER)


def gui_step_type(
    filename: str,
    content: Optional[str],
    patterns: list[re.Pattern[str]],
) -> Optional[GuiStepType]:
    if is_gui_compound_step(filename):
        return GuiStepType.COMPOUND
    if content and any(pattern.search(content) for pattern in patterns):
        return GuiStepType.SIMPLE
    return None


def gui_note(gui_type: Optional[GuiStepType]) -> str:
    if gui_type == GuiStepType.COMPOUND:
        return GUI_COMPOUND_NOTE
    if gui_type == GuiStepType.SIMPLE:
        return GUI_SIMPLE_NOTE
    return ""


@dataclass
class ExecutionProfile:
    """GUI detection patterns plus the models recommended per GUI type."""

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    recommendations: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MODEL_RECOMMENDATIONS))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ExecutionProfile":
        return cls(
            patterns=compile_gui_patterns(config),
            recommendations=load_model_recommendations(config),
        )

    def classify(self, filename: str, content: Optional[str]) -> Optional[GuiStepType]:
        return gui_step_type(filename, content, self.patterns)

    def recommended_model(self, gui_type: Optional[GuiStepType]) -> Optional[str]:
        if gui_type is None:
            return None
        return self.recommendations.get(gui_type.value)
