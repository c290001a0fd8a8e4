"""Load optional runner configuration.

The first existing candidate wins: `.todo_runner/config.yaml`, then the
`gui-patterns.json` locations older projects already carry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .constants import CONFIG_CANDIDATES, DEFAULT_AGENT_COMMAND, DEFAULT_MODEL
from .io_utils import _load_data_with_error


def find_config_path(project_dir: Path) -> Optional[Path]:
    project_dir = project_dir.resolve()
    for candidate in CONFIG_CANDIDATES:
        path = project_dir / candidate
        if path.is_file():
            return path
    return None


def load_runner_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional runner config file.

    Args:
        project_dir: Repository root directory.

    Returns:
        A tuple of `(config, error_message)`. If no candidate exists, returns `({}, None)`.
    """
    path = find_config_path(project_dir)
    if path is None:
        return {}, None
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def load_config_or_defaults(project_dir: Path) -> dict[str, Any]:
    """Load config, logging a warning and falling back to defaults on error."""
    config, err = load_runner_config(project_dir)
    if err:
        logger.warning("Ignoring unreadable runner config: {}", err)
    return config


def _get_first(config: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in config:
            return config[key]
    return None


def _get_str(config: dict[str, Any], key: str) -> Optional[str]:
    raw = config.get(key)
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def get_todo_dir(config: dict[str, Any]) -> Optional[str]:
    return _get_str(config, "todo_dir")


def get_prompts_dir(config: dict[str, Any], project_dir: Path) -> Optional[Path]:
    raw = _get_str(config, "prompts_dir")
    if raw is None:
        return None
    path = Path(raw)
    return path if path.is_absolute() else project_dir.resolve() / path


def get_strict_depends_on(config: dict[str, Any]) -> bool:
    return config.get("strict_depends_on") is True


def get_agent_command(config: dict[str, Any]) -> str:
    return _get_str(config, "agent_command") or DEFAULT_AGENT_COMMAND


def get_model(config: dict[str, Any]) -> str:
    return _get_str(config, "model") or DEFAULT_MODEL


def get_presets(config: dict[str, Any]) -> list[str]:
    raw = config.get("presets")
    if not isinstance(raw, list):
        return []
    return [str(name) for name in raw]


def get_custom_patterns(config: dict[str, Any]) -> list[str]:
    raw = _get_first(config, "customPatterns", "custom_patterns")
    if not isinstance(raw, list):
        return []
    return [str(pattern) for pattern in raw]


def get_model_recommendations_config(config: dict[str, Any]) -> dict[str, Any]:
    raw = _get_first(config, "modelRecommendations", "model_recommendations")
    return raw if isinstance(raw, dict) else {}
