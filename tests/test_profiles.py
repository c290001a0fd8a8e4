"""Test runner config loading and GUI step classification."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from loguru import logger

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from todo_step_runner.config import (
    find_config_path,
    get_agent_command,
    get_prompts_dir,
    get_strict_depends_on,
    load_runner_config,
)
from todo_step_runner.constants import DEFAULT_AGENT_COMMAND
from todo_step_runner.models import GuiStepType
from todo_step_runner.profiles import (
    ExecutionProfile,
    compile_gui_patterns,
    is_gui_compound_step,
    load_model_recommendations,
)


def _capture_warnings() -> tuple[list, int]:
    messages: list = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    return messages, handler_id


def test_no_config_file(tmp_path: Path) -> None:
    assert find_config_path(tmp_path) is None
    assert load_runner_config(tmp_path) == ({}, None)


def test_yaml_config_wins_over_json(tmp_path: Path) -> None:
    (tmp_path / ".todo_runner").mkdir()
    (tmp_path / ".todo_runner" / "config.yaml").write_text("todo_dir: plans\n")
    (tmp_path / "gui-patterns.json").write_text(json.dumps({"presets": ["react"]}))

    config, err = load_runner_config(tmp_path)
    assert err is None
    assert config == {"todo_dir": "plans"}


def test_legacy_json_location(tmp_path: Path) -> None:
    (tmp_path / ".cursor").mkdir()
    (tmp_path / ".cursor" / "gui-patterns.json").write_text(json.dumps({"customPatterns": ["Widget"]}))

    config, err = load_runner_config(tmp_path)
    assert err is None
    assert config["customPatterns"] == ["Widget"]


def test_invalid_config_reports_error(tmp_path: Path) -> None:
    (tmp_path / "gui-patterns.json").write_text("{not json")

    config, err = load_runner_config(tmp_path)
    assert config == {}
    assert err is not None and "gui-patterns.json" in err


def test_config_getters(tmp_path: Path) -> None:
    assert get_agent_command({}) == DEFAULT_AGENT_COMMAND
    assert get_agent_command({"agent_command": "  my-agent {prompt}  "}) == "my-agent {prompt}"
    assert get_strict_depends_on({"strict_depends_on": True})
    assert not get_strict_depends_on({"strict_depends_on": "yes"})
    assert get_prompts_dir({}, tmp_path) is None
    assert get_prompts_dir({"prompts_dir": "prompts"}, tmp_path) == tmp_path.resolve() / "prompts"


def test_presets_and_custom_patterns_are_case_insensitive() -> None:
    patterns = compile_gui_patterns({"presets": ["vue"], "custom_patterns": [r"\bScaffold\b"]})
    assert any(pattern.search("Edit APP.VUE") for pattern in patterns)
    assert any(pattern.search("wrap in a scaffold") for pattern in patterns)


def test_unknown_preset_and_bad_regex_are_skipped() -> None:
    messages, handler_id = _capture_warnings()
    try:
        patterns = compile_gui_patterns({"presets": ["qt"], "customPatterns": ["(unclosed", "Widget"]})
    finally:
        logger.remove(handler_id)
    assert len(patterns) == 1
    assert any("Unknown GUI preset 'qt'" in message for message in messages)
    assert any("Invalid GUI pattern '(unclosed'" in message for message in messages)


def test_model_recommendations_merge_defaults() -> None:
    recommendations = load_model_recommendations(
        {"modelRecommendations": {"simple": "fast-ui", "bogus": "x"}}
    )
    assert recommendations["simple"] == "fast-ui"
    assert recommendations["compound"] == "claude-4.5-sonnet"
    assert "bogus" not in recommendations


def test_compound_marker_follows_the_id() -> None:
    assert is_gui_compound_step("P1_02.3_GUI_settings-screen.md")
    assert is_gui_compound_step("P1_02.3_gui_settings.md")
    assert not is_gui_compound_step("P1_02.3_settings_GUI_.md")
    assert not is_gui_compound_step("README_GUI_.md")


def test_profile_classifies_and_recommends() -> None:
    profile = ExecutionProfile.from_config({"presets": ["web"]})
    assert profile.classify("P1_01.1_GUI_a.md", "") == GuiStepType.COMPOUND
    assert profile.classify("P1_01.2_b.md", "Update static/site.css") == GuiStepType.SIMPLE
    assert profile.classify("P1_01.3_c.md", "Add a database index") is None
    assert profile.recommended_model(None) is None
    assert profile.recommended_model(GuiStepType.SIMPLE) == "claude-4.5-sonnet"


def test_no_patterns_means_no_content_detection() -> None:
    profile = ExecutionProfile.from_config({})
    assert profile.classify("P1_01.2_b.md", "src/components/App.tsx") is None


def test_undecodable_config_reports_error(tmp_path: Path) -> None:
    (tmp_path / "gui-patterns.json").write_bytes(b'{"presets": ["caf\xe9"]}')

    config, err = load_runner_config(tmp_path)
    assert config == {}
    assert err is not None and "UnicodeDecodeError" in err
