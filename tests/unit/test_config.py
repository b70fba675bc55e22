from __future__ import annotations

from pathlib import Path

import pytest

from py_framecoach.config import (
    DEFAULT_CONFIG_PATH,
    GuidanceConfig,
    SafetyLimits,
    load_config,
)

from conftest import PROJECT_ROOT


def test_defaults() -> None:
    config = GuidanceConfig()
    assert config.fusion.padding == 0.4
    assert (config.fusion.min_width, config.fusion.min_height, config.fusion.min_depth) == (0.5, 1.4, 0.4)
    assert len(config.fusion.joints_of_interest) == 8
    assert config.continuity.trust_policy == "trust_upstream"
    assert config.continuity.smoothing_capacity == 3
    assert config.safety == SafetyLimits(40.0, 30.0, 45.0, 3.0, 0.7)
    assert config.framing.multipliers["full_body"] == 1.8
    assert config.scoring.partial_score_cap == 0.8
    assert config.engine.recompute_distance_m == 0.1
    assert config.engine.detection_interval_s == 0.5


def test_safety_ceiling_lookup() -> None:
    limits = SafetyLimits()
    assert limits.ceiling("roll") == 40.0
    assert limits.ceiling("pitch") == 30.0
    assert limits.ceiling("yaw") == 45.0
    assert limits.ceiling("z") == 3.0


def test_repository_config_matches_defaults() -> None:
    config = GuidanceConfig.from_yaml(PROJECT_ROOT / DEFAULT_CONFIG_PATH)
    assert config == GuidanceConfig()


def test_partial_yaml_keeps_defaults(tmp_path: Path) -> None:
    path = tmp_path / "guidance.yaml"
    path.write_text(
        "safety_limits:\n  max_roll_deg: 25\nframing:\n  multipliers:\n    close_up: 1.1\n",
        encoding="utf-8",
    )
    config = GuidanceConfig.from_yaml(path)
    assert config.safety.max_roll_deg == 25.0
    assert config.safety.max_pitch_deg == 30.0
    assert config.framing.multipliers["close_up"] == 1.1
    assert config.framing.multipliers["environmental"] == 2.5
    assert config.fusion == GuidanceConfig().fusion


def test_empty_yaml_is_all_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert GuidanceConfig.from_yaml(path) == GuidanceConfig()


def test_invalid_section_rejected() -> None:
    with pytest.raises(ValueError):
        GuidanceConfig.from_dict({"safety_limits": [1, 2, 3]})
    with pytest.raises(ValueError):
        GuidanceConfig.from_dict({"continuity": {"trust_policy": "nobody"}})


def test_load_config_from_env(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("engine:\n  recompute_distance_m: 0.25\n", encoding="utf-8")
    monkeypatch.setenv("FRAMECOACH_CONFIG", str(path))
    assert load_config().engine.recompute_distance_m == 0.25


def test_explicit_path_wins_over_env(tmp_path: Path, monkeypatch) -> None:
    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("engine:\n  detection_interval_s: 2.0\n", encoding="utf-8")
    monkeypatch.setenv("FRAMECOACH_CONFIG", str(tmp_path / "missing.yaml"))
    assert load_config(explicit).engine.detection_interval_s == 2.0


def test_missing_config_raises(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FRAMECOACH_CONFIG", str(tmp_path / "missing.yaml"))
    with pytest.raises(FileNotFoundError):
        load_config()


def test_builtin_defaults_without_any_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("FRAMECOACH_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    assert load_config() == GuidanceConfig()
