# test_config.py
from __future__ import annotations

import json

import pytest

import config
import paths
from gameplay_models import Difficulty


_ENV_NAMES = (
    "TAPBEAT_CONFIG_PATH",
    "TAPBEAT_CACHE_DIR",
    "TAPBEAT_CACHE_ENABLED",
    "TAPBEAT_LOG_LEVEL",
    "TAPBEAT_DEFAULT_DIFFICULTY",
    "TAPBEAT_LEAD_IN_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(paths, "default_config_candidates", lambda: [tmp_path / paths.CONFIG_FILE_NAME])


def _write(tmp_path, payload) -> "object":
    config_path = tmp_path / "custom.json"
    config_path.write_text(json.dumps(payload), encoding="utf-8")
    return config_path


def test_defaults_without_a_file():
    app_config, config_path = config.load_config()

    assert config_path is None
    assert app_config.game.lead_in_seconds == 3.0
    assert app_config.game.default_difficulty == Difficulty.MEDIUM
    assert app_config.detector.window_blocks == 8
    assert app_config.cache.enabled is True
    assert app_config.logging.level == "INFO"


def test_defaults_match_detector_parameters():
    app_config, _ = config.load_config()
    parameters = app_config.detector.to_parameters()

    assert parameters.low_pass_cutoff_hz == 150.0
    assert parameters.threshold_multiplier == 1.3
    assert parameters.min_beat_interval_seconds == 0.15


def test_settings_are_built_from_game_config():
    app_config, _ = config.load_config()
    settings = app_config.game.to_settings()

    assert settings.lead_in_seconds == 3.0
    assert settings.geometry.tap_zone_position == 0.92
    assert settings.hit_windows.good_seconds == 0.10
    assert settings.end_confirm_seconds == 0.25


def test_file_values_are_loaded(tmp_path):
    config_path = _write(tmp_path, {"game": {"default_difficulty": "HARD", "lead_in_seconds": 1.5}})

    app_config, resolved = config.load_config(config_path)

    assert resolved == config_path
    assert app_config.game.default_difficulty == Difficulty.HARD
    assert app_config.game.lead_in_seconds == 1.5


def test_working_directory_file_is_found(tmp_path):
    (tmp_path / paths.CONFIG_FILE_NAME).write_text(json.dumps({"logging": {"level": "debug"}}), encoding="utf-8")

    app_config, resolved = config.load_config()

    assert resolved == tmp_path / paths.CONFIG_FILE_NAME
    assert app_config.logging.level == "DEBUG"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("TAPBEAT_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("TAPBEAT_CACHE_ENABLED", "off")
    monkeypatch.setenv("TAPBEAT_LOG_LEVEL", "warning")
    monkeypatch.setenv("TAPBEAT_DEFAULT_DIFFICULTY", "easy")
    monkeypatch.setenv("TAPBEAT_LEAD_IN_SECONDS", "2.25")

    app_config, _ = config.load_config()

    assert app_config.cache.resolved_directory() == tmp_path / "cache"
    assert app_config.cache.enabled is False
    assert app_config.logging.level == "WARNING"
    assert app_config.game.default_difficulty == Difficulty.EASY
    assert app_config.game.lead_in_seconds == 2.25


def test_explicit_path_must_exist(monkeypatch, tmp_path):
    monkeypatch.setenv("TAPBEAT_CONFIG_PATH", str(tmp_path / "missing.json"))
    with pytest.raises(FileNotFoundError):
        config.load_config()


@pytest.mark.parametrize(
    "payload",
    [
        {"game": {"perfect_window_seconds": 0.2, "good_window_seconds": 0.1}},
        {"game": {"default_difficulty": "impossible"}},
        {"logging": {"level": "LOUD"}},
        {"detector": {"window_blocks": 0}},
        {"game": {"retire_position": 0.5}},
    ],
)
def test_invalid_values_raise_value_error(tmp_path, payload):
    with pytest.raises(ValueError):
        config.load_config(_write(tmp_path, payload))


def test_non_object_root_is_rejected(tmp_path):
    config_path = tmp_path / "list.json"
    config_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        config.load_config(config_path)


def test_to_json_round_trips():
    app_config, _ = config.load_config()
    dumped = json.loads(config.to_json(app_config))

    assert dumped["game"]["default_difficulty"] == "medium"
    assert config.AppConfig.model_validate(dumped) == app_config
