"""
config.py

Typed configuration loading and validation for tapbeat.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included, so a missing file means "all defaults")
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If TAPBEAT_CONFIG_PATH is set, that file is used (and must exist).
- Otherwise tapbeat searches these paths in order and uses the first one that exists:
  1) ./tapbeat_config.json (current working directory)
  2) <user config dir>/tapbeat/config.json

Example config file (tapbeat_config.json)
{
  "detector": {
    "window_blocks": 8,
    "threshold_multiplier": 1.3,
    "min_energy": 0.05
  },
  "game": {
    "lead_in_seconds": 3.0,
    "perfect_window_seconds": 0.05,
    "good_window_seconds": 0.10,
    "default_difficulty": "medium"
  },
  "cache": {
    "enabled": true,
    "directory": null
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

import gameplay_models
import judge
import onset_dsp
import paths
import rhythm_game_controller
import tile_scheduler


class DetectorConfig(BaseModel):
    low_pass_cutoff_hz: float = Field(default=150.0, gt=0.0, description="Cutoff of the kick emphasis low pass.")
    low_weight: float = Field(default=1.2, ge=0.0, description="Weight of the low band in the emphasized signal.")
    high_weight: float = Field(default=0.8, ge=0.0, description="Weight of the residual band in the emphasized signal.")
    block_seconds: float = Field(default=0.02, gt=0.0, le=0.5, description="Energy block width in seconds.")
    window_blocks: int = Field(default=8, ge=1, description="Blocks of context on each side of a peak.")
    threshold_multiplier: float = Field(default=1.3, gt=0.0, description="Peak must exceed local mean times this.")
    min_energy: float = Field(default=0.05, ge=0.0, description="Absolute energy floor for a beat.")
    min_beat_interval_seconds: float = Field(
        default=gameplay_models.MIN_BEAT_INTERVAL_SECONDS,
        gt=0.0,
        description="Minimum spacing between consecutive beats.",
    )

    def to_parameters(self) -> onset_dsp.DetectorParameters:
        return onset_dsp.DetectorParameters(
            low_pass_cutoff_hz=float(self.low_pass_cutoff_hz),
            low_weight=float(self.low_weight),
            high_weight=float(self.high_weight),
            block_seconds=float(self.block_seconds),
            window_blocks=int(self.window_blocks),
            threshold_multiplier=float(self.threshold_multiplier),
            min_energy=float(self.min_energy),
            min_beat_interval_seconds=float(self.min_beat_interval_seconds),
        )


class GameConfig(BaseModel):
    lead_in_seconds: float = Field(default=3.0, ge=0.0, description="Delay between start and audio playback.")
    tile_lead_seconds: float = Field(default=2.0, gt=0.0, description="Tile spawn time before its beat.")
    tap_zone_position: float = Field(default=0.92, gt=0.0, le=1.0, description="Normalized tap zone position.")
    retire_position: float = Field(default=1.2, gt=0.0, description="Tiles past this position are removed.")
    perfect_window_seconds: float = Field(default=0.05, gt=0.0)
    good_window_seconds: float = Field(default=0.10, gt=0.0)
    tick_hz: int = Field(default=60, ge=1, le=1000, description="Update loop rate.")
    end_grace_seconds: float = Field(default=1.0, ge=0.0)
    end_confirm_seconds: float = Field(default=0.25, ge=0.0, description="Transport must stay stopped this long.")
    feedback_seconds: float = Field(default=0.3, ge=0.0, description="Lifetime of the last accuracy signal.")
    default_difficulty: gameplay_models.Difficulty = Field(default=gameplay_models.Difficulty.MEDIUM)

    @field_validator("default_difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> gameplay_models.Difficulty:
        return gameplay_models.Difficulty.parse(value)

    @model_validator(mode="after")
    def validate_windows(self) -> "GameConfig":
        if self.good_window_seconds < self.perfect_window_seconds:
            raise ValueError("good_window_seconds must be >= perfect_window_seconds")
        if self.tile_lead_seconds <= self.good_window_seconds:
            raise ValueError("tile_lead_seconds must be greater than good_window_seconds")
        if self.retire_position <= self.tap_zone_position:
            raise ValueError("retire_position must be greater than tap_zone_position")
        return self

    def to_settings(self) -> rhythm_game_controller.ControllerSettings:
        return rhythm_game_controller.ControllerSettings(
            lead_in_seconds=float(self.lead_in_seconds),
            geometry=tile_scheduler.TileGeometry(
                lead_seconds=float(self.tile_lead_seconds),
                tap_zone_position=float(self.tap_zone_position),
                retire_position=float(self.retire_position),
            ),
            hit_windows=judge.HitWindows(
                perfect_seconds=float(self.perfect_window_seconds),
                good_seconds=float(self.good_window_seconds),
            ),
            end_grace_seconds=float(self.end_grace_seconds),
            end_confirm_seconds=float(self.end_confirm_seconds),
            feedback_seconds=float(self.feedback_seconds),
            default_difficulty=self.default_difficulty,
        )


class CacheConfig(BaseModel):
    enabled: bool = Field(default=True, description="Disable to always run detection.")
    directory: Optional[str] = Field(default=None, description="Override for the beat map cache directory.")

    @field_validator("directory")
    @classmethod
    def normalize_directory(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None

    def resolved_directory(self) -> Path:
        return paths.beat_map_cache_dir(self.directory)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError("level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return normalized


class AppConfig(BaseModel):
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    game: GameConfig = Field(default_factory=GameConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("TAPBEAT_CONFIG_PATH", "").strip()
    if explicit_path_text:
        explicit_path = Path(explicit_path_text)
        if not explicit_path.exists():
            raise FileNotFoundError(f"TAPBEAT_CONFIG_PATH points at a missing file: {explicit_path}")
        return explicit_path

    for candidate_path in paths.default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - TAPBEAT_CACHE_DIR
    - TAPBEAT_CACHE_ENABLED
    - TAPBEAT_LOG_LEVEL
    - TAPBEAT_DEFAULT_DIFFICULTY
    - TAPBEAT_LEAD_IN_SECONDS
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    game_section = ensure_nested(updated_config, "game")
    cache_section = ensure_nested(updated_config, "cache")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_float(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = float(value_text)
        except ValueError:
            return

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_string("TAPBEAT_CACHE_DIR", cache_section, "directory")
    override_bool("TAPBEAT_CACHE_ENABLED", cache_section, "enabled")
    override_string("TAPBEAT_LOG_LEVEL", logging_section, "level")
    override_string("TAPBEAT_DEFAULT_DIFFICULTY", game_section, "default_difficulty")
    override_float("TAPBEAT_LEAD_IN_SECONDS", game_section, "lead_in_seconds")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = _read_json_file_utf8(resolved_path) if resolved_path is not None else {}
    json_dict = _apply_environment_overrides(json_dict)

    source_text = str(resolved_path) if resolved_path is not None else "(defaults)"
    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(mode="json"), ensure_ascii=False, indent=2)
