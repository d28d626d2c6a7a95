# -*- coding: utf-8 -*-
########################
# paths.py
########################
# Purpose:
# - Central filesystem path helpers for the app.
# - Defines where the config file and the beat map cache live.
#
# Design notes:
# - Keep path derivation consistent across modules.
# - No Qt usage. Return pathlib.Path only.
# - Nothing here creates directories. BeatMapCache creates its own directory on first write.
#
########################
# Interfaces:
# Public functions:
# - user_config_directory() -> pathlib.Path
# - default_config_candidates() -> list[pathlib.Path]
# - beat_map_cache_dir(override: Optional[str] = None) -> pathlib.Path
#
# Inputs:
# - Optional override text from configuration (cache.directory or TAPBEAT_CACHE_DIR).
#
# Outputs:
# - Paths used by config.py and beat_map_cache.py.
#
########################

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from platformdirs import user_cache_dir, user_config_dir


APP_NAME = "tapbeat"
APP_AUTHOR = "tapbeat"
CONFIG_FILE_NAME = "tapbeat_config.json"


def user_config_directory() -> Path:
    return Path(user_config_dir(APP_NAME, APP_AUTHOR))


def default_config_candidates() -> List[Path]:
    """Config search order: working directory first, then the per user config directory."""
    return [
        Path.cwd() / CONFIG_FILE_NAME,
        user_config_directory() / "config.json",
    ]


def beat_map_cache_dir(override: Optional[str] = None) -> Path:
    """Return the beat map cache directory (not created automatically)."""
    override_text = str(override or "").strip()
    if override_text:
        return Path(override_text).expanduser()
    return Path(user_cache_dir(APP_NAME, APP_AUTHOR)) / "beat_maps"
