"""
config.py

Typed configuration loading and validation for TaikoBeat.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If TAIKOBEAT_CONFIG_PATH is set, that file is used (and must exist).
- Otherwise TaikoBeat searches these paths in order and uses the first one that exists:
  1) ./taikobeat_config.json (current working directory)
  2) <user config dir>/TaikoBeat/taikobeat_config.json
- If none exists, the built-in defaults are used.

Example config file (taikobeat_config.json)
{
  "gameplay": {
    "timing_window_ms": 300,
    "perfect_window_ms": 100,
    "good_window_ratio": 0.7,
    "tick_interval_ms": 16,
    "hard_mode": false
  },
  "audio": {
    "enabled": true,
    "poll_interval_ms": 500,
    "max_restart_attempts": 3
  },
  "library": {
    "songs_dir": "~/TaikoBeat/Songs"
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
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator

import paths


class GameplayConfig(BaseModel):
    timing_window_ms: int = Field(default=300, ge=1, description="Largest hit offset that still counts as a hit.")
    perfect_window_ms: int = Field(default=100, ge=0, description="Offset at or below which a hit is Perfect.")
    good_window_ratio: float = Field(default=0.7, gt=0.0, le=1.0, description="Good window as a share of the timing window.")
    tick_interval_ms: int = Field(default=16, ge=1, le=20, description="Expiry sweep cadence.")
    countdown_from: int = Field(default=3, ge=0, description="Countdown length in ticks.")
    countdown_tick_ms: int = Field(default=1000, ge=1)
    min_start_time_ms: int = Field(default=3000, ge=0, description="Earliest clock time of the first note.")
    settle_delay_ms: int = Field(default=1000, ge=0, description="Delay between the last judgement and Finished.")
    results_hold_ms: int = Field(default=2000, ge=0, description="Delay between Finished and surfaced results.")
    min_elapsed_ms: int = Field(default=5000, ge=0, description="Clock time before a session may finish.")
    hard_mode: bool = Field(default=False, description="Insert augmented notes between chart notes.")


class AudioConfig(BaseModel):
    enabled: bool = Field(default=True, description="Play chart audio through Qt Multimedia.")
    poll_interval_ms: int = Field(default=500, ge=10, description="Stall detection polling interval.")
    max_restart_attempts: int = Field(default=3, ge=0, description="Consecutive stall restarts before giving up.")


class LibraryConfig(BaseModel):
    songs_dir: Path = Field(default_factory=paths.songs_dir, description="Directory scanned for .osu charts.")
    high_scores_path: Path = Field(default_factory=paths.high_scores_path, description="High score JSON file.")

    @field_validator("songs_dir", "high_scores_path")
    @classmethod
    def expand_user(cls, value: Path) -> Path:
        return Path(value).expanduser()


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="CRITICAL, ERROR, WARNING, INFO or DEBUG")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized == "WARN":
            normalized = "WARNING"
        allowed = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        if normalized not in allowed:
            raise ValueError("level must be one of: CRITICAL, ERROR, WARNING, INFO, DEBUG")
        return normalized


class AppConfig(BaseModel):
    gameplay: GameplayConfig = Field(default_factory=GameplayConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("TaikoBeat", appauthor=False))
    return [
        Path.cwd() / "taikobeat_config.json",
        config_directory / "taikobeat_config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("TAIKOBEAT_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
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
    - TAIKOBEAT_TIMING_WINDOW_MS
    - TAIKOBEAT_TICK_INTERVAL_MS
    - TAIKOBEAT_HARD_MODE
    - TAIKOBEAT_AUDIO_ENABLED
    - TAIKOBEAT_SONGS_DIR
    - TAIKOBEAT_HIGH_SCORES_PATH
    - TAIKOBEAT_LOG_LEVEL
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    gameplay_section = ensure_nested(updated_config, "gameplay")
    audio_section = ensure_nested(updated_config, "audio")
    library_section = ensure_nested(updated_config, "library")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
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

    override_int("TAIKOBEAT_TIMING_WINDOW_MS", gameplay_section, "timing_window_ms")
    override_int("TAIKOBEAT_TICK_INTERVAL_MS", gameplay_section, "tick_interval_ms")
    override_bool("TAIKOBEAT_HARD_MODE", gameplay_section, "hard_mode")

    override_bool("TAIKOBEAT_AUDIO_ENABLED", audio_section, "enabled")

    override_string("TAIKOBEAT_SONGS_DIR", library_section, "songs_dir")
    override_string("TAIKOBEAT_HIGH_SCORES_PATH", library_section, "high_scores_path")

    override_string("TAIKOBEAT_LOG_LEVEL", logging_section, "level")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "(defaults)"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(mode="json"), ensure_ascii=False, indent=2)
