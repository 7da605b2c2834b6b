# -*- coding: utf-8 -*-
########################
# paths.py
########################
# Purpose:
# - Central filesystem path helpers for the app.
# - Defines where songs and high scores live for the current user.
#
# Design notes:
# - Keep path derivation consistent across modules.
# - No Qt usage. Return pathlib.Path only.
# - Nothing here creates directories; writers create what they need.
#
########################
# Interfaces:
# Public functions:
# - app_data_dir() -> pathlib.Path
# - songs_dir() -> pathlib.Path
# - high_scores_path() -> pathlib.Path
#
# Outputs:
# - Default paths used by config.py (library section).
#
########################

from __future__ import annotations

from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "TaikoBeat"


def app_data_dir() -> Path:
    """Return the per-user data directory (not created automatically)."""
    return Path(user_data_dir(APP_NAME, appauthor=False))


def songs_dir() -> Path:
    """Return the directory scanned for .osu charts (not created automatically)."""
    return app_data_dir() / "Songs"


def high_scores_path() -> Path:
    """Return the high score file location (not created automatically)."""
    return app_data_dir() / "high_scores.json"
