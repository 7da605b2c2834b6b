# -*- coding: utf-8 -*-
########################
# logging_setup.py
########################
# Purpose:
# - One-time root logger configuration for the taikobeat CLI.
# - Resolves the effective level from environment, CLI flags and the config file.
#
# Design notes:
# - Level precedence, highest first: TAIKOBEAT_LOG_LEVEL, --verbose, --quiet, logging.level, INFO.
# - An environment value that is not a level name is ignored, not fatal.
# - A root logger that already has handlers (pytest, an embedding app) is left untouched.
#
########################
# Interfaces:
# Public functions:
# - resolve_log_level(args=None, *, config_level=None, environ=None) -> int
# - setup_logging(args=None, *, config_level=None, name="taikobeat") -> None
#
########################

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional


LOG_LEVEL_ENV = "TAIKOBEAT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LEVELS_BY_NAME = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _level_from_name(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    return _LEVELS_BY_NAME.get(str(raw).strip().upper())


def _flag(args: Any, name: str) -> bool:
    return bool(getattr(args, name, False)) if args is not None else False


def resolve_log_level(
    args: Any = None,
    *,
    config_level: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    env = os.environ if environ is None else environ
    env_level = _level_from_name(env.get(LOG_LEVEL_ENV))
    if env_level is not None:
        return env_level
    if _flag(args, "verbose"):
        return logging.DEBUG
    if _flag(args, "quiet"):
        return logging.WARNING
    return _level_from_name(config_level) or logging.INFO


def setup_logging(args: Any = None, *, config_level: Optional[str] = None, name: str = "taikobeat") -> None:
    """Install a stderr handler on the root logger unless one is already configured."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = resolve_log_level(args, config_level=config_level)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger(name).debug("Logging at %s", logging.getLevelName(level))
