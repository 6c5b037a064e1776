"""
Logging setup for the league.

Every module logs through get_logger(__name__), which hangs off the
"fantasy_cricket" logger configured here. Deployments tune it with:

    FANTASY_CRICKET_LOG_LEVEL   level name, e.g. DEBUG (default INFO)
    FANTASY_CRICKET_LOG_DIR     when set, also write a timestamped log file there
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "fantasy_cricket"
LEVEL_ENV_VAR = "FANTASY_CRICKET_LOG_LEVEL"
DIR_ENV_VAR = "FANTASY_CRICKET_LOG_DIR"


def _level_from_env(default: int) -> int:
    name = os.environ.get(LEVEL_ENV_VAR)
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level in {LEVEL_ENV_VAR}: {name}")
    return level


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[int] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure the package logger. Safe to call again; handlers are replaced.

    Args:
        log_dir: Directory for a log file; falls back to FANTASY_CRICKET_LOG_DIR.
            No file is written when neither is given.
        level: Logging level; falls back to FANTASY_CRICKET_LOG_LEVEL, then INFO
        log_to_console: Whether to log stat insertions, trades etc. to stdout

    Returns:
        The configured package logger
    """
    if level is None:
        level = _level_from_env(logging.INFO)
    if log_dir is None:
        log_dir = os.environ.get(DIR_ENV_VAR) or None

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"league_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Module loggers hang off the package logger: get_logger(__name__)."""
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
