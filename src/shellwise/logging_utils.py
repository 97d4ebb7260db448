"""Logging helpers for shellwise."""

from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEVELOPMENT_ENVS = {"", "dev", "test"}


def is_development_env() -> bool:
    """True when SHELLWISE_ENV is unset, ``dev`` or ``test``."""
    return os.getenv("SHELLWISE_ENV", "").strip().lower() in DEVELOPMENT_ENVS


def default_log_level() -> str:
    return "DEBUG" if is_development_env() else "INFO"


def configure_logging(log_level: str | None = None, log_file: str | None = None) -> None:
    """Configure stdlib logging for the ``shellwise`` logger.

    Level precedence: the argument, then SHELLWISE_LOG_LEVEL, then DEBUG in
    development and INFO in production.

    Raises:
        ValueError: If the level name is not a logging level.
    """
    env_level = os.getenv("SHELLWISE_LOG_LEVEL")
    level_name = (log_level or env_level or default_log_level()).upper()
    level = logging.getLevelName(level_name)
    if isinstance(level, str):
        raise ValueError(f"Invalid log level: {level_name}")

    handler: logging.Handler
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))

    logger = logging.getLogger("shellwise")
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers = [handler]


def abbreviate(text: str, limit: int = 200) -> str:
    """Return a single-line, truncated preview string."""
    if text is None:
        return ""
    flattened = text.replace("\n", "\\n")
    if len(flattened) <= limit:
        return flattened
    return f"{flattened[:limit]}..."
