"""File- and environment-backed settings.

Settings come from an optional ``config.toml`` and from environment
variables; environment variables win. Prompts usually live in the file,
credentials in the environment.

Example config.toml:
    system_prompt = "You are an autonomous agent..."
    user_prompt = "Work in the current repository. Task: {task}"
    model = "claude-sonnet-4-20250514"
    max_steps = 25
    command_timeout = "30s"
    working_dir = "."
    blocked_patterns = ["rm\\\\s+-rf", "shutdown"]
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shellwise.agent import DEFAULT_MAX_STEPS, DEFAULT_SYSTEM_PROMPT, AgentConfig
from shellwise.errors import ConfigError
from shellwise.execution import DEFAULT_TIMEOUT
from shellwise.models import DEFAULT_MODEL

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"
TASK_PLACEHOLDER = "{task}"
DEFAULT_USER_PROMPT = TASK_PLACEHOLDER

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


@dataclass
class Settings:
    """Runtime settings for the CLI and embedders."""

    api_key: str | None = None
    base_url: str | None = None
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    user_prompt: str = DEFAULT_USER_PROMPT
    max_steps: int = DEFAULT_MAX_STEPS
    command_timeout: float = DEFAULT_TIMEOUT
    working_dir: str | None = None
    blocked_patterns: list[str] | None = None
    log_level: str | None = None
    env: str = "dev"
    source: Path | None = field(default=None, compare=False)

    def validate(self) -> None:
        """Check that required values are present and sane.

        Raises:
            ConfigError: Describing the first problem found.
        """
        if not self.api_key:
            raise ConfigError("ANTHROPIC_API_KEY is required")
        if not self.system_prompt.strip():
            raise ConfigError("system_prompt must not be empty")
        if not self.user_prompt.strip():
            raise ConfigError("user_prompt must not be empty")
        if self.max_steps <= 0:
            raise ConfigError(f"max_steps must be positive, got {self.max_steps}")
        if self.command_timeout <= 0:
            raise ConfigError(f"command_timeout must be positive, got {self.command_timeout}")
        if self.working_dir and not Path(self.working_dir).is_dir():
            raise ConfigError(f"working_dir does not exist: {self.working_dir}")

    def render_task(self, task: str) -> str:
        """Substitute ``task`` into the user prompt template."""
        if TASK_PLACEHOLDER not in self.user_prompt:
            return f"{self.user_prompt}\n\n{task}"
        return self.user_prompt.replace(TASK_PLACEHOLDER, task)

    def agent_config(self) -> AgentConfig:
        """Build the AgentConfig these settings describe."""
        return AgentConfig(
            system_prompt=self.system_prompt,
            max_steps=self.max_steps,
            command_timeout=self.command_timeout,
            working_dir=self.working_dir,
            blocked_patterns=self.blocked_patterns,
        )


def load_settings(directory: Path | str = ".") -> Settings:
    """Load settings from ``<directory>/config.toml`` and the environment.

    SHELLWISE_CONFIG_FILE names an explicit file, which then must exist.

    Raises:
        ConfigError: If the file is unreadable or a value can't be parsed.
    """
    explicit = os.getenv("SHELLWISE_CONFIG_FILE")
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")
    else:
        path = Path(directory) / CONFIG_FILENAME

    file_config = _load_toml(path) if path.is_file() else {}
    source = path if path.is_file() else None

    settings = Settings(source=source)

    settings.system_prompt = _to_optional_string(file_config.get("system_prompt")) or settings.system_prompt
    settings.user_prompt = _to_optional_string(file_config.get("user_prompt")) or settings.user_prompt
    settings.model = _to_optional_string(file_config.get("model")) or settings.model
    settings.working_dir = _to_optional_string(file_config.get("working_dir"))
    settings.log_level = _to_optional_string(file_config.get("log_level"))
    if "max_steps" in file_config:
        settings.max_steps = _to_int(file_config["max_steps"], "max_steps")
    if "command_timeout" in file_config:
        settings.command_timeout = parse_duration(file_config["command_timeout"], "command_timeout")
    if "blocked_patterns" in file_config:
        settings.blocked_patterns = _to_string_list(file_config["blocked_patterns"], "blocked_patterns")

    settings.api_key = os.getenv("ANTHROPIC_API_KEY") or os.getenv("SHELLWISE_API_KEY") or None
    settings.base_url = os.getenv("SHELLWISE_BASE_URL") or None
    settings.model = os.getenv("SHELLWISE_MODEL") or settings.model
    settings.working_dir = os.getenv("SHELLWISE_WORKING_DIR") or settings.working_dir
    settings.log_level = os.getenv("SHELLWISE_LOG_LEVEL") or settings.log_level
    settings.env = (os.getenv("SHELLWISE_ENV") or settings.env).strip().lower()
    if os.getenv("SHELLWISE_MAX_STEPS"):
        settings.max_steps = _to_int(os.environ["SHELLWISE_MAX_STEPS"], "SHELLWISE_MAX_STEPS")
    if os.getenv("SHELLWISE_COMMAND_TIMEOUT"):
        settings.command_timeout = parse_duration(
            os.environ["SHELLWISE_COMMAND_TIMEOUT"], "SHELLWISE_COMMAND_TIMEOUT"
        )

    logger.debug(
        "settings loaded source=%s model=%s max_steps=%s timeout=%s",
        source,
        settings.model,
        settings.max_steps,
        settings.command_timeout,
    )
    return settings


def parse_duration(value: Any, name: str = "duration") -> float:
    """Parse seconds from a number or a string like ``"30s"``, ``"2m"``, ``"500ms"``.

    Raises:
        ConfigError: If the value is not a duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid {name}: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if match:
            return float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    raise ConfigError(f"invalid {name}: {value!r}")


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"failed to read {path}: {exc}") from exc


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _to_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"invalid {name}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"invalid {name}: {value!r}")


def _to_string_list(value: object, name: str) -> list[str]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise ConfigError(f"invalid {name}: expected a list of strings")
