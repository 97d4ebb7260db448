"""Exception types raised by shellwise.

Inside the agent loop, failures travel as values (see ``shellwise.core``).
These exceptions are what escapes the loop, or what the collaborators raise
before the loop gets a chance to classify them.
"""

from __future__ import annotations


class ShellwiseError(Exception):
    """Base class for all shellwise errors."""


class ConfigError(ShellwiseError):
    """Configuration is missing or invalid."""


class ModelError(ShellwiseError):
    """The model query failed."""


class UnsupportedActionError(ShellwiseError):
    """An executor was handed an action kind it cannot run."""


class Cancelled(ShellwiseError):
    """The ambient context was cancelled."""

    def __init__(self, message: str = "context cancelled"):
        super().__init__(message)


class DeadlineExceeded(Cancelled):
    """The ambient context's deadline passed."""

    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)
