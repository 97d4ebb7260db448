"""Command execution for the agent loop.

Key classes:
- Executor: Base class for anything that runs actions
- ShellExecutor: Runs each command as a fresh ``bash -c`` process
- BlocklistValidator: Rejects commands matching destructive patterns
"""

from shellwise.execution.base import ActionHandler, Executor
from shellwise.execution.shell import DEFAULT_TIMEOUT, ShellExecutor
from shellwise.execution.validator import (
    DEFAULT_BLOCKED_PATTERNS,
    BlocklistValidator,
    CommandValidator,
    default_validator,
)

__all__ = [
    "ActionHandler",
    "BlocklistValidator",
    "CommandValidator",
    "DEFAULT_BLOCKED_PATTERNS",
    "DEFAULT_TIMEOUT",
    "Executor",
    "ShellExecutor",
    "default_validator",
]
