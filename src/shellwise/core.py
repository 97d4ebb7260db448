"""Core types for the shell agent loop.

This module defines the values passed between the loop and its collaborators:
- Message: One entry in the conversation history
- Action: A parsed command the model asked to run
- Output: What a command produced
- StepOutcome: The closed set of results a single step can produce
  (Ok, Recoverable, Terminal, Fatal)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class Role(str, Enum):
    """Sender of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A message in the conversation history."""

    role: Role
    content: str

    def to_api(self) -> dict:
        """Convert to the chat API format."""
        return {"role": self.role.value, "content": self.content}

    def __str__(self) -> str:
        return f"{self.role.value}: {self.content}"


class ActionKind(str, Enum):
    """Kinds of action the model can request."""

    SHELL = "shell"
    """A single shell command, run with ``bash -c``."""


@dataclass(frozen=True)
class Action:
    """A command extracted from a model response."""

    kind: ActionKind
    command: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.command}"


@dataclass(frozen=True)
class Output:
    """Result of running one action."""

    stdout: str = ""
    stderr: str = ""

    exit_code: int = 0
    """Process exit status. Stays 0 when the process never started."""

    timed_out: bool = False
    """True if the command was killed because its deadline passed."""

    def __str__(self) -> str:
        """Combine stdout and stderr for feedback messages."""
        if self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout


class TerminationReason(str, Enum):
    """Why the loop stopped."""

    COMPLETE = "complete"
    STEP_LIMIT = "step_limit"
    COST_LIMIT = "cost_limit"
    USER_ABORT = "user_abort"


class RecoverableKind(str, Enum):
    """Failures the loop feeds back to the model instead of raising."""

    FORMAT = "format"
    """The response did not contain exactly one usable command."""

    TIMEOUT = "timeout"
    """The command ran past its deadline."""

    EXECUTION = "execution"
    """The command failed to start or exited non-zero."""

    BLOCKED = "blocked"
    """The command matched a blocklist pattern and was never run."""


# =========================================================================
# Step outcomes
# =========================================================================


@dataclass(frozen=True)
class Ok:
    """A non-terminal step. Carries the raw model response."""

    response: str


@dataclass(frozen=True)
class Recoverable:
    """A failure that becomes a user-role feedback message."""

    kind: RecoverableKind
    feedback: str

    output: Output | None = None
    """Output captured before the failure, when a process ran."""

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.feedback}"


@dataclass(frozen=True)
class Terminal:
    """The loop is done. This is a normal exit, not an error."""

    reason: TerminationReason
    output: str = ""


@dataclass(frozen=True)
class Fatal:
    """An error that aborts the session. ``run`` re-raises ``error``."""

    error: BaseException


StepOutcome = Union[Ok, Recoverable, Terminal, Fatal]

# A custom action handler returns an Output when it handled the action,
# a Recoverable when it handled it and failed, or None to fall through
# to the default executor.
HandlerResult = Union[Output, Recoverable, None]
