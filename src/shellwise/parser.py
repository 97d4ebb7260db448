"""Extract the single shell command from a model response."""

from __future__ import annotations

import re
from typing import Protocol

from shellwise.core import Action, ActionKind, Recoverable, RecoverableKind

# Match ```bash ... ``` blocks; the closing fence sits on its own line.
COMMAND_PATTERN = re.compile(r"```bash\s*\n(.*?)\n```", re.DOTALL)

NO_COMMAND_FEEDBACK = (
    "No bash command found. If the task is complete, respond with TASK_COMPLETE. "
    "Otherwise, provide exactly one command in ```bash``` block."
)
EMPTY_COMMAND_FEEDBACK = "Empty command in bash block. Please provide a valid command."


class Parser(Protocol):
    """Turns a raw model reply into an action or format feedback."""

    def parse(self, response: str) -> Action | Recoverable:
        ...


class BashParser:
    """Parse exactly one ```bash``` block out of free-form text."""

    def parse(self, response: str) -> Action | Recoverable:
        """Extract the command from ``response``.

        Returns:
            The Action, or a format Recoverable telling the model what to fix.
        """
        matches = COMMAND_PATTERN.findall(response)

        if not matches:
            return Recoverable(RecoverableKind.FORMAT, NO_COMMAND_FEEDBACK)

        if len(matches) > 1:
            return Recoverable(
                RecoverableKind.FORMAT,
                f"Found {len(matches)} commands, expected exactly one. "
                "Please provide a single command in ```bash``` block.",
            )

        command = matches[0].strip()
        if not command:
            return Recoverable(RecoverableKind.FORMAT, EMPTY_COMMAND_FEEDBACK)

        return Action(kind=ActionKind.SHELL, command=command)
