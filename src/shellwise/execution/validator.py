"""Blocklist validation for shell commands.

A validator is consulted before any process is started. The first pattern
that matches blocks the command; the rest are not evaluated.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Protocol

from shellwise.core import Recoverable, RecoverableKind

logger = logging.getLogger(__name__)

DEFAULT_BLOCKED_PATTERNS: tuple[str, ...] = (
    r"rm\s+-[rf]*\s+/",  # rm -rf / and friends
    r"rm\s+-[rf]*\s+\*",  # rm -rf *
    r"rm\s+-[rf]*\s+~",  # rm -rf ~
    r">\s*/dev/sd",  # raw writes to disks
    r"mkfs",
    r"dd\s+if=.*/dev/",
    r"dd\s+of=.*/dev/",
    r"chmod\s+777\s+/",
    r"chown\s+-R\s+.*\s+/",
    r"curl.*\|\s*(ba)?sh",  # pipe to shell
    r"wget.*\|\s*(ba)?sh",
    r":\(\)\{\s*:\|:&\s*\};:",  # fork bomb
    r"/dev/null\s*>\s*/etc/",
    r">\s*/etc/passwd",
    r">\s*/etc/shadow",
    r"shutdown",
    r"reboot",
    r"init\s+0",
    r"halt",
    r"poweroff",
)


class CommandValidator(Protocol):
    """Decides whether a command may run."""

    def validate(self, command: str) -> Recoverable | None:
        ...


class BlocklistValidator:
    """Block commands that match any of an ordered set of patterns."""

    def __init__(self, patterns: Iterable[str]):
        """Compile the patterns.

        Args:
            patterns: Regular expressions, checked in order.

        Raises:
            ValueError: If a pattern does not compile.
        """
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as exc:
                raise ValueError(f"invalid pattern {pattern!r}: {exc}") from exc
        self._patterns: tuple[re.Pattern[str], ...] = tuple(compiled)

    @property
    def patterns(self) -> tuple[str, ...]:
        """The pattern sources, in evaluation order."""
        return tuple(p.pattern for p in self._patterns)

    def validate(self, command: str) -> Recoverable | None:
        """Return a blocked Recoverable for the first match, else None."""
        for pattern in self._patterns:
            if pattern.search(command):
                logger.info("command blocked pattern=%s", pattern.pattern)
                return Recoverable(
                    RecoverableKind.BLOCKED,
                    f"Command blocked for safety: matches pattern {pattern.pattern!r}. "
                    "Please use a safer alternative.",
                )
        return None

    def __repr__(self) -> str:
        return f"<BlocklistValidator(patterns={len(self._patterns)})>"


def default_validator() -> BlocklistValidator:
    """A validator over DEFAULT_BLOCKED_PATTERNS."""
    return BlocklistValidator(DEFAULT_BLOCKED_PATTERNS)
