"""Executor interface and the custom action handler hook.

An Executor turns an Action into an Output. Executors never raise for
command failures; those come back as Recoverable values so the agent loop
can feed them to the model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from shellwise.context import Context
from shellwise.core import Action, HandlerResult, Output, Recoverable

# Called before the default executor. Return an Output (handled), a
# Recoverable (handled, failed) or None (not handled).
ActionHandler = Callable[[Context, Action], HandlerResult]


class Executor(ABC):
    """Runs actions in some environment."""

    @abstractmethod
    def execute(self, ctx: Context, action: Action) -> Output | Recoverable:
        """Run ``action`` and return its output or a recoverable failure.

        Raises:
            UnsupportedActionError: If the executor cannot run this kind.
        """
