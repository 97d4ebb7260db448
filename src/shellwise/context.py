"""Cooperative cancellation for the agent loop.

A Context is the single ambient cancellation signal threaded through the
two places the loop blocks: the model query and the child process. It can
be cancelled explicitly, by a deadline, or by its parent.

Example:
    ctx = Context.with_timeout(600)
    agent.run("List files", ctx)

    # From another thread (e.g. a signal handler):
    ctx.cancel()
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, wait
from typing import Callable, TypeVar

from shellwise.errors import Cancelled, DeadlineExceeded

T = TypeVar("T")

# Granularity for waits that must also notice a parent's cancellation.
_POLL_INTERVAL = 0.05


class Context:
    """Cancellation signal with an optional deadline."""

    def __init__(
        self,
        deadline: float | None = None,
        parent: "Context | None" = None,
    ):
        """Create a context.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                context counts as cancelled. None means no deadline.
            parent: Context whose cancellation also cancels this one.
        """
        self._event = threading.Event()
        self._deadline = deadline
        self._parent = parent

    @classmethod
    def background(cls) -> "Context":
        """A context that is only cancelled by calling ``cancel()``."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "Context":
        """A context that cancels itself after ``seconds``."""
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: float | None = None) -> "Context":
        """Derive a context bounded by this one and an extra timeout."""
        deadline = self.deadline
        if timeout is not None:
            own = time.monotonic() + timeout
            deadline = own if deadline is None else min(deadline, own)
        return Context(deadline=deadline, parent=self)

    @property
    def deadline(self) -> float | None:
        """The effective deadline, including the parent's."""
        deadlines = [d for d in (self._deadline, self._parent_deadline()) if d is not None]
        return min(deadlines) if deadlines else None

    def _parent_deadline(self) -> float | None:
        return self._parent.deadline if self._parent else None

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled, past the deadline, or the parent is cancelled."""
        return self.err() is not None

    def err(self) -> Cancelled | None:
        """Return the reason this context is done, or None."""
        if self._event.is_set():
            return Cancelled()
        if self._parent is not None:
            parent_err = self._parent.err()
            if parent_err is not None:
                return parent_err
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceeded()
        return None

    def check(self) -> None:
        """Raise if the context is done."""
        error = self.err()
        if error is not None:
            raise error

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is none."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())


def run_in_context(ctx: Context, fn: Callable[[], T]) -> T:
    """Run a blocking call, giving up as soon as ``ctx`` is done.

    The call runs on a daemon worker thread. If the context is cancelled
    first, the worker is abandoned and the cancellation is raised.
    """
    ctx.check()
    future: Future = Future()

    def worker() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn())
        except BaseException as exc:
            future.set_exception(exc)

    thread = threading.Thread(target=worker, name="shellwise-call", daemon=True)
    thread.start()
    while True:
        wait([future], timeout=_POLL_INTERVAL)
        if future.done():
            return future.result()
        error = ctx.err()
        if error is not None:
            raise error
