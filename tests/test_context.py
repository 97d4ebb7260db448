"""Tests for cancellation contexts."""

import threading
import time

import pytest

from shellwise.context import Context, run_in_context
from shellwise.errors import Cancelled, DeadlineExceeded


class TestContext:
    """Tests for Context state."""

    def test_background_is_never_done(self):
        ctx = Context.background()

        assert ctx.err() is None
        assert ctx.cancelled is False
        assert ctx.deadline is None
        assert ctx.remaining() is None

    def test_cancel(self):
        """Test cancel() marks the context done with Cancelled."""
        ctx = Context.background()
        ctx.cancel()

        assert ctx.cancelled
        assert type(ctx.err()) is Cancelled
        with pytest.raises(Cancelled):
            ctx.check()

    def test_deadline_exceeded(self):
        """Test an expired deadline reports DeadlineExceeded."""
        ctx = Context.with_timeout(0)

        assert isinstance(ctx.err(), DeadlineExceeded)
        assert ctx.remaining() == 0.0

    def test_child_inherits_cancellation(self):
        """Test cancelling a parent cancels derived contexts."""
        parent = Context.background()
        child = parent.child(60)
        parent.cancel()

        assert type(child.err()) is Cancelled

    def test_child_cancel_does_not_cancel_parent(self):
        parent = Context.background()
        child = parent.child()
        child.cancel()

        assert child.cancelled
        assert not parent.cancelled

    def test_child_deadline_is_the_earlier_one(self):
        """Test a child's deadline never extends its parent's."""
        parent = Context.with_timeout(1)
        child = parent.child(60)

        assert child.deadline == parent.deadline
        assert parent.child(0.1).deadline < parent.deadline


class TestRunInContext:
    """Tests for run_in_context."""

    def test_returns_result(self):
        assert run_in_context(Context.background(), lambda: 42) == 42

    def test_propagates_exception(self):
        """Test errors raised by the call reach the caller unchanged."""

        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            run_in_context(Context.background(), boom)

    def test_already_cancelled_never_calls(self):
        """Test the call is skipped when the context is already done."""
        ctx = Context.background()
        ctx.cancel()
        calls = []

        with pytest.raises(Cancelled):
            run_in_context(ctx, lambda: calls.append(1))

        assert calls == []

    def test_gives_up_on_deadline(self):
        """Test a slow call is abandoned when the deadline passes."""
        ctx = Context.with_timeout(0.2)
        release = threading.Event()
        started = time.monotonic()

        try:
            with pytest.raises(DeadlineExceeded):
                run_in_context(ctx, lambda: release.wait(10))
        finally:
            release.set()

        assert time.monotonic() - started < 5

    def test_cancel_from_another_thread(self):
        """Test cancelling from another thread interrupts the wait."""
        ctx = Context.background()
        release = threading.Event()
        timer = threading.Timer(0.1, ctx.cancel)
        timer.start()

        try:
            with pytest.raises(Cancelled):
                run_in_context(ctx, lambda: release.wait(10))
        finally:
            release.set()
            timer.cancel()
