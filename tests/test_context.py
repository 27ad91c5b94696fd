"""Tests for the trace context."""

import asyncio
import logging

import pytest

from build_reconciler.context import current_trace, trace_context


def test_trace_context(caplog: pytest.LogCaptureFixture) -> None:
    """Test nested steps are logged with their enclosing steps."""
    caplog.set_level(logging.DEBUG, logger="build_reconciler.context")
    assert current_trace() == ""
    with trace_context("Build acme/cart-build-1"):
        with trace_context("WorkflowRole"):
            assert current_trace() == "Build acme/cart-build-1 > WorkflowRole"
        assert current_trace() == "Build acme/cart-build-1"
    assert current_trace() == ""
    assert "[Trace] > Build acme/cart-build-1 > WorkflowRole" in caplog.text
    assert "[Trace] < Build acme/cart-build-1" in caplog.text


def test_trace_context_error(caplog: pytest.LogCaptureFixture) -> None:
    """Test errors are logged and raised unmodified."""
    caplog.set_level(logging.DEBUG, logger="build_reconciler.context")
    with pytest.raises(ValueError, match="boom"):
        with trace_context("WorkflowRole"):
            raise ValueError("boom")
    assert "[Trace] ! WorkflowRole: boom" in caplog.text
    assert current_trace() == ""


async def test_trace_context_concurrent() -> None:
    """Test concurrent tasks each see their own trace."""
    started = asyncio.Event()
    traces: dict[str, str] = {}

    async def reconcile(name: str) -> None:
        with trace_context(name):
            if name == "first":
                await started.wait()
            else:
                started.set()
            await asyncio.sleep(0)
            traces[name] = current_trace()

    await asyncio.gather(reconcile("first"), reconcile("second"))
    assert traces == {"first": "first", "second": "second"}
