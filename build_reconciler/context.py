"""Utilities for tracing reconcile steps in debug logs."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


trace: contextvars.ContextVar[tuple[str, ...]] = contextvars.ContextVar(
    "trace", default=()
)


def current_trace() -> str:
    """Return the label of the enclosing reconcile steps."""
    return " > ".join(trace.get())


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    """Log entry and exit of a reconcile step.

    The stack is held in a context variable so concurrent reconciles of
    different entities each see their own trace.
    """
    token = trace.set(trace.get() + (name,))
    label = current_trace()
    t1 = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    except Exception as err:
        _LOGGER.debug("[Trace] ! %s: %s", label, err)
        raise
    finally:
        t2 = perf_counter()
        trace.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, (t2 - t1))
