"""Driver for one reconciliation pass over managed objects.

The driver is invoked by the reconcile loop once per required kind per
reconcile. Running it repeatedly with an unchanged desired state creates the
object once and afterwards only evaluates no-op updates.

Errors from any step are raised unmodified. Retry, backoff and timeouts are
the responsibility of the caller, and cancelling the calling task aborts the
in-flight call.
"""

from collections.abc import Iterable
import logging
from typing import Any, TypeVar

from build_reconciler.context import trace_context

from .handler import ResourceHandler

_LOGGER = logging.getLogger(__name__)

C = TypeVar("C")

__all__ = [
    "apply_resource",
    "apply_resources",
]


async def apply_resource(handler: ResourceHandler[C, Any], ctx: C) -> None:
    """Converge the object managed by the handler toward the desired state.

    1. If the object is not required, delete it and stop.
    2. Fetch the current state.
    3. Create the object if it does not exist.
    4. Otherwise let the handler update it if the managed fields diverge.
    """
    with trace_context(handler.name):
        if not handler.is_required(ctx):
            _LOGGER.debug("%s is not required, deleting", handler.name)
            await handler.delete(ctx)
            return

        current = await handler.get_current_state(ctx)
        if current is None:
            await handler.create(ctx)
            return

        await handler.update(ctx, current)


async def apply_resources(
    handlers: Iterable[ResourceHandler[C, Any]], ctx: C
) -> None:
    """Apply each handler in order, stopping at the first error."""
    for handler in handlers:
        await apply_resource(handler, ctx)
