"""The dataplane module converges managed objects toward a desired state.

A ResourceHandler describes one kind of managed object and how to create,
update and delete it for a given context. The apply driver runs one
reconciliation pass for a handler and is safe to call repeatedly.
"""

from .handler import ResourceHandler, KubernetesResourceHandler
from .apply import apply_resource, apply_resources

__all__ = [
    "ResourceHandler",
    "KubernetesResourceHandler",
    "apply_resource",
    "apply_resources",
]
