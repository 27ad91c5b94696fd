"""Reconcile the objects and pipeline status of platform builds.

The library is called from a reconcile loop with a Build. It converges the
objects the build pipeline needs and records pipeline progress as conditions
on the Build status.
"""

__all__ = [
    "build_controller",
    "client",
    "conditions",
    "config",
    "dataplane",
    "exceptions",
    "manifest",
    "resource_diff",
]
