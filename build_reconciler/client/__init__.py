"""
The client module provides the contract for reading and writing objects in the
control plane that the reconciler converges.

- Uses NamedResource as the key for all objects.
- Stores values as dataclass instances from manifest.py for type safety.
- Writes are guarded by the resource version of the object (optimistic
  concurrency), stale writes are rejected with ConflictError.

This abstract interface allows for various implementations. The in-memory
implementation is used for tests and for running the reconciler without a
cluster.
"""

from .client import Client, ClientEvent
from .in_memory import InMemoryClient

__all__ = [
    "Client",
    "ClientEvent",
    "InMemoryClient",
]
