"""Module for in memory control plane client."""

import asyncio
import copy
from collections import defaultdict
from collections.abc import Callable
import itertools
import logging
from typing import Any, TypeVar, DefaultDict
import uuid

from build_reconciler.manifest import KubernetesObject, NamedResource
from build_reconciler.exceptions import (
    AlreadyExistsError,
    ConflictError,
    ObjectNotFoundError,
    ResourceTypeError,
)

from .client import Client, ClientEvent


_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=KubernetesObject)


class InMemoryClient(Client):
    """In-memory implementation of the Client interface.

    Objects are keyed by NamedResource and copied on every read and write so
    callers never share state with the client. Every write assigns a new
    resource version. Listeners are notified of successful writes.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryClient."""
        self._objects: dict[NamedResource, KubernetesObject] = {}
        self._versions = itertools.count(1)
        self._lock = asyncio.Lock()
        self._listeners: DefaultDict[ClientEvent, list[Callable[..., None]]] = (
            defaultdict(list)
        )

    async def get(self, resource_id: NamedResource, cls: type[T]) -> T:
        """Retrieve an object by resource identity and type."""
        async with self._lock:
            obj = self._objects.get(resource_id)
        if obj is None:
            raise ObjectNotFoundError(str(resource_id))
        if not isinstance(obj, cls):
            raise ResourceTypeError("InMemoryClient", cls, type(obj))
        return copy.deepcopy(obj)

    async def create(self, obj: T) -> T:
        """Persist a new object and return it as stored."""
        resource_id = obj.resource_id
        async with self._lock:
            if resource_id in self._objects:
                raise AlreadyExistsError(str(resource_id))
            stored = copy.deepcopy(obj)
            stored.metadata.uid = str(uuid.uuid4())
            stored.metadata.resource_version = str(next(self._versions))
            self._objects[resource_id] = stored
        _LOGGER.debug(
            "Created %s (resource version %s)",
            resource_id,
            stored.metadata.resource_version,
        )
        self._fire_event(ClientEvent.OBJECT_CREATED, resource_id, stored)
        return copy.deepcopy(stored)

    async def update(self, obj: T) -> T:
        """Replace an existing object and return it as stored."""
        resource_id = obj.resource_id
        async with self._lock:
            if (existing := self._objects.get(resource_id)) is None:
                raise ObjectNotFoundError(str(resource_id))
            if obj.metadata.resource_version != existing.metadata.resource_version:
                raise ConflictError(
                    str(resource_id),
                    obj.metadata.resource_version,
                    existing.metadata.resource_version,
                )
            stored = copy.deepcopy(obj)
            stored.metadata.uid = existing.metadata.uid
            stored.metadata.resource_version = str(next(self._versions))
            self._objects[resource_id] = stored
        _LOGGER.debug(
            "Updated %s (resource version %s)",
            resource_id,
            stored.metadata.resource_version,
        )
        self._fire_event(ClientEvent.OBJECT_UPDATED, resource_id, stored)
        return copy.deepcopy(stored)

    async def delete(self, resource_id: NamedResource) -> None:
        """Delete an object."""
        async with self._lock:
            if self._objects.pop(resource_id, None) is None:
                raise ObjectNotFoundError(str(resource_id))
        _LOGGER.debug("Deleted %s", resource_id)
        self._fire_event(ClientEvent.OBJECT_DELETED, resource_id, None)

    def list_objects(self, kind: str | None = None) -> list[KubernetesObject]:
        """List copies of all objects, optionally filtered by kind."""
        return [
            copy.deepcopy(obj)
            for resource_id, obj in self._objects.items()
            if kind is None or resource_id.kind == kind
        ]

    def add_listener(
        self,
        event: ClientEvent,
        callback: Callable[[NamedResource, KubernetesObject | None], None],
    ) -> Callable[[], None]:
        """Register a callback invoked after a successful write."""

        def remove() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        self._listeners[event].append(callback)
        return remove

    def _fire_event(self, event: ClientEvent, *args: Any) -> None:
        for cb in list(self._listeners[event]):  # Iterate over a copy for safe removal
            try:
                cb(*args)
            except Exception:
                _LOGGER.exception("Client listener callback failed for event %s", event)
