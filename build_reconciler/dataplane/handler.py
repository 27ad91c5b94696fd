"""Contract implemented by every kind of managed object."""

from abc import ABC, abstractmethod
import logging
from typing import Generic, TypeVar

from build_reconciler.client import Client
from build_reconciler.exceptions import ObjectNotFoundError, ResourceTypeError
from build_reconciler.manifest import KubernetesObject, NamedResource
from build_reconciler.resource_diff import is_managed_label

_LOGGER = logging.getLogger(__name__)

C = TypeVar("C")
T = TypeVar("T", bound=KubernetesObject)


class ResourceHandler(ABC, Generic[C, T]):
    """Manages one kind of object on behalf of a logical entity.

    The context `C` carries the desired state. The identity of the managed
    object is a pure function of the context, never of the object's current
    state. `T` is the typed current state of the object.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the kind of object, used for logging only."""

    @abstractmethod
    def is_required(self, ctx: C) -> bool:
        """Return True if the object should exist for this context."""

    @abstractmethod
    async def get_current_state(self, ctx: C) -> T | None:
        """Fetch the object, returning None if it does not exist.

        Any other failure is raised and treated as transient by the caller.
        """

    @abstractmethod
    async def create(self, ctx: C) -> None:
        """Create the object from the context.

        Only called when `get_current_state` returned None. An object created
        concurrently by another actor is raised as an error.
        """

    @abstractmethod
    async def update(self, ctx: C, current: T) -> None:
        """Write the desired object if it diverges from the current state.

        The write carries the resource version of `current` so a concurrent
        modification is rejected rather than overwritten.
        """

    @abstractmethod
    async def delete(self, ctx: C) -> None:
        """Delete the object. Deleting an absent object succeeds."""


class KubernetesResourceHandler(ResourceHandler[C, T]):
    """A ResourceHandler for objects stored through the control plane client.

    Subclasses describe the desired object with `make_resource` and decide
    whether the managed fields diverge with `should_update`.
    """

    resource_cls: type[T]
    """Type of the object managed by this handler."""

    def __init__(self, client: Client) -> None:
        """Initialize the handler with the client used for all calls."""
        self._client = client

    @abstractmethod
    def make_resource(self, ctx: C) -> T:
        """Build the desired object for the context."""

    @abstractmethod
    def should_update(self, current: T, desired: T) -> bool:
        """Return True if the managed fields of the objects differ.

        Must be deterministic and free of side effects.
        """

    def preserve_unmanaged_fields(self, current: T, desired: T) -> None:
        """Copy fields owned by other actors from `current` before writing."""

    def resource_id(self, ctx: C) -> NamedResource:
        """Return the identity of the object for the context."""
        return self.make_resource(ctx).resource_id

    async def get_current_state(self, ctx: C) -> T | None:
        resource_id = self.resource_id(ctx)
        try:
            return await self._client.get(resource_id, self.resource_cls)
        except ObjectNotFoundError:
            _LOGGER.debug("%s %s does not exist", self.name, resource_id)
            return None

    async def create(self, ctx: C) -> None:
        desired = self.make_resource(ctx)
        _LOGGER.info("Creating %s %s", self.name, desired.resource_id)
        await self._client.create(desired)

    async def update(self, ctx: C, current: T) -> None:
        if not isinstance(current, self.resource_cls):
            raise ResourceTypeError(self.name, self.resource_cls, type(current))
        desired = self.make_resource(ctx)
        if not self.should_update(current, desired):
            _LOGGER.debug("%s %s is up to date", self.name, desired.resource_id)
            return

        # Keep the metadata owned by other actors
        desired.metadata.labels = {
            **{
                k: v
                for k, v in (current.metadata.labels or {}).items()
                if not is_managed_label(k)
            },
            **(desired.metadata.labels or {}),
        } or None
        desired.metadata.annotations = current.metadata.annotations
        desired.metadata.uid = current.metadata.uid
        desired.metadata.resource_version = current.metadata.resource_version
        self.preserve_unmanaged_fields(current, desired)
        _LOGGER.info("Updating %s %s", self.name, desired.resource_id)
        await self._client.update(desired)

    async def delete(self, ctx: C) -> None:
        resource_id = self.resource_id(ctx)
        try:
            await self._client.delete(resource_id)
        except ObjectNotFoundError:
            _LOGGER.debug("%s %s already deleted", self.name, resource_id)
            return
        _LOGGER.info("Deleted %s %s", self.name, resource_id)
