"""Client module for reading and writing objects in the control plane."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

from build_reconciler.manifest import KubernetesObject, NamedResource

T = TypeVar("T", bound=KubernetesObject)


class ClientEvent(str, Enum):
    """Enum for client write events."""

    OBJECT_CREATED = "object_created"
    OBJECT_UPDATED = "object_updated"
    OBJECT_DELETED = "object_deleted"


class Client(ABC):
    """Abstract base class for the control plane client.

    All calls may block on I/O and are cancellable: cancelling the calling task
    raises asyncio.CancelledError out of the call. Implementations do not retry
    or impose timeouts.
    """

    @abstractmethod
    async def get(self, resource_id: NamedResource, cls: type[T]) -> T:
        """Retrieve an object by resource identity and type.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ResourceTypeError: If the object is not an instance of `cls`.
            ClientException: For any other failure.
        """

    @abstractmethod
    async def create(self, obj: T) -> T:
        """Persist a new object and return it as stored.

        Raises:
            AlreadyExistsError: If an object with the same identity exists.
            ClientException: For any other failure.
        """

    @abstractmethod
    async def update(self, obj: T) -> T:
        """Replace an existing object and return it as stored.

        The object must carry the resource version it was read at.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ConflictError: If the resource version is stale.
            ClientException: For any other failure.
        """

    @abstractmethod
    async def delete(self, resource_id: NamedResource) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ClientException: For any other failure.
        """

    @abstractmethod
    def add_listener(
        self,
        event: ClientEvent,
        callback: Callable[[NamedResource, KubernetesObject | None], None],
    ) -> Callable[[], None]:
        """Register a callback invoked after a successful write.

        Returns a callable that can be called to remove the listener.
        """
