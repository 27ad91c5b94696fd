"""Exceptions related to build-reconciler."""

__all__ = [
    "ReconcileException",
    "InputException",
    "ClientException",
    "ObjectNotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "ResourceTypeError",
]


class ReconcileException(Exception):
    """Generic base exception used for this library."""


class InputException(ReconcileException):
    """Raised when the input objects or values are not formatted as expected."""


class ClientException(ReconcileException):
    """Raised when a call to the control plane fails.

    These are treated as transient by the caller and the whole reconcile is
    retried.
    """


class ObjectNotFoundError(ClientException):
    """Raised when an object is not found in the control plane."""

    def __init__(self, resource_name: str) -> None:
        super().__init__(f"Object {resource_name} not found")
        self.resource_name = resource_name


class AlreadyExistsError(ClientException):
    """Raised when creating an object that another actor already created."""

    def __init__(self, resource_name: str) -> None:
        super().__init__(f"Object {resource_name} already exists")
        self.resource_name = resource_name


class ConflictError(ClientException):
    """Raised when an update is based on a stale resource version."""

    def __init__(
        self,
        resource_name: str,
        expected_version: str | None,
        actual_version: str | None,
    ) -> None:
        super().__init__(
            f"Object {resource_name} has been modified: resource version "
            f"{expected_version or '<unset>'} does not match {actual_version}"
        )
        self.resource_name = resource_name
        self.expected_version = expected_version
        self.actual_version = actual_version


class ResourceTypeError(ReconcileException):
    """Raised when an object does not have the type a handler expects.

    This indicates an integration fault between a handler and the client rather
    than a problem with the cluster state.
    """

    def __init__(self, handler_name: str, expected: type, actual: type) -> None:
        super().__init__(
            f"{handler_name} expected current state of type {expected.__name__} "
            f"(was {actual.__name__})"
        )
        self.handler_name = handler_name
        self.expected = expected
        self.actual = actual
