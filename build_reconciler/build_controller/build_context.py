"""The context handed to resource handlers for one Build."""

from dataclasses import dataclass, field

from build_reconciler.config import BuildControllerConfig
from build_reconciler.exceptions import InputException
from build_reconciler.manifest import (
    Build,
    LABEL_COMPONENT,
    LABEL_ORGANIZATION,
    LABEL_PROJECT,
)


@dataclass
class BuildContext:
    """Desired state of a Build plus the controller configuration.

    Everything a handler needs to derive the identity and shape of its object
    is read from here, so reconciles of different builds share no state.
    """

    build: Build
    """The Build being reconciled."""

    config: BuildControllerConfig = field(default_factory=BuildControllerConfig)
    """The controller configuration."""

    def _required_label(self, key: str) -> str:
        if not (value := self.build.labels.get(key)):
            raise InputException(
                f"Build {self.build.resource_id.namespaced_name} missing label {key}"
            )
        return value

    @property
    def organization(self) -> str:
        return self._required_label(LABEL_ORGANIZATION)

    @property
    def project(self) -> str:
        return self._required_label(LABEL_PROJECT)

    @property
    def component(self) -> str:
        return self._required_label(LABEL_COMPONENT)
