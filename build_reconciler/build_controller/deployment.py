"""Auto deployment of the artifact produced by a Build."""

from abc import ABC, abstractmethod
import logging

from build_reconciler.client import Client
from build_reconciler.dataplane import KubernetesResourceHandler, apply_resource
from build_reconciler.manifest import Deployment, DeploymentSpec, ObjectMeta
from build_reconciler.resource_diff import labels_differ

from .build_context import BuildContext
from .naming import (
    make_deployable_artifact_name,
    make_deployment_labels,
    make_deployment_name,
)

_LOGGER = logging.getLogger(__name__)


class DeploymentHandler(KubernetesResourceHandler[BuildContext, Deployment]):
    """Manages the Deployment of a component into the auto deploy environment.

    Only the artifact reference and revision history limit are managed here.
    Configuration overrides belong to whoever maintains the environment and
    are carried over on update.
    """

    resource_cls = Deployment

    @property
    def name(self) -> str:
        return "Deployment"

    def is_required(self, ctx: BuildContext) -> bool:
        return ctx.build.spec.auto_deploy

    def make_resource(self, ctx: BuildContext) -> Deployment:
        return Deployment(
            metadata=ObjectMeta(
                name=make_deployment_name(ctx),
                namespace=ctx.build.namespace,
                labels=make_deployment_labels(ctx),
            ),
            spec=DeploymentSpec(
                deployment_artifact_ref=make_deployable_artifact_name(ctx),
                revision_history_limit=ctx.config.revision_history_limit,
            ),
        )

    def should_update(self, current: Deployment, desired: Deployment) -> bool:
        if labels_differ(current.metadata.labels, desired.metadata.labels):
            return True
        if current.spec.deployment_artifact_ref != desired.spec.deployment_artifact_ref:
            return True
        # Left to the control plane default when unset
        if desired.spec.revision_history_limit is None:
            return False
        return (
            current.spec.revision_history_limit != desired.spec.revision_history_limit
        )

    def preserve_unmanaged_fields(self, current: Deployment, desired: Deployment) -> None:
        desired.spec.configuration_overrides = current.spec.configuration_overrides
        if desired.spec.revision_history_limit is None:
            desired.spec.revision_history_limit = current.spec.revision_history_limit

    async def delete(self, ctx: BuildContext) -> None:
        """Turning off auto deploy leaves the existing Deployment running."""


class DeploymentApplier(ABC):
    """Applies the Deployment derived from a build."""

    @abstractmethod
    async def apply_deployment(self, ctx: BuildContext) -> None:
        """Create or update the Deployment, raising on failure."""


class ClientDeploymentApplier(DeploymentApplier):
    """DeploymentApplier that writes a Deployment through the client."""

    def __init__(self, client: Client) -> None:
        self._handler = DeploymentHandler(client)

    async def apply_deployment(self, ctx: BuildContext) -> None:
        _LOGGER.debug("Applying deployment for build %s", ctx.build.resource_id)
        await apply_resource(self._handler, ctx)
