"""
DeployableArtifact creation for completed builds.

The artifact is the durable record of the image a build produced. It is the
input to auto deployment, so it must exist before a Deployment is applied.
"""

from abc import ABC, abstractmethod
import logging

from build_reconciler.client import Client
from build_reconciler.dataplane import KubernetesResourceHandler, apply_resource
from build_reconciler.exceptions import InputException
from build_reconciler.manifest import (
    DeployableArtifact,
    DeployableArtifactSpec,
    ObjectMeta,
    TargetArtifact,
)
from build_reconciler.resource_diff import equate_empty, labels_differ

from .build_context import BuildContext
from .naming import make_deployable_artifact_labels, make_deployable_artifact_name

_LOGGER = logging.getLogger(__name__)


class DeployableArtifactHandler(
    KubernetesResourceHandler[BuildContext, DeployableArtifact]
):
    """Manages the DeployableArtifact produced by a Build."""

    resource_cls = DeployableArtifact

    @property
    def name(self) -> str:
        return "DeployableArtifact"

    def is_required(self, ctx: BuildContext) -> bool:
        return bool(ctx.build.status.image_status.image)

    def make_resource(self, ctx: BuildContext) -> DeployableArtifact:
        return DeployableArtifact(
            metadata=ObjectMeta(
                name=make_deployable_artifact_name(ctx),
                namespace=ctx.build.namespace,
                labels=make_deployable_artifact_labels(ctx),
            ),
            spec=DeployableArtifactSpec(
                target_artifact=TargetArtifact(
                    from_build_ref=ctx.build.name,
                    image=ctx.build.status.image_status.image,
                )
            ),
        )

    def should_update(
        self, current: DeployableArtifact, desired: DeployableArtifact
    ) -> bool:
        if labels_differ(current.metadata.labels, desired.metadata.labels):
            return True
        return not equate_empty(
            current.spec.target_artifact, desired.spec.target_artifact
        )

    async def delete(self, ctx: BuildContext) -> None:
        """Artifacts outlive the build that produced them."""


class ArtifactCreator(ABC):
    """Creates the durable artifact record for a completed build."""

    @abstractmethod
    async def create_deployable_artifact(self, ctx: BuildContext) -> None:
        """Create or update the artifact, raising on failure."""


class ClientArtifactCreator(ArtifactCreator):
    """ArtifactCreator that writes a DeployableArtifact through the client."""

    def __init__(self, client: Client) -> None:
        self._handler = DeployableArtifactHandler(client)

    async def create_deployable_artifact(self, ctx: BuildContext) -> None:
        _LOGGER.debug("Creating artifact for build %s", ctx.build.resource_id)
        if not self._handler.is_required(ctx):
            raise InputException(
                f"Build {ctx.build.resource_id.namespaced_name} has no image to "
                "create an artifact from"
            )
        await apply_resource(self._handler, ctx)
