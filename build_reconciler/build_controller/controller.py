"""
Build Controller implementation.

This controller converges the objects a Build needs in order to run its
pipeline, and records the progress of the pipeline as conditions on the Build
status.

Key Concepts:
    - Build: The logical entity being reconciled. Its status holds the
      conditions and the image produced by the pipeline.
    - ResourceHandler: Converges one kind of managed object. The controller
      runs the workflow ServiceAccount, Role and RoleBinding handlers on every
      reconcile.
    - Workflow: The pipeline as observed from the execution engine. The
      controller reacts to step outcomes and never polls on its own.

The controller holds no state of its own between calls. Everything is derived
from the Build passed in, and the client and collaborators are injected, so
reconciles of different builds are independent. Callers persist the Build
status after each call.

Dependencies:
    - build_reconciler.client.Client: For reading and writing managed objects.
    - build_reconciler.dataplane: For applying managed objects idempotently.
    - build_reconciler.build_controller.conditions: For condition transitions.
"""

import logging
from typing import Any

from build_reconciler.client import Client
from build_reconciler.conditions import ConditionType
from build_reconciler.config import BuildControllerConfig
from build_reconciler.context import trace_context
from build_reconciler.dataplane import ResourceHandler, apply_resources
from build_reconciler.exceptions import ReconcileException
from build_reconciler.manifest import Build

from . import conditions
from .artifact import ArtifactCreator, ClientArtifactCreator
from .build_context import BuildContext
from .deployment import ClientDeploymentApplier, DeploymentApplier
from .rbac import RoleBindingHandler, RoleHandler, ServiceAccountHandler
from .workflow import (
    NodePhase,
    PIPELINE_STEPS,
    Workflow,
    WorkflowOutputs,
    WorkflowStep,
)

_LOGGER = logging.getLogger(__name__)


class BuildController:
    """
    Controller for reconciling Build resources.

    The invoking reconcile loop calls `reconcile` (or the individual steps
    below) with the latest Build and requeues when an error is raised. Pipeline
    failures are not errors, they are recorded as conditions.
    """

    def __init__(
        self,
        client: Client,
        config: BuildControllerConfig | None = None,
        artifact_creator: ArtifactCreator | None = None,
        deployment_applier: DeploymentApplier | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            client: The control plane client used by the resource handlers
            config: The configuration for the controller
            artifact_creator: Creates the artifact record of completed builds,
                writes a DeployableArtifact through the client by default
            deployment_applier: Applies the Deployment of auto deployed builds,
                writes a Deployment through the client by default
        """
        self._config = config or BuildControllerConfig()
        self._artifact_creator = artifact_creator or ClientArtifactCreator(client)
        self._deployment_applier = deployment_applier or ClientDeploymentApplier(
            client
        )
        self._handlers: list[ResourceHandler[BuildContext, Any]] = [
            ServiceAccountHandler(client),
            RoleHandler(client),
            RoleBindingHandler(client),
        ]

    @property
    def handlers(self) -> list[ResourceHandler[BuildContext, Any]]:
        """The handlers applied on every reconcile, in order."""
        return list(self._handlers)

    def build_context(self, build: Build) -> BuildContext:
        return BuildContext(build=build, config=self._config)

    async def reconcile_resources(self, build: Build) -> None:
        """Converge the objects the pipeline of the build needs."""
        with trace_context(f"Build {build.resource_id.namespaced_name}"):
            await apply_resources(self._handlers, self.build_context(build))

    def mark_workflow_initialized(self, build: Build) -> bool:
        """Record that the execution engine accepted the workflow."""
        return conditions.mark_workflow_initialized(build)

    def mark_step_succeeded(self, build: Build, step: WorkflowStep) -> bool:
        return conditions.mark_step_succeeded(build, step)

    def mark_step_failed(self, build: Build, step: WorkflowStep) -> bool:
        return conditions.mark_step_failed(build, step)

    def mark_workflow_completed(
        self, build: Build, outputs: WorkflowOutputs | None
    ) -> bool:
        """Record a successful pipeline, returning True if an image was found."""
        return conditions.mark_workflow_completed(build, outputs)

    def update_from_workflow(self, build: Build, workflow: Workflow) -> bool:
        """Record the outcome of each finished step of the workflow.

        Steps are visited in pipeline order. Visiting stops at the first step
        that has not finished, or at the first failed step since the execution
        engine stops the pipeline there.

        Returns:
            True if the pipeline reached a terminal state.
        """
        if conditions.is_workflow_failed(build) or conditions.is_workflow_completed(
            build
        ):
            return True

        outputs: WorkflowOutputs | None = None
        for step in PIPELINE_STEPS:
            node = workflow.get_step_node(step)
            if node is None or node.phase in (NodePhase.PENDING, NodePhase.RUNNING):
                _LOGGER.debug(
                    "Build %s waiting on step %s", build.resource_id, step
                )
                return False
            if node.phase.is_failed:
                self.mark_step_failed(build, step)
                return True
            self.mark_step_succeeded(build, step)
            outputs = node.outputs

        self.mark_workflow_completed(build, outputs)
        return True

    async def create_deployable_artifact(self, build: Build) -> bool:
        """Create the artifact record for a build that completed successfully.

        Returns:
            True if the artifact was created.
        """
        if not conditions.is_workflow_completed(build):
            _LOGGER.debug(
                "Build %s has not completed, not creating artifact", build.resource_id
            )
            return False
        await self._artifact_creator.create_deployable_artifact(
            self.build_context(build)
        )
        conditions.mark_deployable_artifact_created(build)
        return True

    async def apply_auto_deployment(self, build: Build) -> bool:
        """Apply the Deployment of a build with auto deploy enabled.

        A failure is recorded on the build and raised again so the reconcile is
        retried.

        Returns:
            True if the Deployment was applied.
        """
        if not build.spec.auto_deploy:
            return False
        if not conditions.is_condition_true(
            build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED
        ):
            _LOGGER.debug(
                "Build %s has no artifact, not applying deployment", build.resource_id
            )
            return False
        try:
            await self._deployment_applier.apply_deployment(self.build_context(build))
        except ReconcileException as err:
            _LOGGER.error(
                "Failed to apply deployment for build %s: %s", build.resource_id, err
            )
            conditions.mark_auto_deployment_failed(build)
            raise
        conditions.mark_auto_deployment_succeeded(build)
        return True

    async def reconcile(self, build: Build, workflow: Workflow | None) -> bool:
        """Run one reconcile pass for the build.

        Args:
            build: The Build being reconciled, its status is updated in place
            workflow: The workflow of the build, or None if the execution
                engine has not accepted it yet

        Returns:
            True if the build reached a terminal state.
        """
        _LOGGER.info("Reconciling Build %s", build.resource_id)
        await self.reconcile_resources(build)
        if workflow is None:
            return False

        self.mark_workflow_initialized(build)
        if not self.update_from_workflow(build, workflow):
            return False
        if not conditions.is_workflow_completed(build):
            return True

        if not conditions.is_condition_true(
            build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED
        ):
            await self.create_deployable_artifact(build)
        if build.spec.auto_deploy and not conditions.is_condition_true(
            build, ConditionType.DEPLOYMENT_APPLIED
        ):
            await self.apply_auto_deployment(build)
        _LOGGER.info("Reconciled Build %s", build.resource_id)
        return True
