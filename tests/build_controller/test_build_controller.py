"""Tests for the build controller."""

from collections import Counter
from collections.abc import Callable

import pytest

from build_reconciler.build_controller import (
    BuildContext,
    BuildController,
    DeploymentApplier,
    NodePhase,
    Workflow,
    WorkflowStep,
)
from build_reconciler.client import ClientEvent, InMemoryClient
from build_reconciler.conditions import (
    Condition,
    ConditionStatus,
    ConditionType,
    find_status_condition,
)
from build_reconciler.config import BuildControllerConfig
from build_reconciler.exceptions import ClientException
from build_reconciler.manifest import (
    Build,
    ConfigurationOverrides,
    DeployableArtifact,
    Deployment,
    DeploymentSpec,
    NamedResource,
    ObjectMeta,
)

IMAGE = "registry.example.com/acme/cart:3f2a1c"
ARTIFACT_ID = NamedResource("DeployableArtifact", "acme", "cart-build-1")
DEPLOYMENT_ID = NamedResource("Deployment", "acme", "cart-development")


def condition_status(build: Build, condition_type: ConditionType) -> str | None:
    condition = find_status_condition(build.status.conditions, condition_type)
    return condition.status if condition else None


def get_condition(build: Build, condition_type: ConditionType) -> Condition:
    condition = find_status_condition(build.status.conditions, condition_type)
    assert condition is not None, f"Build has no {condition_type} condition"
    return condition


class FailingDeploymentApplier(DeploymentApplier):
    """A DeploymentApplier that always fails."""

    def __init__(self) -> None:
        self.calls = 0

    async def apply_deployment(self, ctx: BuildContext) -> None:
        self.calls += 1
        raise ClientException("deployment service unavailable")


async def test_reconcile_without_workflow(
    controller: BuildController, client: InMemoryClient, build: Build
) -> None:
    """Test a build waiting on the execution engine only gets its resources."""
    assert not await controller.reconcile(build, None)
    assert build.status.conditions == []
    assert {obj.kind for obj in client.list_objects()} == {
        "ServiceAccount",
        "Role",
        "RoleBinding",
    }


async def test_reconcile_running(
    controller: BuildController,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test finished steps are recorded while the pipeline is running."""
    workflow = make_workflow(
        {
            WorkflowStep.CLONE: NodePhase.SUCCEEDED,
            WorkflowStep.BUILD: NodePhase.RUNNING,
        }
    )
    assert not await controller.reconcile(build, workflow)
    assert condition_status(build, ConditionType.INITIALIZED) == ConditionStatus.TRUE
    assert condition_status(build, ConditionType.CLONE_SUCCEEDED) == ConditionStatus.TRUE
    assert condition_status(build, ConditionType.BUILD_SUCCEEDED) is None
    assert condition_status(build, ConditionType.COMPLETED) is None


async def test_reconcile_succeeded(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    succeeded_workflow: Workflow,
    events: Counter[ClientEvent],
) -> None:
    """Test a successful pipeline creates the artifact and the deployment."""
    assert await controller.reconcile(build, succeeded_workflow)

    for condition_type in ConditionType:
        condition = get_condition(build, condition_type)
        assert condition.status == ConditionStatus.TRUE, str(condition)
        assert condition.observed_generation == 3, str(condition)
    assert build.status.image_status.image == IMAGE

    artifact = await client.get(ARTIFACT_ID, DeployableArtifact)
    assert artifact.spec.target_artifact.image == IMAGE
    assert artifact.spec.target_artifact.from_build_ref == "cart-build-1"
    assert artifact.metadata.labels == {
        "app.kubernetes.io/managed-by": "build-reconciler",
        "core.build-reconciler.io/organization": "acme",
        "core.build-reconciler.io/project": "shop",
        "core.build-reconciler.io/component": "cart",
        "core.build-reconciler.io/build": "cart-build-1",
    }

    deployment = await client.get(DEPLOYMENT_ID, Deployment)
    assert deployment.spec.deployment_artifact_ref == "cart-build-1"
    assert deployment.metadata.labels
    assert (
        deployment.metadata.labels["core.build-reconciler.io/environment"]
        == "development"
    )

    # A terminal build is left alone by later reconciles
    events.clear()
    conditions = [str(condition) for condition in build.status.conditions]
    assert await controller.reconcile(build, succeeded_workflow)
    assert not events
    assert [str(condition) for condition in build.status.conditions] == conditions


async def test_reconcile_without_auto_deploy(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    succeeded_workflow: Workflow,
) -> None:
    """Test no Deployment is applied when auto deploy is disabled."""
    build.spec.auto_deploy = False
    assert await controller.reconcile(build, succeeded_workflow)
    assert condition_status(
        build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED
    ) == ConditionStatus.TRUE
    assert condition_status(build, ConditionType.DEPLOYMENT_APPLIED) is None
    assert client.list_objects("Deployment") == []
    assert len(client.list_objects("DeployableArtifact")) == 1


async def test_reconcile_push_failed(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test a failed step is terminal and nothing is deployed."""
    workflow = make_workflow(
        {
            WorkflowStep.CLONE: NodePhase.SUCCEEDED,
            WorkflowStep.BUILD: NodePhase.SUCCEEDED,
            WorkflowStep.PUSH: NodePhase.FAILED,
        }
    )
    assert await controller.reconcile(build, workflow)
    assert condition_status(build, ConditionType.PUSH_SUCCEEDED) == ConditionStatus.FALSE
    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.FALSE
    assert condition_status(build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED) is None
    assert build.status.image_status.image is None
    assert client.list_objects("DeployableArtifact") == []
    assert client.list_objects("Deployment") == []


async def test_reconcile_clone_failed(
    controller: BuildController,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test steps after a failed step are not evaluated."""
    workflow = make_workflow(
        {
            WorkflowStep.CLONE: NodePhase.ERROR,
            WorkflowStep.BUILD: NodePhase.SUCCEEDED,
        }
    )
    assert await controller.reconcile(build, workflow)
    assert condition_status(build, ConditionType.CLONE_SUCCEEDED) == ConditionStatus.FALSE
    assert condition_status(build, ConditionType.BUILD_SUCCEEDED) is None
    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.FALSE


async def test_reconcile_missing_image(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test a pipeline that did not report an image fails the build."""
    workflow = make_workflow(
        {
            WorkflowStep.CLONE: NodePhase.SUCCEEDED,
            WorkflowStep.BUILD: NodePhase.SUCCEEDED,
            WorkflowStep.PUSH: NodePhase.SUCCEEDED,
        },
        image=None,
    )
    assert await controller.reconcile(build, workflow)
    completed = get_condition(build, ConditionType.COMPLETED)
    assert completed.status == ConditionStatus.FALSE
    assert completed.message == "Image name is not found in the workflow"
    assert condition_status(build, ConditionType.PUSH_SUCCEEDED) == ConditionStatus.TRUE
    assert client.list_objects("DeployableArtifact") == []


async def test_failed_generation_is_terminal(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    make_workflow: Callable[..., Workflow],
    succeeded_workflow: Workflow,
) -> None:
    """Test a failed build is only retried for a new generation."""
    failed = make_workflow({WorkflowStep.CLONE: NodePhase.FAILED})
    assert await controller.reconcile(build, failed)

    assert await controller.reconcile(build, succeeded_workflow)
    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.FALSE
    assert client.list_objects("DeployableArtifact") == []

    build.metadata.generation = 4
    assert await controller.reconcile(build, succeeded_workflow)
    completed = get_condition(build, ConditionType.COMPLETED)
    assert completed.status == ConditionStatus.TRUE
    assert completed.observed_generation == 4
    clone = get_condition(build, ConditionType.CLONE_SUCCEEDED)
    assert clone.status == ConditionStatus.TRUE
    assert clone.observed_generation == 4
    assert len(client.list_objects("DeployableArtifact")) == 1


async def test_create_artifact_before_completion(
    controller: BuildController, client: InMemoryClient, build: Build
) -> None:
    """Test no artifact is created for a build that has not completed."""
    assert not await controller.create_deployable_artifact(build)
    assert not await controller.apply_auto_deployment(build)
    assert client.list_objects() == []
    assert build.status.conditions == []


async def test_update_from_workflow(
    controller: BuildController,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test the pipeline is terminal only once every step has finished."""
    assert not controller.update_from_workflow(build, Workflow())
    assert not controller.update_from_workflow(
        build, make_workflow({WorkflowStep.CLONE: NodePhase.PENDING})
    )
    assert not controller.update_from_workflow(
        build,
        make_workflow(
            {
                WorkflowStep.CLONE: NodePhase.SUCCEEDED,
                WorkflowStep.BUILD: NodePhase.SUCCEEDED,
            }
        ),
    )
    assert condition_status(build, ConditionType.BUILD_SUCCEEDED) == ConditionStatus.TRUE
    assert condition_status(build, ConditionType.COMPLETED) is None


async def test_auto_deployment_failure(
    client: InMemoryClient,
    build: Build,
    succeeded_workflow: Workflow,
) -> None:
    """Test a failed deployment is recorded and raised for a retry."""
    applier = FailingDeploymentApplier()
    controller = BuildController(client, deployment_applier=applier)
    with pytest.raises(ClientException, match="deployment service unavailable"):
        await controller.reconcile(build, succeeded_workflow)

    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.TRUE
    assert condition_status(
        build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED
    ) == ConditionStatus.TRUE
    applied = get_condition(build, ConditionType.DEPLOYMENT_APPLIED)
    assert applied.status == ConditionStatus.FALSE
    assert applied.reason == "DeploymentFailed"
    assert applied.message == "Deployment configuration failed."

    # The retry only attempts the deployment again
    with pytest.raises(ClientException):
        await controller.reconcile(build, succeeded_workflow)
    assert applier.calls == 2
    assert len(client.list_objects("DeployableArtifact")) == 1

    # A working applier converges the build
    controller = BuildController(client)
    assert await controller.reconcile(build, succeeded_workflow)
    assert condition_status(build, ConditionType.DEPLOYMENT_APPLIED) == ConditionStatus.TRUE


async def test_deployment_overrides_preserved(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    succeeded_workflow: Workflow,
) -> None:
    """Test an existing Deployment is pointed at the new artifact."""
    overrides = ConfigurationOverrides(
        endpoint_templates=[{"name": "http", "port": 8080}],
        application={"env": [{"key": "LOG_LEVEL", "value": "debug"}]},
    )
    await client.create(
        Deployment(
            metadata=ObjectMeta(
                name="cart-development",
                namespace="acme",
                annotations={"note": "managed by the platform team"},
            ),
            spec=DeploymentSpec(
                deployment_artifact_ref="cart-build-0",
                revision_history_limit=5,
                configuration_overrides=overrides,
            ),
        )
    )

    assert await controller.reconcile(build, succeeded_workflow)
    deployment = await client.get(DEPLOYMENT_ID, Deployment)
    assert deployment.spec.deployment_artifact_ref == "cart-build-1"
    assert deployment.spec.revision_history_limit == 5
    assert deployment.spec.configuration_overrides == overrides
    assert deployment.metadata.annotations == {"note": "managed by the platform team"}


async def test_deployment_revision_history_limit(
    client: InMemoryClient,
    build: Build,
    succeeded_workflow: Workflow,
) -> None:
    """Test a configured revision history limit is applied."""
    controller = BuildController(
        client,
        BuildControllerConfig(
            auto_deploy_environment="staging", revision_history_limit=2
        ),
    )
    assert await controller.reconcile(build, succeeded_workflow)
    deployment = await client.get(
        NamedResource("Deployment", "acme", "cart-staging"), Deployment
    )
    assert deployment.spec.revision_history_limit == 2


async def test_late_step_failure_after_completion(
    controller: BuildController,
    build: Build,
    succeeded_workflow: Workflow,
) -> None:
    """Test a step failure reported after completion leaves the build completed."""
    assert await controller.reconcile(build, succeeded_workflow)
    assert not controller.mark_step_failed(build, WorkflowStep.BUILD)
    assert not controller.mark_workflow_completed(build, None)
    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.TRUE
    assert condition_status(build, ConditionType.BUILD_SUCCEEDED) == ConditionStatus.TRUE
    assert condition_status(
        build, ConditionType.DEPLOYABLE_ARTIFACT_CREATED
    ) == ConditionStatus.TRUE


async def test_reconcile_omitted_step(
    controller: BuildController,
    client: InMemoryClient,
    build: Build,
    make_workflow: Callable[..., Workflow],
) -> None:
    """Test a pipeline step the engine did not run fails the build."""
    workflow = make_workflow(
        {
            WorkflowStep.CLONE: NodePhase.SUCCEEDED,
            WorkflowStep.BUILD: NodePhase.SUCCEEDED,
            WorkflowStep.PUSH: NodePhase.OMITTED,
        }
    )
    assert await controller.reconcile(build, workflow)
    assert condition_status(build, ConditionType.PUSH_SUCCEEDED) == ConditionStatus.FALSE
    assert condition_status(build, ConditionType.COMPLETED) == ConditionStatus.FALSE
    assert client.list_objects("DeployableArtifact") == []
