"""Conditions recording the progress of a Build through its pipeline.

The pipeline moves through the following checkpoints, each recorded as a
condition on the Build status:

    Initialized -> CloneSucceeded -> BuildSucceeded -> PushSucceeded
        -> Completed -> DeployableArtifactCreated -> DeploymentApplied

A failed step sets its own condition to False and Completed to False in the
same update. Completed=False is terminal for the generation it was observed
at. A new generation of the Build restarts the pipeline, older conditions are
left in place and can be recognized by their observed generation.
"""

from dataclasses import dataclass
from enum import StrEnum
import logging

from build_reconciler.conditions import (
    Condition,
    ConditionStatus,
    ConditionType,
    find_status_condition,
    new_condition,
    set_status_condition,
)
from build_reconciler.manifest import Build

from .workflow import WorkflowOutputs, WorkflowStep, get_image_name_from_workflow

__all__ = [
    "ConditionReason",
    "StepDescriptor",
    "step_descriptor",
    "mark_workflow_initialized",
    "mark_step_succeeded",
    "mark_step_failed",
    "mark_workflow_completed",
    "mark_deployable_artifact_created",
    "mark_auto_deployment_succeeded",
    "mark_auto_deployment_failed",
    "is_workflow_failed",
    "is_workflow_completed",
    "is_condition_true",
]

_LOGGER = logging.getLogger(__name__)


class ConditionReason(StrEnum):
    """Reasons recorded on Build conditions."""

    WORKFLOW_CREATED = "WorkflowCreated"

    CLONE_SUCCEEDED = "CloneSourceCodeSucceeded"
    CLONE_FAILED = "CloneSourceCodeFailed"
    BUILD_SUCCEEDED = "BuildImageSucceeded"
    BUILD_FAILED = "BuildImageFailed"
    PUSH_SUCCEEDED = "PushImageSucceeded"
    PUSH_FAILED = "PushImageFailed"
    WORKFLOW_COMPLETED = "BuildCompleted"
    WORKFLOW_FAILED = "BuildFailed"

    ARTIFACT_CREATED = "ArtifactCreationSuccessful"

    AUTO_DEPLOYMENT_FAILED = "DeploymentFailed"
    AUTO_DEPLOYMENT_APPLIED = "DeploymentAppliedSuccessfully"


@dataclass(frozen=True)
class StepDescriptor:
    """How the outcome of a pipeline step is recorded."""

    condition_type: ConditionType
    success_reason: ConditionReason
    success_message: str
    failure_reason: ConditionReason
    failure_message: str


def step_descriptor(step: WorkflowStep) -> StepDescriptor:
    """Return the condition type, reasons and messages for a step."""
    match step:
        case WorkflowStep.CLONE:
            return StepDescriptor(
                ConditionType.CLONE_SUCCEEDED,
                ConditionReason.CLONE_SUCCEEDED,
                "Source code cloning was successful.",
                ConditionReason.CLONE_FAILED,
                "Source code cloning failed.",
            )
        case WorkflowStep.BUILD:
            return StepDescriptor(
                ConditionType.BUILD_SUCCEEDED,
                ConditionReason.BUILD_SUCCEEDED,
                "Building the source code was successful.",
                ConditionReason.BUILD_FAILED,
                "Building the source code failed.",
            )
        case WorkflowStep.PUSH:
            return StepDescriptor(
                ConditionType.PUSH_SUCCEEDED,
                ConditionReason.PUSH_SUCCEEDED,
                "Pushing the built image to the registry was successful.",
                ConditionReason.PUSH_FAILED,
                "Pushing the built image to the registry failed.",
            )
    raise ValueError(f"Unsupported workflow step: {step}")


def _set(build: Build, condition: Condition) -> bool:
    changed = set_status_condition(build.status.conditions, condition)
    if changed:
        _LOGGER.info(
            "Build %s condition %s (generation %d)",
            build.resource_id.namespaced_name,
            condition,
            build.generation,
        )
    return changed


def _current(build: Build, condition_type: ConditionType) -> Condition | None:
    """Return the condition if it was observed at the current generation."""
    condition = find_status_condition(build.status.conditions, condition_type)
    if condition is None or condition.observed_generation != build.generation:
        return None
    return condition


def is_workflow_failed(build: Build) -> bool:
    """Return True if the pipeline failed for the current generation."""
    condition = _current(build, ConditionType.COMPLETED)
    return condition is not None and condition.status == ConditionStatus.FALSE


def is_workflow_completed(build: Build) -> bool:
    """Return True if the pipeline succeeded for the current generation."""
    condition = _current(build, ConditionType.COMPLETED)
    return condition is not None and condition.status == ConditionStatus.TRUE


def is_condition_true(build: Build, condition_type: ConditionType) -> bool:
    """Return True if the condition is True for the current generation."""
    condition = _current(build, condition_type)
    return condition is not None and condition.status == ConditionStatus.TRUE


def mark_workflow_initialized(build: Build) -> bool:
    return _set(
        build,
        new_condition(
            ConditionType.INITIALIZED,
            ConditionStatus.TRUE,
            ConditionReason.WORKFLOW_CREATED,
            "Workflow was created in the cluster.",
            build.generation,
        ),
    )


def mark_step_succeeded(build: Build, step: WorkflowStep) -> bool:
    descriptor = step_descriptor(step)
    return _set(
        build,
        new_condition(
            descriptor.condition_type,
            ConditionStatus.TRUE,
            descriptor.success_reason,
            descriptor.success_message,
            build.generation,
        ),
    )


def _workflow_failed_condition(build: Build, message: str) -> Condition:
    return new_condition(
        ConditionType.COMPLETED,
        ConditionStatus.FALSE,
        ConditionReason.WORKFLOW_FAILED,
        message,
        build.generation,
    )


def mark_step_failed(build: Build, step: WorkflowStep) -> bool:
    """Record a failed step, which also fails the pipeline."""
    if is_workflow_completed(build):
        _LOGGER.info(
            "Build %s already completed at generation %d, ignoring failure of %s",
            build.resource_id.namespaced_name,
            build.generation,
            step,
        )
        return False
    descriptor = step_descriptor(step)
    _LOGGER.error(
        "Build %s step %s failed", build.resource_id.namespaced_name, step
    )
    step_changed = _set(
        build,
        new_condition(
            descriptor.condition_type,
            ConditionStatus.FALSE,
            descriptor.failure_reason,
            descriptor.failure_message,
            build.generation,
        ),
    )
    completed_changed = _set(
        build,
        _workflow_failed_condition(build, "Build completed with a failure status"),
    )
    return step_changed or completed_changed


def mark_workflow_completed(build: Build, outputs: WorkflowOutputs | None) -> bool:
    """Record the end of a successful pipeline from the output of its last step.

    A pipeline that does not report the image it pushed is treated as failed.
    A pipeline already failed or completed at the current generation keeps its
    outcome.

    Returns:
        True if the build completed and the image was recorded.
    """
    if is_workflow_failed(build):
        _LOGGER.info(
            "Build %s already failed at generation %d, ignoring completion",
            build.resource_id.namespaced_name,
            build.generation,
        )
        return False
    if is_workflow_completed(build):
        _LOGGER.debug(
            "Build %s already completed at generation %d",
            build.resource_id.namespaced_name,
            build.generation,
        )
        return False
    if not (image := get_image_name_from_workflow(outputs)):
        _LOGGER.error(
            "Build %s workflow did not report an image",
            build.resource_id.namespaced_name,
        )
        _set(
            build,
            _workflow_failed_condition(build, "Image name is not found in the workflow"),
        )
        return False
    build.status.image_status.image = image
    _set(
        build,
        new_condition(
            ConditionType.COMPLETED,
            ConditionStatus.TRUE,
            ConditionReason.WORKFLOW_COMPLETED,
            "Build completed successfully.",
            build.generation,
        ),
    )
    return True


def mark_deployable_artifact_created(build: Build) -> bool:
    return _set(
        build,
        new_condition(
            ConditionType.DEPLOYABLE_ARTIFACT_CREATED,
            ConditionStatus.TRUE,
            ConditionReason.ARTIFACT_CREATED,
            "Successfully created a deployable artifact for the build.",
            build.generation,
        ),
    )


def mark_auto_deployment_succeeded(build: Build) -> bool:
    return _set(
        build,
        new_condition(
            ConditionType.DEPLOYMENT_APPLIED,
            ConditionStatus.TRUE,
            ConditionReason.AUTO_DEPLOYMENT_APPLIED,
            "Successfully configured the deployment.",
            build.generation,
        ),
    )


def mark_auto_deployment_failed(build: Build) -> bool:
    return _set(
        build,
        new_condition(
            ConditionType.DEPLOYMENT_APPLIED,
            ConditionStatus.FALSE,
            ConditionReason.AUTO_DEPLOYMENT_FAILED,
            "Deployment configuration failed.",
            build.generation,
        ),
    )
