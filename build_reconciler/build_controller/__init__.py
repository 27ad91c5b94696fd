"""The build controller module.

This module provides a controller that converges the objects a Build needs to
run its pipeline and records pipeline progress as conditions on the Build.
"""

from .build_context import BuildContext
from .controller import BuildController
from .artifact import ArtifactCreator, ClientArtifactCreator, DeployableArtifactHandler
from .deployment import ClientDeploymentApplier, DeploymentApplier, DeploymentHandler
from .rbac import RoleBindingHandler, RoleHandler, ServiceAccountHandler
from .workflow import (
    NodePhase,
    Workflow,
    WorkflowNode,
    WorkflowOutputs,
    WorkflowParameter,
    WorkflowStep,
    get_image_name_from_workflow,
)

__all__ = [
    "BuildContext",
    "BuildController",
    "ArtifactCreator",
    "ClientArtifactCreator",
    "DeployableArtifactHandler",
    "DeploymentApplier",
    "ClientDeploymentApplier",
    "DeploymentHandler",
    "ServiceAccountHandler",
    "RoleHandler",
    "RoleBindingHandler",
    "NodePhase",
    "Workflow",
    "WorkflowNode",
    "WorkflowOutputs",
    "WorkflowParameter",
    "WorkflowStep",
    "get_image_name_from_workflow",
]
