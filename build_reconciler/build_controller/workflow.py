"""Observed state of the pipeline executing a Build.

The execution engine runs the pipeline as a workflow of steps. The controller
only reads the phase of each step and the output parameters of the last step.
"""

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any

from build_reconciler.exceptions import InputException
from build_reconciler.manifest import BaseManifest

__all__ = [
    "WorkflowStep",
    "NodePhase",
    "WorkflowParameter",
    "WorkflowOutputs",
    "WorkflowNode",
    "Workflow",
    "PIPELINE_STEPS",
    "get_image_name_from_workflow",
]

_LOGGER = logging.getLogger(__name__)

IMAGE_PARAMETER = "image"


class WorkflowStep(StrEnum):
    """Steps of the build pipeline, named by their workflow template."""

    CLONE = "clone-step"
    BUILD = "build-step"
    PUSH = "push-step"


PIPELINE_STEPS: tuple[WorkflowStep, ...] = (
    WorkflowStep.CLONE,
    WorkflowStep.BUILD,
    WorkflowStep.PUSH,
)
"""Steps in the order the pipeline runs them."""


class NodePhase(StrEnum):
    """Execution phase of a workflow step."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    SKIPPED = "Skipped"
    FAILED = "Failed"
    ERROR = "Error"
    OMITTED = "Omitted"

    @property
    def is_failed(self) -> bool:
        """Return True if the step ended without producing its result."""
        return self in (
            NodePhase.FAILED,
            NodePhase.ERROR,
            NodePhase.SKIPPED,
            NodePhase.OMITTED,
        )


@dataclass
class WorkflowParameter(BaseManifest):
    """A named output parameter of a step."""

    name: str
    value: str | None = None


@dataclass
class WorkflowOutputs(BaseManifest):
    """Output parameters produced by a step."""

    parameters: list[WorkflowParameter] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, values: dict[str, str | None]) -> "WorkflowOutputs":
        """Build outputs from a mapping of parameter name to value."""
        return cls(
            parameters=[WorkflowParameter(name=k, value=v) for k, v in values.items()]
        )

    def get_parameter(self, name: str) -> str | None:
        """Return the value of the named parameter, if present."""
        for param in self.parameters:
            if param.name == name:
                return param.value
        return None


@dataclass
class WorkflowNode(BaseManifest):
    """A step of the workflow and its outcome."""

    template_name: str
    phase: NodePhase = NodePhase.PENDING
    outputs: WorkflowOutputs | None = None


@dataclass
class Workflow(BaseManifest):
    """A snapshot of a running or finished workflow."""

    nodes: list[WorkflowNode] = field(default_factory=list)

    def get_step_node(self, step: WorkflowStep) -> WorkflowNode | None:
        """Return the node executing the step, if it has been scheduled."""
        for node in self.nodes:
            if node.template_name == step:
                return node
        return None

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Workflow":
        """Parse a Workflow from the status of a workflow object."""
        nodes = []
        for node_id, node in ((doc.get("status") or {}).get("nodes") or {}).items():
            if not (template_name := node.get("templateName")):
                _LOGGER.debug("Skipping workflow node %s without a template", node_id)
                continue
            try:
                phase = NodePhase(node.get("phase", NodePhase.PENDING))
            except ValueError as err:
                if template_name not in PIPELINE_STEPS:
                    _LOGGER.debug(
                        "Skipping workflow node %s with unknown phase %s",
                        node_id,
                        node.get("phase"),
                    )
                    continue
                raise InputException(
                    f"Invalid phase for workflow node {node_id}: {node}"
                ) from err
            outputs = None
            if (node_outputs := node.get("outputs")) is not None:
                parameters = []
                for param in node_outputs.get("parameters") or ():
                    if not (name := param.get("name")):
                        raise InputException(
                            f"Invalid output parameter for workflow node {node_id}, "
                            f"missing name: {param}"
                        )
                    parameters.append(
                        WorkflowParameter(name=name, value=param.get("value"))
                    )
                outputs = WorkflowOutputs(parameters=parameters)
            nodes.append(
                WorkflowNode(template_name=template_name, phase=phase, outputs=outputs)
            )
        return cls(nodes=nodes)


def get_image_name_from_workflow(outputs: WorkflowOutputs | None) -> str:
    """Return the image pushed by the pipeline, or an empty string if absent."""
    if outputs is None:
        return ""
    return outputs.get_parameter(IMAGE_PARAMETER) or ""
