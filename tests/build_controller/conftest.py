"""Test fixtures for the build controller."""

from collections import Counter
from collections.abc import Callable

import pytest
import yaml

from build_reconciler.build_controller import (
    BuildContext,
    BuildController,
    NodePhase,
    Workflow,
    WorkflowNode,
    WorkflowOutputs,
    WorkflowStep,
)
from build_reconciler.client import ClientEvent, InMemoryClient
from build_reconciler.manifest import Build

BUILD = """
apiVersion: core.build-reconciler.io/v1
kind: Build
metadata:
  name: cart-build-1
  namespace: acme
  generation: 3
  labels:
    core.build-reconciler.io/organization: acme
    core.build-reconciler.io/project: shop
    core.build-reconciler.io/component: cart
spec:
  repository:
    url: https://github.com/acme/cart
  autoDeploy: true
"""

IMAGE = "registry.example.com/acme/cart:3f2a1c"


def make_workflow(
    phases: dict[WorkflowStep, NodePhase], image: str | None = IMAGE
) -> Workflow:
    """Build a workflow with a node per step, the push step reporting the image."""
    nodes = []
    for step, phase in phases.items():
        outputs = None
        if step == WorkflowStep.PUSH and phase == NodePhase.SUCCEEDED:
            outputs = WorkflowOutputs.from_mapping({"image": image})
        nodes.append(WorkflowNode(template_name=step, phase=phase, outputs=outputs))
    return Workflow(nodes=nodes)


SUCCEEDED_WORKFLOW = {
    WorkflowStep.CLONE: NodePhase.SUCCEEDED,
    WorkflowStep.BUILD: NodePhase.SUCCEEDED,
    WorkflowStep.PUSH: NodePhase.SUCCEEDED,
}


@pytest.fixture
def client() -> InMemoryClient:
    """Create an in-memory client for testing."""
    return InMemoryClient()


@pytest.fixture
def events(client: InMemoryClient) -> Counter[ClientEvent]:
    """Count the writes made through the client."""
    events: Counter[ClientEvent] = Counter()
    for event in ClientEvent:
        client.add_listener(
            event, lambda resource_id, obj, event=event: events.update([event])
        )
    return events


@pytest.fixture
def build() -> Build:
    """A Build of the cart component with auto deploy enabled."""
    return Build.parse_doc(yaml.safe_load(BUILD))


@pytest.fixture
def controller(client: InMemoryClient) -> BuildController:
    """Create a BuildController with the default configuration."""
    return BuildController(client)


@pytest.fixture
def ctx(build: Build) -> BuildContext:
    return BuildContext(build=build)


@pytest.fixture(name="make_workflow")
def make_workflow_fixture() -> Callable[..., Workflow]:
    """Factory for workflows with the given step phases."""
    return make_workflow


@pytest.fixture
def succeeded_workflow() -> Workflow:
    """A workflow where every step succeeded and the image was pushed."""
    return make_workflow(SUCCEEDED_WORKFLOW)
