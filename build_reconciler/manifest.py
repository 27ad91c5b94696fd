"""Representation of the objects read and written by the reconciler.

The logical entities (`Build`, `Deployment`) are parsed from the documents
handed to the reconcile loop. The managed objects (`ServiceAccount`, `Role`,
`RoleBinding`, `DeployableArtifact`) are built by the resource handlers and
persisted through the control plane client.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, ClassVar

from mashumaro import DataClassDictMixin
from mashumaro.codecs.yaml import yaml_decode, yaml_encode
from mashumaro.config import BaseConfig

from .conditions import Condition, ConditionStatus, ConditionType
from .exceptions import InputException

__all__ = [
    "NamedResource",
    "ObjectMeta",
    "KubernetesObject",
    "ServiceAccount",
    "Role",
    "RoleBinding",
    "Build",
    "Deployment",
    "DeployableArtifact",
]

_LOGGER = logging.getLogger(__name__)


# Match a prefix of apiVersion to ensure we have the right type of object.
CORE_DOMAIN = "core.build-reconciler.io"
CORE_API_VERSION = f"{CORE_DOMAIN}/v1"
RBAC_API_GROUP = "rbac.authorization.k8s.io"
RBAC_API_VERSION = f"{RBAC_API_GROUP}/v1"

BUILD_KIND = "Build"
DEPLOYMENT_KIND = "Deployment"
DEPLOYABLE_ARTIFACT_KIND = "DeployableArtifact"
SERVICE_ACCOUNT_KIND = "ServiceAccount"
ROLE_KIND = "Role"
ROLE_BINDING_KIND = "RoleBinding"

# Labels written by this library. Only these keys are compared when deciding
# whether an object needs to be updated.
LABEL_PREFIX = f"{CORE_DOMAIN}/"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_ORGANIZATION = f"{LABEL_PREFIX}organization"
LABEL_PROJECT = f"{LABEL_PREFIX}project"
LABEL_COMPONENT = f"{LABEL_PREFIX}component"
LABEL_BUILD = f"{LABEL_PREFIX}build"
LABEL_ENVIRONMENT = f"{LABEL_PREFIX}environment"
MANAGED_BY = "build-reconciler"


def _check_version(doc: dict[str, Any], version: str) -> None:
    """Assert that the resource has the specified version."""
    if not (api_version := doc.get("apiVersion")):
        raise InputException(f"Invalid object missing apiVersion: {doc}")
    if not api_version.startswith(version):
        raise InputException(f"Invalid object expected '{version}': {doc}")


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    @classmethod
    def parse_yaml(cls, content: str) -> "BaseManifest":
        """Parse a serialized manifest."""
        return yaml_decode(content, cls)

    def yaml(self) -> str:
        """Return a YAML string representation of the object."""
        return yaml_encode(self, self.__class__)  # type: ignore[return-value]

    class Config(BaseConfig):
        omit_none = True


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


@dataclass
class ObjectMeta(BaseManifest):
    """Metadata common to all objects in the control plane."""

    name: str
    """The name of the object."""

    namespace: str | None = None
    """The namespace of the object."""

    labels: dict[str, str] | None = None
    """Labels on the object, including ones owned by other actors."""

    annotations: dict[str, str] | None = None
    """Annotations on the object. Never managed by this library."""

    resource_version: str | None = None
    """Concurrency token assigned by the control plane on every write."""

    uid: str | None = None
    """Unique id assigned by the control plane on create."""

    generation: int = 0
    """Incremented by the control plane when the spec changes."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ObjectMeta":
        """Parse ObjectMeta from the metadata of a raw kubernetes object."""
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid object missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid object missing metadata.name: {doc}")
        return cls(
            name=name,
            namespace=metadata.get("namespace"),
            labels=metadata.get("labels"),
            annotations=metadata.get("annotations"),
            resource_version=metadata.get("resourceVersion"),
            uid=metadata.get("uid"),
            generation=metadata.get("generation", 0),
        )


@dataclass
class KubernetesObject(BaseManifest):
    """Base class for objects persisted through the control plane client."""

    kind: ClassVar[str]
    """The kind of the object."""

    api_version: ClassVar[str]
    """The apiVersion of the object."""

    metadata: ObjectMeta
    """Identity and bookkeeping fields of the object."""

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    @property
    def resource_id(self) -> NamedResource:
        """Identifier for the object in the control plane."""
        return NamedResource(self.kind, self.metadata.namespace, self.metadata.name)


@dataclass
class ServiceAccount(KubernetesObject):
    """A ServiceAccount that workflow pods run as."""

    kind: ClassVar[str] = SERVICE_ACCOUNT_KIND
    api_version: ClassVar[str] = "v1"


@dataclass
class PolicyRule(BaseManifest):
    """A single permission granted by a Role."""

    api_groups: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    verbs: list[str] = field(default_factory=list)


@dataclass
class Role(KubernetesObject):
    """A namespaced set of permissions."""

    kind: ClassVar[str] = ROLE_KIND
    api_version: ClassVar[str] = RBAC_API_VERSION

    rules: list[PolicyRule] = field(default_factory=list)
    """The permissions granted by this Role."""


@dataclass
class Subject(BaseManifest):
    """An identity a RoleBinding grants permissions to."""

    kind: str
    name: str
    namespace: str | None = None
    api_group: str | None = None


@dataclass
class RoleRef(BaseManifest):
    """Reference to the Role granted by a RoleBinding."""

    kind: str
    name: str
    api_group: str = RBAC_API_GROUP


@dataclass
class RoleBinding(KubernetesObject):
    """Grants the permissions of a Role to a set of subjects."""

    kind: ClassVar[str] = ROLE_BINDING_KIND
    api_version: ClassVar[str] = RBAC_API_VERSION

    role_ref: RoleRef
    """The Role being granted."""

    subjects: list[Subject] = field(default_factory=list)
    """The identities receiving the Role."""


@dataclass
class BuildSpec(BaseManifest):
    """Desired state of a Build."""

    repository_url: str
    """URL of the git repository containing the source code."""

    branch: str = "main"
    """Branch of the repository to build."""

    path: str = "/"
    """Path within the repository of the component source."""

    auto_deploy: bool = False
    """Whether to apply a Deployment once the build produces an artifact."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "BuildSpec":
        """Parse a BuildSpec from the spec of a Build object."""
        if not (repository := doc.get("repository")):
            raise InputException(f"Invalid Build missing spec.repository: {doc}")
        if not (url := repository.get("url")):
            raise InputException(f"Invalid Build missing spec.repository.url: {doc}")
        return cls(
            repository_url=url,
            branch=repository.get("branch", "main"),
            path=doc.get("path", "/"),
            auto_deploy=doc.get("autoDeploy", False),
        )


@dataclass
class ImageStatus(BaseManifest):
    """The image produced by a build."""

    image: str | None = None


@dataclass
class BuildStatus(BaseManifest):
    """Observed state of a Build."""

    conditions: list[Condition] = field(default_factory=list)
    """Pipeline progress, at most one condition per type."""

    image_status: ImageStatus = field(default_factory=ImageStatus)
    """The artifact reference produced by the pipeline, once known."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "BuildStatus":
        """Parse a BuildStatus from the status of a Build object."""
        conditions = []
        for cond in doc.get("conditions") or ():
            try:
                conditions.append(
                    Condition(
                        type=ConditionType(cond["type"]),
                        status=ConditionStatus(cond["status"]),
                        reason=cond.get("reason", ""),
                        message=cond.get("message", ""),
                        observed_generation=cond.get("observedGeneration", 0),
                        last_transition_time=Condition.parse_time(
                            cond.get("lastTransitionTime")
                        ),
                    )
                )
            except (KeyError, ValueError) as err:
                raise InputException(f"Invalid Build condition {cond}: {err}") from err
        image_status = doc.get("imageStatus") or {}
        return cls(
            conditions=conditions,
            image_status=ImageStatus(image=image_status.get("image")),
        )


@dataclass
class Build(KubernetesObject):
    """A request to build a component from source."""

    kind: ClassVar[str] = BUILD_KIND
    api_version: ClassVar[str] = CORE_API_VERSION

    spec: BuildSpec
    """The desired state of the Build."""

    status: BuildStatus = field(default_factory=BuildStatus)
    """Conditions recording pipeline progress."""

    @property
    def generation(self) -> int:
        return self.metadata.generation

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels or {}

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Build":
        """Parse a Build from a raw kubernetes object."""
        _check_version(doc, CORE_DOMAIN)
        if doc.get("kind") != BUILD_KIND:
            raise InputException(f"Invalid object expected kind '{BUILD_KIND}': {doc}")
        if not (spec := doc.get("spec")):
            raise InputException(f"Invalid {cls} missing spec: {doc}")
        return cls(
            metadata=ObjectMeta.parse_doc(doc),
            spec=BuildSpec.parse_doc(spec),
            status=BuildStatus.parse_doc(doc.get("status") or {}),
        )


@dataclass
class ConfigurationOverrides(BaseManifest):
    """Environment specific overrides applied to an artifact before deploying."""

    endpoint_templates: list[dict[str, Any]] = field(default_factory=list)
    """Endpoint configuration overrides."""

    dependencies: dict[str, Any] | None = None
    """Dependency configuration overrides."""

    application: dict[str, Any] | None = None
    """Application configuration overrides."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ConfigurationOverrides":
        return cls(
            endpoint_templates=doc.get("endpointTemplates") or [],
            dependencies=doc.get("dependencies"),
            application=doc.get("application"),
        )


@dataclass
class DeploymentSpec(BaseManifest):
    """Desired state of a Deployment."""

    deployment_artifact_ref: str
    """Name of the DeployableArtifact being deployed."""

    revision_history_limit: int | None = None
    """Number of deployment revisions to keep for rollback."""

    configuration_overrides: ConfigurationOverrides | None = None
    """Environment specific configuration applied to the artifact."""


@dataclass
class DeploymentStatus(BaseManifest):
    """Observed state of a Deployment."""


@dataclass
class Deployment(KubernetesObject):
    """Deploys an artifact into an environment."""

    kind: ClassVar[str] = DEPLOYMENT_KIND
    api_version: ClassVar[str] = CORE_API_VERSION

    spec: DeploymentSpec
    """The desired state of the Deployment."""

    status: DeploymentStatus = field(default_factory=DeploymentStatus)

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Deployment":
        """Parse a Deployment from a raw kubernetes object."""
        _check_version(doc, CORE_DOMAIN)
        if doc.get("kind") != DEPLOYMENT_KIND:
            raise InputException(
                f"Invalid object expected kind '{DEPLOYMENT_KIND}': {doc}"
            )
        if not (spec := doc.get("spec")):
            raise InputException(f"Invalid {cls} missing spec: {doc}")
        if not (artifact_ref := spec.get("deploymentArtifactRef")):
            raise InputException(
                f"Invalid {cls} missing spec.deploymentArtifactRef: {doc}"
            )
        overrides = spec.get("configurationOverrides")
        return cls(
            metadata=ObjectMeta.parse_doc(doc),
            spec=DeploymentSpec(
                deployment_artifact_ref=artifact_ref,
                revision_history_limit=spec.get("revisionHistoryLimit"),
                configuration_overrides=(
                    ConfigurationOverrides.parse_doc(overrides)
                    if overrides is not None
                    else None
                ),
            ),
        )


@dataclass
class TargetArtifact(BaseManifest):
    """The build output a DeployableArtifact refers to."""

    from_build_ref: str | None = None
    """Name of the Build that produced the artifact."""

    image: str | None = None
    """The image reference pushed by the build."""


@dataclass
class DeployableArtifactSpec(BaseManifest):
    """Desired state of a DeployableArtifact."""

    target_artifact: TargetArtifact = field(default_factory=TargetArtifact)


@dataclass
class DeployableArtifact(KubernetesObject):
    """A durable record of a deployable build output."""

    kind: ClassVar[str] = DEPLOYABLE_ARTIFACT_KIND
    api_version: ClassVar[str] = CORE_API_VERSION

    spec: DeployableArtifactSpec = field(default_factory=DeployableArtifactSpec)
