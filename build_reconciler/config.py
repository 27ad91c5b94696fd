"""Configuration objects for build-reconciler."""

from dataclasses import dataclass

from mashumaro import DataClassDictMixin
from mashumaro.exceptions import MissingField, InvalidFieldValue
import yaml

from .exceptions import InputException


@dataclass
class BuildControllerConfig(DataClassDictMixin):
    """Configuration for the BuildController."""

    namespace_prefix: str = "ci-"
    """Prefix of the namespace workflows for an organization run in."""

    manage_workflow_rbac: bool = True
    """Whether the controller owns the workflow ServiceAccount, Role and RoleBinding."""

    service_account_name: str = "workflow-sa"
    role_name: str = "workflow-role"
    role_binding_name: str = "workflow-role-binding"

    auto_deploy_environment: str = "development"
    """Environment a Deployment is applied to when a build has auto deploy enabled."""

    revision_history_limit: int | None = None
    """Revision history limit set on auto deployed Deployments."""


def load_config(content: str) -> BuildControllerConfig:
    """Parse a BuildControllerConfig from a YAML document."""
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Invalid build controller config: {err}") from err
    if doc is None:
        return BuildControllerConfig()
    if not isinstance(doc, dict):
        raise InputException(
            f"Invalid build controller config, expected a mapping: {doc}"
        )
    try:
        return BuildControllerConfig.from_dict(doc)
    except (MissingField, InvalidFieldValue) as err:
        raise InputException(f"Invalid build controller config: {err}") from err
