"""Names and labels of the objects managed for a Build.

All functions here are pure functions of the build context.
"""

from build_reconciler.manifest import (
    LABEL_BUILD,
    LABEL_COMPONENT,
    LABEL_ENVIRONMENT,
    LABEL_MANAGED_BY,
    LABEL_ORGANIZATION,
    LABEL_PROJECT,
    MANAGED_BY,
)

from .build_context import BuildContext


def make_namespace_name(ctx: BuildContext) -> str:
    """Namespace the workflows of the build's organization run in."""
    return f"{ctx.config.namespace_prefix}{ctx.organization}"


def make_labels(ctx: BuildContext) -> dict[str, str]:
    """Labels for objects shared by every build of the organization."""
    return {
        LABEL_MANAGED_BY: MANAGED_BY,
        LABEL_ORGANIZATION: ctx.organization,
    }


def make_component_labels(ctx: BuildContext) -> dict[str, str]:
    """Labels for objects owned by the build's component."""
    return {
        **make_labels(ctx),
        LABEL_PROJECT: ctx.project,
        LABEL_COMPONENT: ctx.component,
    }


def make_deployable_artifact_name(ctx: BuildContext) -> str:
    return ctx.build.name


def make_deployable_artifact_labels(ctx: BuildContext) -> dict[str, str]:
    return {
        **make_component_labels(ctx),
        LABEL_BUILD: ctx.build.name,
    }


def make_deployment_name(ctx: BuildContext) -> str:
    return f"{ctx.component}-{ctx.config.auto_deploy_environment}"


def make_deployment_labels(ctx: BuildContext) -> dict[str, str]:
    return {
        **make_component_labels(ctx),
        LABEL_ENVIRONMENT: ctx.config.auto_deploy_environment,
    }
