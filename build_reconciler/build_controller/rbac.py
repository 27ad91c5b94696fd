"""Handlers for the identity the build workflows run as.

Every build of an organization runs in the same namespace, so the
ServiceAccount, Role and RoleBinding are shared between builds and only
carry organization level labels. They have no cleanup semantics of their
own and deleting them is a no-op.
"""

from build_reconciler.manifest import (
    ObjectMeta,
    PolicyRule,
    Role,
    RoleBinding,
    RoleRef,
    ServiceAccount,
    Subject,
    RBAC_API_GROUP,
    ROLE_KIND,
    SERVICE_ACCOUNT_KIND,
)
from build_reconciler.dataplane import KubernetesResourceHandler
from build_reconciler.resource_diff import equate_empty, labels_differ

from .build_context import BuildContext
from .naming import make_labels, make_namespace_name

__all__ = [
    "ServiceAccountHandler",
    "RoleHandler",
    "RoleBindingHandler",
    "WORKFLOW_RULES",
]


WORKFLOW_RULES: tuple[PolicyRule, ...] = (
    PolicyRule(
        api_groups=["argoproj.io"],
        resources=["workflowtaskresults"],
        verbs=["create", "patch"],
    ),
    PolicyRule(api_groups=[""], resources=["pods"], verbs=["get", "watch", "patch"]),
    PolicyRule(api_groups=[""], resources=["pods/log"], verbs=["get", "watch"]),
)
"""Permissions the workflow executor needs to report step results."""


class _WorkflowRbacHandler:
    """Behavior shared by the workflow RBAC handlers."""

    def is_required(self, ctx: BuildContext) -> bool:
        return ctx.config.manage_workflow_rbac

    async def delete(self, ctx: BuildContext) -> None:
        """Shared with other builds in the namespace, never deleted."""


class ServiceAccountHandler(
    _WorkflowRbacHandler, KubernetesResourceHandler[BuildContext, ServiceAccount]
):
    """Manages the ServiceAccount workflow pods run as."""

    resource_cls = ServiceAccount

    @property
    def name(self) -> str:
        return "WorkflowServiceAccount"

    def make_resource(self, ctx: BuildContext) -> ServiceAccount:
        return ServiceAccount(
            metadata=ObjectMeta(
                name=ctx.config.service_account_name,
                namespace=make_namespace_name(ctx),
                labels=make_labels(ctx),
            )
        )

    def should_update(self, current: ServiceAccount, desired: ServiceAccount) -> bool:
        return labels_differ(current.metadata.labels, desired.metadata.labels)


class RoleHandler(_WorkflowRbacHandler, KubernetesResourceHandler[BuildContext, Role]):
    """Manages the Role granting the workflow executor its permissions."""

    resource_cls = Role

    @property
    def name(self) -> str:
        return "WorkflowRole"

    def make_resource(self, ctx: BuildContext) -> Role:
        return Role(
            metadata=ObjectMeta(
                name=ctx.config.role_name,
                namespace=make_namespace_name(ctx),
                labels=make_labels(ctx),
            ),
            rules=[
                PolicyRule(
                    api_groups=list(rule.api_groups),
                    resources=list(rule.resources),
                    verbs=list(rule.verbs),
                )
                for rule in WORKFLOW_RULES
            ],
        )

    def should_update(self, current: Role, desired: Role) -> bool:
        if labels_differ(current.metadata.labels, desired.metadata.labels):
            return True
        return not equate_empty(current.rules, desired.rules)


class RoleBindingHandler(
    _WorkflowRbacHandler, KubernetesResourceHandler[BuildContext, RoleBinding]
):
    """Binds the workflow Role to the workflow ServiceAccount."""

    resource_cls = RoleBinding

    @property
    def name(self) -> str:
        return "WorkflowRoleBinding"

    def make_resource(self, ctx: BuildContext) -> RoleBinding:
        namespace = make_namespace_name(ctx)
        return RoleBinding(
            metadata=ObjectMeta(
                name=ctx.config.role_binding_name,
                namespace=namespace,
                labels=make_labels(ctx),
            ),
            subjects=[
                Subject(
                    kind=SERVICE_ACCOUNT_KIND,
                    name=ctx.config.service_account_name,
                    namespace=namespace,
                )
            ],
            role_ref=RoleRef(
                kind=ROLE_KIND,
                name=ctx.config.role_name,
                api_group=RBAC_API_GROUP,
            ),
        )

    def should_update(self, current: RoleBinding, desired: RoleBinding) -> bool:
        if labels_differ(current.metadata.labels, desired.metadata.labels):
            return True
        if not equate_empty(current.subjects, desired.subjects):
            return True
        return not equate_empty(current.role_ref, desired.role_ref)
