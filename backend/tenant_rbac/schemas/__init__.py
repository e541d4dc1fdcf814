from .rbac import (
    ApplyOutcome,
    ClusterRoleBindingObject,
    Diagnostic,
    DiagnosticKind,
    ExpansionResponse,
    ExpansionResult,
    NamespaceObject,
    RoleBindingObject,
    RoleRef,
    Severity,
    ValidationResponse,
)
from .tenant import ClusterBinding, NamespaceBinding, PlanGroup, Scope, TenantPlan
from .values import BindingValues, GroupValues, NamespaceValues, TenantConfig

__all__ = [
    "ApplyOutcome",
    "BindingValues",
    "ClusterBinding",
    "ClusterRoleBindingObject",
    "Diagnostic",
    "DiagnosticKind",
    "ExpansionResponse",
    "ExpansionResult",
    "GroupValues",
    "NamespaceBinding",
    "NamespaceObject",
    "NamespaceValues",
    "PlanGroup",
    "RoleBindingObject",
    "RoleRef",
    "Scope",
    "Severity",
    "TenantConfig",
    "TenantPlan",
    "ValidationResponse",
]
