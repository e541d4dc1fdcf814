"""Binding expander.

Turns a tenant declaration into the Namespace, RoleBinding and
ClusterRoleBinding objects that realize it. Validation runs first and
collects every problem; if any of them is an error nothing is emitted.

RBAC here is additive only: a group with no binding is granted nothing,
and there is no way to express a deny.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

import structlog

from ..config import Settings, get_settings
from ..schemas.rbac import (
    ClusterRoleBindingObject,
    Diagnostic,
    DiagnosticKind,
    ExpansionResult,
    NamespaceObject,
    RoleBindingObject,
    RoleRef,
)
from ..schemas.tenant import ClusterBinding, NamespaceBinding, Scope, TenantPlan
from ..schemas.values import TenantConfig

logger = structlog.get_logger(__name__)

_NAMESPACE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_NAME_UNSAFE_RE = re.compile(r"[^a-z0-9.-]+")
_NAME_PREFIX_MAX = 52
_SCOPES = {scope.value for scope in Scope}

Identity = tuple[str, str | None, str, str]


def is_valid_namespace_name(name: str) -> bool:
    """RFC 1123 label, which is what the API server accepts for a Namespace."""
    return len(name) <= 63 and bool(_NAMESPACE_RE.match(name))


def binding_name(kind: str, tenant: str, group_name: str, role: str, group_id: str) -> str:
    """Object name for a binding: a readable prefix plus a digest of what it grants.

    The prefix is `<tenant>-<group>-<role>` made DNS-safe and may be ambiguous
    (`dev` + `team-view` reads the same as `dev-team` + `view`); the digest over
    kind, tenant, role and group id is what keeps distinct grants apart.
    """
    raw = f"{tenant}-{group_name}-{role}".lower()
    prefix = _NAME_UNSAFE_RE.sub("-", raw)[:_NAME_PREFIX_MAX].strip("-.")
    digest = hashlib.sha256("\0".join((kind, tenant, role, group_id)).encode("utf-8")).hexdigest()[:10]
    return f"{prefix}-{digest}" if prefix else digest


def _repeated(values: list[str], path: str) -> list[Diagnostic]:
    seen: set[str] = set()
    out = []
    for index, value in enumerate(values):
        if value in seen:
            out.append(
                Diagnostic.of(
                    DiagnosticKind.REPEATED_NAMESPACE_ENTRY,
                    f"{path}[{index}]",
                    f"namespace '{value}' is listed more than once",
                )
            )
        seen.add(value)
    return out


def validate(config: TenantConfig) -> list[Diagnostic]:
    """Return every diagnostic for `config`, in document order."""
    diagnostics: list[Diagnostic] = []

    if not config.tenant.strip():
        diagnostics.append(Diagnostic.of(DiagnosticKind.EMPTY_TENANT_NAME, "tenant", "tenant name is blank"))

    install = config.namespaces.install
    exists = config.namespaces.exists
    for list_name, values in (("install", install), ("exists", exists)):
        path = f"namespaces.{list_name}"
        diagnostics.extend(_repeated(values, path))
        for index, ns in enumerate(values):
            if not is_valid_namespace_name(ns):
                diagnostics.append(
                    Diagnostic.of(
                        DiagnosticKind.INVALID_NAMESPACE_NAME,
                        f"{path}[{index}]",
                        f"'{ns}' is not a valid namespace name",
                    )
                )

    installed = set(install)
    reported: set[str] = set()
    for index, ns in enumerate(exists):
        if ns in installed and ns not in reported:
            reported.add(ns)
            diagnostics.append(
                Diagnostic.of(
                    DiagnosticKind.DUPLICATE_NAMESPACE,
                    f"namespaces.exists[{index}]",
                    f"namespace '{ns}' is listed under both install and exists",
                )
            )

    declared = installed | set(exists)
    group_names: set[str] = set()
    identities: set[Identity] = set()
    names: dict[tuple[str, str | None, str], Identity] = {}

    for g_index, group in enumerate(config.groups):
        g_path = f"groups[{g_index}]"
        if not group.name.strip():
            diagnostics.append(Diagnostic.of(DiagnosticKind.EMPTY_GROUP_NAME, f"{g_path}.name", "group name is blank"))
        elif group.name in group_names:
            diagnostics.append(
                Diagnostic.of(
                    DiagnosticKind.DUPLICATE_GROUP_NAME,
                    f"{g_path}.name",
                    f"group name '{group.name}' is already used",
                )
            )
        group_names.add(group.name)

        if not group.id.strip():
            diagnostics.append(Diagnostic.of(DiagnosticKind.EMPTY_GROUP_ID, f"{g_path}.id", "group id is blank"))

        for b_index, binding in enumerate(group.bindings):
            b_path = f"{g_path}.bindings[{b_index}]"
            namespaces = binding.namespaces or []
            role_ok = bool(binding.role.strip())

            if not role_ok:
                diagnostics.append(Diagnostic.of(DiagnosticKind.EMPTY_ROLE_NAME, f"{b_path}.role", "role name is blank"))

            if binding.scope not in _SCOPES:
                diagnostics.append(
                    Diagnostic.of(
                        DiagnosticKind.INVALID_SCOPE,
                        f"{b_path}.scope",
                        f"scope must be one of {sorted(_SCOPES)}, got {binding.scope!r}",
                    )
                )
            elif binding.scope == Scope.NAMESPACE.value and not namespaces:
                diagnostics.append(
                    Diagnostic.of(
                        DiagnosticKind.MISSING_NAMESPACE_SCOPE_LIST,
                        f"{b_path}.namespaces",
                        "namespace-scoped binding needs at least one namespace",
                    )
                )
            elif binding.scope == Scope.CLUSTER.value and namespaces:
                diagnostics.append(
                    Diagnostic.of(
                        DiagnosticKind.UNEXPECTED_NAMESPACE_LIST,
                        f"{b_path}.namespaces",
                        "cluster-scoped binding must not list namespaces",
                    )
                )

            diagnostics.extend(_repeated(namespaces, f"{b_path}.namespaces"))
            for n_index, ns in enumerate(namespaces):
                if ns not in declared:
                    diagnostics.append(
                        Diagnostic.of(
                            DiagnosticKind.UNDECLARED_NAMESPACE_REFERENCE,
                            f"{b_path}.namespaces[{n_index}]",
                            f"namespace '{ns}' is not declared under install or exists",
                        )
                    )

            if not (role_ok and group.id.strip()):
                continue
            if binding.scope == Scope.CLUSTER.value:
                keys: list[Identity] = [("ClusterRoleBinding", None, binding.role, group.id)]
            elif binding.scope == Scope.NAMESPACE.value:
                keys = [("RoleBinding", ns, binding.role, group.id) for ns in dict.fromkeys(namespaces)]
            else:
                keys = []
            for key in keys:
                if key in identities:
                    where = f" in namespace '{key[1]}'" if key[1] else ""
                    diagnostics.append(
                        Diagnostic.of(
                            DiagnosticKind.REDUNDANT_BINDING,
                            b_path,
                            f"role '{binding.role}'{where} is already granted to group id '{group.id}'",
                        )
                    )
                    continue
                identities.add(key)
                kind, ns, role, group_id = key
                slot = (kind, ns, binding_name(kind, config.tenant, group.name, role, group_id))
                if slot in names:
                    other = names[slot]
                    diagnostics.append(
                        Diagnostic.of(
                            DiagnosticKind.CONFLICTING_OBJECT_NAME,
                            b_path,
                            f"{kind} name '{slot[2]}' is already used for role '{other[2]}' and group id '{other[3]}'",
                        )
                    )
                names.setdefault(slot, key)

    return diagnostics


def _emit(plan: TenantPlan, settings: Settings) -> list[NamespaceObject | ClusterRoleBindingObject | RoleBindingObject]:
    labels = {
        "app.kubernetes.io/managed-by": settings.managed_by,
        settings.tenant_label: plan.tenant,
    }
    objects: list[NamespaceObject | ClusterRoleBindingObject | RoleBindingObject] = [
        NamespaceObject(name=ns, labels=labels) for ns in plan.install
    ]
    # `exists` namespaces are already in the cluster and emit nothing

    seen: set[tuple] = set()
    for group in plan.groups:
        for binding in group.bindings:
            role_ref = RoleRef(name=binding.role)
            if isinstance(binding, ClusterBinding):
                name = binding_name("ClusterRoleBinding", plan.tenant, group.name, binding.role, group.id)
                emitted = [
                    ClusterRoleBindingObject(name=name, role_ref=role_ref, subject_group_id=group.id, labels=labels)
                ]
            elif isinstance(binding, NamespaceBinding):
                name = binding_name("RoleBinding", plan.tenant, group.name, binding.role, group.id)
                emitted = [
                    RoleBindingObject(
                        namespace=ns, name=name, role_ref=role_ref, subject_group_id=group.id, labels=labels
                    )
                    for ns in binding.namespaces
                ]
            else:  # pragma: no cover
                raise TypeError(f"unknown binding type {type(binding).__name__}")
            for obj in emitted:
                if obj.identity in seen:
                    continue
                seen.add(obj.identity)
                objects.append(obj)
    return objects


def expand(config: TenantConfig, settings: Settings | None = None) -> ExpansionResult:
    """Validate `config` and, if it has no errors, expand it into objects.

    The same declaration always yields the same objects in the same order:
    namespaces from `install` first, then bindings group by group.
    """
    settings = settings or get_settings()
    diagnostics = validate(config)
    rejected = ExpansionResult(tenant=config.tenant, objects=(), diagnostics=tuple(diagnostics))

    if not rejected.ok:
        logger.warning("expander.validation_failed", tenant=config.tenant, errors=len(rejected.errors))
        return rejected

    plan = TenantPlan.from_config(config)
    objects = _emit(plan, settings)
    logger.info("expander.expanded", tenant=config.tenant, objects=len(objects), warnings=len(diagnostics))
    return ExpansionResult(tenant=config.tenant, objects=tuple(objects), diagnostics=tuple(diagnostics))


def expand_many(configs: Iterable[TenantConfig], settings: Settings | None = None) -> list[ExpansionResult]:
    """Expand several tenants; each result stands on its own."""
    settings = settings or get_settings()
    return [expand(config, settings) for config in configs]
