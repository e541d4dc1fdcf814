from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RBAC_API_GROUP = "rbac.authorization.k8s.io"


class RoleRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_group: str = RBAC_API_GROUP
    kind: Literal["ClusterRole"] = "ClusterRole"
    name: str


class NamespaceObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["Namespace"] = "Namespace"
    name: str
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    def identity(self) -> tuple[str, str | None, str | None, str | None]:
        return (self.kind, None, self.name, None)


class ClusterRoleBindingObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ClusterRoleBinding"] = "ClusterRoleBinding"
    name: str
    role_ref: RoleRef
    subject_group_id: str
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    def identity(self) -> tuple[str, str | None, str | None, str | None]:
        return (self.kind, None, self.role_ref.name, self.subject_group_id)


class RoleBindingObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["RoleBinding"] = "RoleBinding"
    namespace: str
    name: str
    role_ref: RoleRef
    subject_group_id: str
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    def identity(self) -> tuple[str, str | None, str | None, str | None]:
        return (self.kind, self.namespace, self.role_ref.name, self.subject_group_id)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticKind(str, Enum):
    DUPLICATE_NAMESPACE = "DuplicateNamespace"
    DUPLICATE_GROUP_NAME = "DuplicateGroupName"
    MISSING_NAMESPACE_SCOPE_LIST = "MissingNamespaceScopeList"
    UNEXPECTED_NAMESPACE_LIST = "UnexpectedNamespaceList"
    UNDECLARED_NAMESPACE_REFERENCE = "UndeclaredNamespaceReference"
    EMPTY_ROLE_NAME = "EmptyRoleName"
    EMPTY_TENANT_NAME = "EmptyTenantName"
    EMPTY_GROUP_NAME = "EmptyGroupName"
    EMPTY_GROUP_ID = "EmptyGroupId"
    INVALID_SCOPE = "InvalidScope"
    INVALID_NAMESPACE_NAME = "InvalidNamespaceName"
    CONFLICTING_OBJECT_NAME = "ConflictingObjectName"
    REPEATED_NAMESPACE_ENTRY = "RepeatedNamespaceEntry"
    REDUNDANT_BINDING = "RedundantBinding"


WARNING_KINDS = frozenset({DiagnosticKind.REPEATED_NAMESPACE_ENTRY, DiagnosticKind.REDUNDANT_BINDING})


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    severity: Severity
    path: str
    message: str

    @classmethod
    def of(cls, kind: DiagnosticKind, path: str, message: str) -> "Diagnostic":
        severity = Severity.WARNING if kind in WARNING_KINDS else Severity.ERROR
        return cls(kind=kind, severity=severity, path=path, message=message)

    def __str__(self) -> str:
        return f"{self.severity.value} {self.kind.value} at {self.path}: {self.message}"


@dataclass(frozen=True)
class ExpansionResult:
    """Objects emitted for one tenant plus everything validation reported.

    `objects` is empty whenever an error diagnostic is present.
    """

    tenant: str
    objects: tuple[NamespaceObject | ClusterRoleBindingObject | RoleBindingObject, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors


class ValidationResponse(BaseModel):
    tenant: str
    valid: bool
    diagnostics: list[Diagnostic]


class ExpansionResponse(BaseModel):
    tenant: str
    objects: list[dict[str, Any]]
    diagnostics: list[Diagnostic]


class ApplyOutcome(BaseModel):
    kind: str
    name: str
    namespace: str | None = None
    action: Literal["created", "replaced", "failed"]
    message: str | None = None
