"""Strict tenant model walked by the expander.

A `TenantPlan` can only be built from a declaration that already passed
validation. Scope is a closed tagged union: a cluster binding has no
namespace field at all, and a namespace binding cannot be empty.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .values import TenantConfig


class Scope(str, Enum):
    CLUSTER = "cluster"
    NAMESPACE = "namespace"


class ClusterBinding(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    scope: Literal[Scope.CLUSTER] = Scope.CLUSTER
    role: str = Field(min_length=1)


class NamespaceBinding(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    scope: Literal[Scope.NAMESPACE] = Scope.NAMESPACE
    role: str = Field(min_length=1)
    namespaces: tuple[str, ...] = Field(min_length=1)


Binding = Annotated[Union[ClusterBinding, NamespaceBinding], Field(discriminator="scope")]


class PlanGroup(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    id: str = Field(min_length=1)
    bindings: tuple[Binding, ...] = ()


class TenantPlan(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant: str = Field(min_length=1)
    install: tuple[str, ...] = ()
    exists: tuple[str, ...] = ()
    groups: tuple[PlanGroup, ...] = ()

    @model_validator(mode="after")
    def _check_references(self) -> "TenantPlan":
        overlap = set(self.install) & set(self.exists)
        if overlap:
            raise ValueError(f"namespaces both installed and existing: {sorted(overlap)}")
        names = [group.name for group in self.groups]
        if len(names) != len(set(names)):
            raise ValueError("group names must be unique")
        declared = set(self.install) | set(self.exists)
        for group in self.groups:
            for binding in group.bindings:
                if isinstance(binding, NamespaceBinding):
                    missing = [ns for ns in binding.namespaces if ns not in declared]
                    if missing:
                        raise ValueError(f"binding references undeclared namespaces: {missing}")
        return self

    @classmethod
    def from_config(cls, config: TenantConfig) -> "TenantPlan":
        """Build the strict plan; repeated entries collapse to their first occurrence."""
        groups = []
        for group in config.groups:
            bindings: list[ClusterBinding | NamespaceBinding] = []
            for binding in group.bindings:
                if binding.scope == Scope.CLUSTER.value:
                    bindings.append(ClusterBinding(role=binding.role))
                else:
                    bindings.append(
                        NamespaceBinding(role=binding.role, namespaces=tuple(dict.fromkeys(binding.namespaces or ())))
                    )
            groups.append(PlanGroup(name=group.name, id=group.id, bindings=tuple(bindings)))
        return cls(
            tenant=config.tenant,
            install=tuple(dict.fromkeys(config.namespaces.install)),
            exists=tuple(dict.fromkeys(config.namespaces.exists)),
            groups=tuple(groups),
        )
