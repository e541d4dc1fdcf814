"""Values-file document models.

These mirror the layout of a tenant values file one to one and accept
anything of the right shape, so that every mistake in a tenant declaration
can be reported as a diagnostic instead of failing on the first bad field.
"""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _none_to_list(value: Any) -> Any:
    # `install:` with no entries loads as None from YAML
    return [] if value is None else value


def values_path(loc: Iterable[Any]) -> str:
    """Render a pydantic error location the way diagnostics spell paths.

    `("body", "groups", 0, "bindings")` becomes `groups[0].bindings`; the
    FastAPI `body` prefix is dropped.
    """
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif not path and part == "body":
            continue
        else:
            path += f".{part}" if path else str(part)
    return path


class BindingValues(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    role: str = ""
    scope: str | None = None
    namespaces: list[str] | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _role_none(cls, value: Any) -> Any:
        return "" if value is None else value


class GroupValues(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: str = ""
    id: str = ""
    bindings: list[BindingValues] = Field(default_factory=list)

    @field_validator("name", "id", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("bindings", mode="before")
    @classmethod
    def _bindings(cls, value: Any) -> Any:
        return _none_to_list(value)


class NamespaceValues(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    install: list[str] = Field(default_factory=list)
    exists: list[str] = Field(default_factory=list)

    @field_validator("install", "exists", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class TenantConfig(BaseModel):
    """A single tenant declaration as written in a values file."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    tenant: str = ""
    namespaces: NamespaceValues = Field(default_factory=NamespaceValues)
    groups: list[GroupValues] = Field(default_factory=list)

    @field_validator("tenant", mode="before")
    @classmethod
    def _tenant(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("namespaces", mode="before")
    @classmethod
    def _namespaces(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("groups", mode="before")
    @classmethod
    def _groups(cls, value: Any) -> Any:
        return _none_to_list(value)
