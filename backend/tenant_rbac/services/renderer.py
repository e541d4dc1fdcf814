from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import yaml

from ..schemas.rbac import (
    RBAC_API_GROUP,
    ClusterRoleBindingObject,
    NamespaceObject,
    RoleBindingObject,
)

RBAC_API_VERSION = f"{RBAC_API_GROUP}/v1"


def _role_ref(obj: ClusterRoleBindingObject | RoleBindingObject) -> dict[str, str]:
    return {
        "apiGroup": obj.role_ref.api_group,
        "kind": obj.role_ref.kind,
        "name": obj.role_ref.name,
    }


def _group_subjects(group_id: str) -> list[dict[str, str]]:
    return [{"apiGroup": RBAC_API_GROUP, "kind": "Group", "name": group_id}]


def to_manifest(obj: NamespaceObject | ClusterRoleBindingObject | RoleBindingObject) -> dict[str, Any]:
    """Kubernetes manifest for a single expanded object."""
    if isinstance(obj, NamespaceObject):
        return {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": obj.name, "labels": dict(obj.labels)},
        }
    if isinstance(obj, ClusterRoleBindingObject):
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": "ClusterRoleBinding",
            "metadata": {"name": obj.name, "labels": dict(obj.labels)},
            "roleRef": _role_ref(obj),
            "subjects": _group_subjects(obj.subject_group_id),
        }
    if isinstance(obj, RoleBindingObject):
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": "RoleBinding",
            "metadata": {"name": obj.name, "namespace": obj.namespace, "labels": dict(obj.labels)},
            "roleRef": _role_ref(obj),
            "subjects": _group_subjects(obj.subject_group_id),
        }
    raise TypeError(f"cannot render {type(obj).__name__}")


def render_manifests(objects: Iterable[NamespaceObject | ClusterRoleBindingObject | RoleBindingObject]) -> list[dict[str, Any]]:
    return [to_manifest(obj) for obj in objects]


def render_yaml(objects: Iterable[NamespaceObject | ClusterRoleBindingObject | RoleBindingObject]) -> str:
    """Multi-document YAML, stable key order so reruns are byte-identical."""
    manifests = render_manifests(objects)
    if not manifests:
        return ""
    return yaml.safe_dump_all(manifests, sort_keys=False, explicit_start=True)
