from __future__ import annotations

import asyncio
from typing import Any, Callable

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from ..config import Settings, get_settings
from ..exceptions import TenantValidationError
from ..schemas.rbac import (
    ApplyOutcome,
    ClusterRoleBindingObject,
    ExpansionResult,
    NamespaceObject,
    RoleBindingObject,
)
from .renderer import to_manifest

logger = structlog.get_logger(__name__)


class ClusterApplier:
    """Create-or-replace expanded objects through the Kubernetes API.

    Objects are written one at a time in emission order, so namespaces exist
    before the RoleBindings that live in them.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        core_v1: client.CoreV1Api | None = None,
        rbac_v1: client.RbacAuthorizationV1Api | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client_lock = asyncio.Lock()
        self._core_v1 = core_v1
        self._rbac_v1 = rbac_v1

    async def _ensure_clients(self) -> tuple[client.CoreV1Api, client.RbacAuthorizationV1Api]:
        if self._core_v1 and self._rbac_v1:
            return self._core_v1, self._rbac_v1

        async with self._client_lock:
            if self._core_v1 and self._rbac_v1:
                return self._core_v1, self._rbac_v1

            def _build_clients() -> tuple[client.CoreV1Api, client.RbacAuthorizationV1Api]:
                try:
                    if self.settings.service_account_token_path:
                        config.load_incluster_config()
                    else:
                        config.load_kube_config(
                            config_file=self.settings.kube_config_path,
                            context=self.settings.kube_context,
                        )
                except ConfigException as exc:
                    logger.warning("kubernetes.config_missing", error=str(exc))
                api_client = client.ApiClient()
                return client.CoreV1Api(api_client), client.RbacAuthorizationV1Api(api_client)

            self._core_v1, self._rbac_v1 = await asyncio.to_thread(_build_clients)
            return self._core_v1, self._rbac_v1

    def _write_calls(
        self,
        obj: NamespaceObject | ClusterRoleBindingObject | RoleBindingObject,
        core_v1: client.CoreV1Api,
        rbac_v1: client.RbacAuthorizationV1Api,
    ) -> tuple[Callable[..., Any], Callable[..., Any], dict[str, Any]]:
        if isinstance(obj, NamespaceObject):
            return core_v1.create_namespace, core_v1.replace_namespace, {}
        if isinstance(obj, ClusterRoleBindingObject):
            return rbac_v1.create_cluster_role_binding, rbac_v1.replace_cluster_role_binding, {}
        return (
            rbac_v1.create_namespaced_role_binding,
            rbac_v1.replace_namespaced_role_binding,
            {"namespace": obj.namespace},
        )

    def _failed(
        self,
        tenant: str,
        obj: NamespaceObject | ClusterRoleBindingObject | RoleBindingObject,
        namespace: str | None,
        message: str,
    ) -> ApplyOutcome:
        # `name` is a LogRecord attribute, so the object name goes out as object_name
        logger.warning(
            "applier.object_failed",
            tenant=tenant,
            kind=obj.kind,
            object_name=obj.name,
            namespace=namespace,
            error=message,
        )
        return ApplyOutcome(kind=obj.kind, name=obj.name, namespace=namespace, action="failed", message=message)

    async def apply(self, result: ExpansionResult, dry_run: bool = False) -> list[ApplyOutcome]:
        if not result.ok:
            raise TenantValidationError(result.tenant, result.diagnostics)

        core_v1, rbac_v1 = await self._ensure_clients()
        options: dict[str, Any] = {"field_manager": self.settings.field_manager}
        if dry_run:
            options["dry_run"] = "All"

        outcomes: list[ApplyOutcome] = []
        for obj in result.objects:
            body = to_manifest(obj)
            create, replace, scope = self._write_calls(obj, core_v1, rbac_v1)
            namespace = scope.get("namespace")

            def _do() -> str:
                try:
                    create(body=body, **scope, **options)
                    return "created"
                except ApiException as exc:
                    if exc.status != 409:
                        raise
                replace(name=obj.name, body=body, **scope, **options)
                return "replaced"

            try:
                action = await asyncio.to_thread(_do)
                outcomes.append(ApplyOutcome(kind=obj.kind, name=obj.name, namespace=namespace, action=action))
            except ApiException as exc:
                outcomes.append(self._failed(result.tenant, obj, namespace, f"{exc.status} {exc.reason}"))
            except (HTTPError, OSError) as exc:
                # unreachable API server or broken kubeconfig
                outcomes.append(self._failed(result.tenant, obj, namespace, f"{type(exc).__name__}: {exc}"))

        logger.info(
            "applier.applied",
            tenant=result.tenant,
            dry_run=dry_run,
            created=sum(1 for o in outcomes if o.action == "created"),
            replaced=sum(1 for o in outcomes if o.action == "replaced"),
            failed=sum(1 for o in outcomes if o.action == "failed"),
        )
        return outcomes
