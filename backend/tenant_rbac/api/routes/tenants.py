from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from tenant_rbac.config import Settings, get_settings
from tenant_rbac.core.request_context import bound_tenant
from tenant_rbac.exceptions import TenantValidationError
from tenant_rbac.schemas.rbac import ApplyOutcome, ExpansionResponse, ExpansionResult, Severity, ValidationResponse
from tenant_rbac.schemas.values import TenantConfig
from tenant_rbac.services.expander import expand, validate
from tenant_rbac.services.kube_apply import ClusterApplier
from tenant_rbac.services.renderer import render_manifests, render_yaml


router = APIRouter(prefix="/tenants", tags=["tenants"])


def get_applier() -> ClusterApplier:
    return ClusterApplier(get_settings())


def _expand_or_raise(payload: TenantConfig, settings: Settings) -> ExpansionResult:
    result = expand(payload, settings)
    if not result.ok:
        raise TenantValidationError(result.tenant, result.diagnostics)
    return result


@router.post("/validate", response_model=ValidationResponse)
async def validate_tenant(payload: TenantConfig) -> ValidationResponse:
    with bound_tenant(payload.tenant):
        diagnostics = validate(payload)
    valid = all(d.severity is not Severity.ERROR for d in diagnostics)
    return ValidationResponse(tenant=payload.tenant, valid=valid, diagnostics=diagnostics)


@router.post("/expand", response_model=ExpansionResponse)
async def expand_tenant(payload: TenantConfig, settings: Settings = Depends(get_settings)) -> ExpansionResponse:
    with bound_tenant(payload.tenant):
        result = _expand_or_raise(payload, settings)
        return ExpansionResponse(
            tenant=result.tenant,
            objects=render_manifests(result.objects),
            diagnostics=list(result.diagnostics),
        )


@router.post("/render", response_class=PlainTextResponse)
async def render_tenant(payload: TenantConfig, settings: Settings = Depends(get_settings)) -> PlainTextResponse:
    with bound_tenant(payload.tenant):
        result = _expand_or_raise(payload, settings)
        return PlainTextResponse(render_yaml(result.objects), media_type="application/yaml")


@router.post("/apply", response_model=list[ApplyOutcome])
async def apply_tenant(
    payload: TenantConfig,
    dry_run: bool = Query(default=False),
    settings: Settings = Depends(get_settings),
    applier: ClusterApplier = Depends(get_applier),
) -> list[ApplyOutcome]:
    if not settings.apply_enabled:
        raise HTTPException(status_code=404, detail="Cluster apply disabled")
    with bound_tenant(payload.tenant):
        result = _expand_or_raise(payload, settings)
        return await applier.apply(result, dry_run=dry_run)
