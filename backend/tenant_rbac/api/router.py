from fastapi import APIRouter

from tenant_rbac.api.routes import tenants

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(tenants.router)
