import json
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .api.router import api_router
from .config import get_settings
from .core.logging import get_logger, setup_logging
from .core.request_context import request_id_var
from .exceptions import register_exception_handlers

# 日志初始化需尽早执行
setup_logging()
logger = get_logger(__name__)

settings = get_settings()

app = FastAPI(
    title="Tenant RBAC Compiler API",
    description="Expand tenant declarations into Namespaces, RoleBindings and ClusterRoleBindings",
    version=settings.app_version,
)


# ============ request_id + 统一成功响应包装 ============
@app.middleware("http")
async def request_id_and_envelope(request: Request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        # 仅包装成功的 JSON 响应
        if response.status_code >= 400 or response.status_code == 204:
            return response
        if "application/json" not in response.headers.get("content-type", ""):
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk
        if not body:
            return response

        try:
            payload = json.loads(body)
        except ValueError:
            return Response(content=body, status_code=response.status_code, headers=dict(response.headers))

        wrapped = {"success": True, "data": payload, "request_id": request_id}
        headers = dict(response.headers)
        headers.pop("content-length", None)
        return JSONResponse(status_code=response.status_code, content=wrapped, headers=headers)
    finally:
        logger.info(
            "%s %s handled in %.1fms",
            request.method,
            request.url.path,
            (time.perf_counter() - start) * 1000,
        )
        request_id_var.reset(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Tenant RBAC Compiler API"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
