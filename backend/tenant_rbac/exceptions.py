from typing import Any, Dict, Iterable, Optional
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.request_context import request_id_var
from .schemas.rbac import Diagnostic, Severity
from .schemas.values import values_path


logger = structlog.get_logger(__name__)


class AppException(Exception):
    """统一应用异常基类，便于在业务层抛出标准化错误。"""

    def __init__(self, message: str, *, status_code: int = 400, code: str = "APP_ERROR", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class ValuesLoadError(AppException):
    """values 文件无法解析或结构不符合约定。"""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=400, code="VALUES_LOAD_ERROR", details=details)


class TenantValidationError(AppException):
    """租户声明存在错误级别的诊断，拒绝生成或下发对象。"""

    def __init__(self, tenant: str, diagnostics: Iterable[Diagnostic]) -> None:
        self.tenant = tenant
        self.diagnostics = list(diagnostics)
        super().__init__(
            f"tenant '{tenant}' has {len(self.diagnostics)} validation problem(s)",
            status_code=422,
            code="TENANT_VALIDATION_ERROR",
            details={
                "tenant": tenant,
                "diagnostics": [d.model_dump(mode="json") for d in self.diagnostics],
            },
        )


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request_id_var.get() or str(uuid.uuid4())


def _error_response(
    request: Request,
    *,
    status_code: int,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """错误统一包成 {"success": false, "error": {...}} 信封，并回写 X-Request-ID。"""
    rid = _request_id(request)
    payload: Dict[str, Any] = {
        "success": False,
        "error": {
            "message": message,
            "code": code,
            **({"details": details} if details else {}),
        },
        "request_id": rid,
        "status_code": status_code,
    }
    return JSONResponse(status_code=status_code, content=payload, headers={"X-Request-ID": rid})


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器。"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        logger.warning("api.http_error", status_code=exc.status_code, path=request.url.path)
        return _error_response(request, status_code=exc.status_code, message=message, code="HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        # 租户文档结构不对（字段类型错误），位置用与诊断相同的 groups[0].bindings 写法
        errors = [
            {"path": values_path(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        logger.info("api.document_rejected", path=request.url.path, errors=len(errors))
        return _error_response(
            request,
            status_code=422,
            message="Tenant document has fields of the wrong type",
            code="VALIDATION_ERROR",
            details={"errors": errors},
        )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):  # type: ignore[override]
        if isinstance(exc, TenantValidationError):
            logger.warning(
                "api.tenant_rejected",
                tenant=exc.tenant,
                errors=sum(1 for d in exc.diagnostics if d.severity is Severity.ERROR),
                path=request.url.path,
            )
        else:
            logger.warning("api.app_error", code=exc.code, status_code=exc.status_code, path=request.url.path)
        return _error_response(
            request,
            status_code=exc.status_code,
            message=exc.message,
            code=exc.code,
            details=exc.details,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.exception("api.unhandled_error", path=request.url.path)
        return _error_response(request, status_code=500, message="Internal server error", code="INTERNAL_SERVER_ERROR")
