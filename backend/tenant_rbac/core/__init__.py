"""
Core module initialization.
导出日志与请求上下文工具
"""
from .logging import setup_logging, get_logger
from .request_context import bound_tenant, request_id_var, tenant_var

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "request_id_var",
    "tenant_var",
    "bound_tenant",
]
