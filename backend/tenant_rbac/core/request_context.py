"""
Request-scoped context variables.

让日志在不侵入业务代码的情况下自动携带 request_id / tenant。
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
tenant_var: ContextVar[Optional[str]] = ContextVar("tenant", default=None)


@contextmanager
def bound_tenant(tenant: Optional[str]) -> Iterator[None]:
    """在 with 块内把 tenant 写入日志上下文，退出时恢复原值。"""
    token = tenant_var.set(tenant or None)
    try:
        yield
    finally:
        tenant_var.reset(token)
