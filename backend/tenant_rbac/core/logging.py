"""
Logging configuration for tenant-rbac.
统一的日志配置模块，支持彩色控制台与JSON结构化日志。
"""
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ..config import get_settings
from .request_context import request_id_var, tenant_var

_CONFIGURED = False

# LogRecord 自带的属性，不作为额外字段输出
_RESERVED_ATTRS = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "msg", "name", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "taskName", "thread", "threadName",
}


class ContextFilter(logging.Filter):
    """把 request_id/tenant 自动注入 LogRecord。"""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        rid = getattr(record, "request_id", None) or request_id_var.get()
        tenant = getattr(record, "tenant", None) or tenant_var.get()

        if rid is not None:
            record.request_id = rid
        if tenant is not None:
            record.tenant = tenant

        if not hasattr(record, "service"):
            record.service = get_settings().app_name
        if not hasattr(record, "env"):
            record.env = get_settings().app_env
        return True


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器（用于控制台输出）"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """JSON 结构化日志格式化器。

    输出 time, level, name, message 标准字段，并合并额外字段。
    kubeconfig 相关的敏感字段会被脱敏。
    """

    REDACT_KEYS = {"token", "authorization", "kubeconfig", "client_key", "password"}

    def __init__(self, datefmt: Optional[str] = None) -> None:
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid:
            payload["request_id"] = rid

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            safe_key = str(key)
            payload[safe_key] = self._redact(value) if safe_key.lower() in self.REDACT_KEYS else value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _redact(value: Any) -> str:
        return "***REDACTED***" if value else ""


def _configure_structlog(json_output: bool) -> None:
    """让 structlog 事件走标准 logging 的 handler。"""
    renderer = (
        structlog.stdlib.render_to_log_kwargs
        if json_output
        else structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_color: bool = True,
) -> logging.Logger:
    """配置日志系统（统一配置 root logger）

    Args:
        name: 日志记录器名称
        level: 日志级别
        log_file: 日志文件路径
        use_color: 是否使用彩色输出

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    global _CONFIGURED
    settings = get_settings()
    logger = logging.getLogger(name or "tenant_rbac")

    if _CONFIGURED:
        return logger

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    # 清理默认 handler，避免重复输出
    for h in list(root.handlers):
        root.removeHandler(h)

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.addFilter(context_filter)

    if settings.log_json:
        console_formatter: logging.Formatter = JSONFormatter(datefmt=settings.log_date_format)
    elif use_color and sys.stderr.isatty():
        console_formatter = ColoredFormatter(settings.log_format, datefmt=settings.log_date_format)
    else:
        console_formatter = logging.Formatter(settings.log_format, datefmt=settings.log_date_format)

    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    file_path = log_file or settings.log_file
    if file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context_filter)
        if settings.log_json:
            file_handler.setFormatter(JSONFormatter(datefmt=settings.log_date_format))
        else:
            file_handler.setFormatter(logging.Formatter(settings.log_format, datefmt=settings.log_date_format))
        root.addHandler(file_handler)

    # 让常见 logger 走 root handlers
    for log_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "kubernetes"):
        l = logging.getLogger(log_name)
        l.handlers = []
        l.propagate = True

    _configure_structlog(settings.log_json)

    _CONFIGURED = True
    return logger


def get_logger(name: str) -> logging.Logger:
    """获取日志记录器"""
    return logging.getLogger(name)
