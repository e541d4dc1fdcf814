#!/usr/bin/env python3
"""
tenant-rbac API server
启动FastAPI服务器
"""

import uvicorn
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

from tenant_rbac.config import get_settings
from tenant_rbac.core.logging import setup_logging

# 使用应用自身的统一日志配置，避免 uvicorn 默认 log_config 覆盖
setup_logging()

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "tenant_rbac.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_debug,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
