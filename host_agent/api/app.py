"""
FastAPI 应用配置

注册查询、快照、健康检查路由。
"""

import logging

from fastapi import FastAPI

from .. import __version__
from .routers import collector, snapshot

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Host Monitor Agent",
        description="Linux 主机监控代理：区间查询与实时快照",
        version=__version__,
    )

    app.include_router(collector.router)
    app.include_router(snapshot.router)

    return app
