"""
快照与健康检查 API

采集和数据库检查都是阻塞调用，处理函数用普通 def，不占用事件循环。
"""

import time
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException

from ...database import RollupStore, StorageError
from ...models import HealthResponse, Snapshot
from ...tiers import TIERS
from ..dependencies import get_database, get_source, verify_token

router = APIRouter(tags=["snapshot"])


@router.get("/v1/snapshot", response_model=Snapshot, dependencies=[Depends(verify_token)])
def get_snapshot(source: Callable[[], Snapshot] = Depends(get_source)):
    """获取当前系统快照"""
    try:
        return source()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to collect snapshot: {e}")


@router.get("/v1/health", response_model=HealthResponse)
def get_health(
    source: Callable[[], Snapshot] = Depends(get_source),
    store: RollupStore = Depends(get_database),
):
    """
    健康检查端点

    测试快照源和数据库是否正常工作
    """
    checks = {}
    details = {}
    overall_status = "ok"

    # 检查快照源
    try:
        source()
        checks["collector"] = "ok"
        details["collector"] = None
    except Exception as e:
        checks["collector"] = "error"
        details["collector"] = str(e)
        overall_status = "degraded"

    # 检查数据库（读一条最细精度数据即可）
    try:
        now = int(time.time())
        store.fetch_range(TIERS[0], now - TIERS[0].period, now)
        checks["database"] = "ok"
        details["database"] = None
    except StorageError as e:
        checks["database"] = "error"
        details["database"] = str(e)
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.utcnow(),
        checks=checks,
        details=details
    )
