"""
区间查询 API

返回指定精度的历史数据，缺失的时间点补零。

查询 SQLite 是阻塞调用，处理函数用普通 def，由 FastAPI 放到线程池执行。
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...database import StorageError
from ...reader import QueryError, RangeReader, ReadConfig
from ..dependencies import get_reader, verify_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["collector"])


@router.get("/v1/collector", dependencies=[Depends(verify_token)])
def get_collected_data(
    start_time: int = Query(..., description="开始时间（Unix 秒，包含）"),
    stop_time: int = Query(..., description="结束时间（Unix 秒，不包含）"),
    period: int = Query(..., description="周期（秒）：10, 60, 300, 3600"),
    metrics: Optional[List[str]] = Query(None, description="指标名称，缺省为全部"),
    reader: RangeReader = Depends(get_reader),
) -> Dict[str, List[Any]]:
    """
    查询历史数据

    返回以指标名为键的平行数组，外加 timestamp 数组。
    """
    config = ReadConfig(
        metrics=metrics or ["all"],
        start=start_time,
        stop=stop_time,
        period=period,
    )

    try:
        result = reader.read(config)
    except QueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"Range query failed: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return result.to_dict()
