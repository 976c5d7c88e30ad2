"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from typing import Callable, Optional

from fastapi import Header, HTTPException, status

from ..collectors import get_snapshot_source
from ..config import get_config
from ..database import RollupStore, get_store
from ..models import Snapshot
from ..reader import RangeReader


async def get_database() -> RollupStore:
    """获取数据库实例"""
    return get_store()


async def get_reader() -> RangeReader:
    """获取区间查询器"""
    return RangeReader(get_store())


async def get_source() -> Callable[[], Snapshot]:
    """获取快照源"""
    return get_snapshot_source()


async def verify_token(authorization: Optional[str] = Header(None)):
    """
    验证 Token

    Authorization 头格式为 "Bearer <token>"；未配置 api.token 时跳过验证。
    """
    expected_token = get_config().api.token
    if not expected_token:
        return

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format"
        )

    if parts[1] != expected_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
