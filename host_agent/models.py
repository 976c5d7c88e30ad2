"""
数据模型定义

- Snapshot：单次采样（或某一精度的均值），不可变
- API 响应模型
"""

from datetime import datetime
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# 浮点型指标（取算术平均）
FLOAT_FIELDS: Tuple[str, ...] = (
    "load_1",
    "load_5",
    "load_15",
    "cpu_usage",
)

# 整型计数器（取截断整数平均）
INT_FIELDS: Tuple[str, ...] = (
    "memory_used",
    "memory_free",
    "swap_used",
    "swap_free",
    "disk_used",
    "disk_read",
    "disk_write",
    "network_rx",
    "network_tx",
)

# 入库列顺序（timestamp 之后），对外部工具是稳定契约
METRIC_FIELDS: Tuple[str, ...] = FLOAT_FIELDS + INT_FIELDS


class Snapshot(BaseModel):
    """一次系统指标快照"""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(..., description="采样时间（Unix 秒）")
    load_1: float = 0.0
    load_5: float = 0.0
    load_15: float = 0.0
    cpu_usage: float = Field(default=0.0, description="CPU 使用率 (0-100)")
    memory_used: int = Field(default=0, ge=0)
    memory_free: int = Field(default=0, ge=0)
    swap_used: int = Field(default=0, ge=0)
    swap_free: int = Field(default=0, ge=0)
    disk_used: int = Field(default=0, ge=0)
    disk_read: int = Field(default=0, ge=0, description="磁盘累计读字节")
    disk_write: int = Field(default=0, ge=0, description="磁盘累计写字节")
    network_rx: int = Field(default=0, ge=0, description="网络累计接收字节")
    network_tx: int = Field(default=0, ge=0, description="网络累计发送字节")

    def as_row(self) -> Tuple:
        """按入库列顺序返回元组"""
        return (self.timestamp,) + tuple(getattr(self, name) for name in METRIC_FIELDS)


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(..., description="健康状态: ok|degraded")
    timestamp: datetime = Field(..., description="检查时间")
    checks: Dict[str, str] = Field(..., description="各组件检查结果")
    details: Dict[str, Optional[str]] = Field(..., description="详细信息")
