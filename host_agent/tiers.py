"""
汇聚精度定义

四个固定精度，从细到粗。capacity 即级联比例：10×1s、6×10s、5×60s、12×300s。
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tier:
    """一个汇聚精度"""
    name: str
    period: int  # 该精度的时间间隔（秒）
    capacity: int  # 环形窗口容量
    table: str  # 对应数据表


TIER_10S = Tier(name="10s", period=10, capacity=10, table="DataPer10Second")
TIER_1MIN = Tier(name="1min", period=60, capacity=6, table="DataPer1Minute")
TIER_5MIN = Tier(name="5min", period=300, capacity=5, table="DataPer5Minute")
TIER_1HOUR = Tier(name="1h", period=3600, capacity=12, table="DataPer1Hour")

# 从细到粗，顺序即检查顺序
TIERS: Tuple[Tier, ...] = (TIER_10S, TIER_1MIN, TIER_5MIN, TIER_1HOUR)


def tier_for_period(period: int) -> Optional[Tier]:
    """按周期精确匹配精度，不匹配返回 None"""
    for tier in TIERS:
        if tier.period == period:
            return tier
    return None


def select_tier(period: int) -> Tier:
    """
    按查询周期选择精度

    不在四个标准周期内的值退化为最细精度，并记录警告。
    """
    tier = tier_for_period(period)
    if tier is None:
        logger.warning(f"Non-canonical period {period}s, falling back to {TIERS[0].name} tier")
        return TIERS[0]
    return tier


def next_tier(tier: Tier) -> Optional[Tier]:
    """下一级（更粗）精度，最粗一级返回 None"""
    index = TIERS.index(tier)
    return TIERS[index + 1] if index + 1 < len(TIERS) else None
