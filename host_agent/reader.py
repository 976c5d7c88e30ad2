"""
区间查询

按周期选择精度表，查询 [start, stop) 内的行，并把缺失的网格点补成默认值，
保证返回的各列与时间戳列等长、按下标对齐。
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field

from .database import RollupStore
from .models import FLOAT_FIELDS, METRIC_FIELDS, Snapshot
from .tiers import TIERS, Tier, select_tier

logger = logging.getLogger(__name__)

ALL_METRICS = ("all", "*")


class QueryError(ValueError):
    """查询参数不合法"""


class AlignmentError(QueryError):
    """返回的时间戳不是网格的有序子序列，无法补齐"""


class ReadConfig(BaseModel):
    """查询参数"""
    metrics: List[str] = Field(default_factory=lambda: ["all"], description="指标名称，all 表示全部")
    start: int = Field(..., description="开始时间（Unix 秒，包含）")
    stop: int = Field(..., description="结束时间（Unix 秒，不包含）")
    period: int = Field(..., description="周期（秒）：10, 60, 300, 3600")

    def selected_fields(self) -> Tuple[str, ...]:
        """解析指标选择器"""
        if not self.metrics or any(name in ALL_METRICS for name in self.metrics):
            return METRIC_FIELDS
        unknown = [name for name in self.metrics if name not in METRIC_FIELDS]
        if unknown:
            raise QueryError(f"Unknown metrics: {unknown}. Must be among: {list(METRIC_FIELDS)}")
        # 保持表列顺序
        return tuple(name for name in METRIC_FIELDS if name in self.metrics)


@dataclass
class ReadResult:
    """查询结果：时间戳列 + 每个指标一列，全部等长"""
    timestamps: List[int] = field(default_factory=list)
    columns: Dict[str, List[Any]] = field(default_factory=dict)
    # 补齐的下标（升序）
    missing: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.timestamps)

    def to_dict(self) -> Dict[str, List[Any]]:
        """序列化为以指标名为键的平行数组"""
        data: Dict[str, List[Any]] = {"timestamp": list(self.timestamps)}
        for name, values in self.columns.items():
            data[name] = list(values)
        return data


def expected_grid(start: int, stop: int, period: int) -> List[int]:
    """
    计算完整网格

    末端对齐到 stop 向下取整的周期边界，共 (stop - start) // period 个点，升序。
    """
    aligned_stop = stop - (stop % period)
    expected_count = (stop - start) // period
    return [aligned_stop - period * (expected_count - 1 - i) for i in range(expected_count)]


def _ensure_ascending(values: List[int], label: str):
    for prev, cur in zip(values, values[1:]):
        if cur <= prev:
            raise AlignmentError(f"{label} not strictly ascending: {prev} then {cur}")


def find_missing(grid: List[int], timestamps: List[int]) -> List[int]:
    """
    双指针线性合并，找出网格中缺失的下标

    要求两个序列都严格升序，且 timestamps 是 grid 的子序列；否则抛 AlignmentError。

    Returns:
        缺失位置在 grid 中的下标（升序）
    """
    _ensure_ascending(grid, "grid")
    _ensure_ascending(timestamps, "returned timestamps")

    missing: List[int] = []
    j = 0
    for i, value in enumerate(grid):
        if j < len(timestamps) and timestamps[j] == value:
            j += 1
            continue
        if j < len(timestamps) and timestamps[j] < value:
            raise AlignmentError(f"timestamp {timestamps[j]} is not on the grid")
        missing.append(i)

    if j < len(timestamps):
        raise AlignmentError(f"timestamps {timestamps[j:]} fall outside the grid")
    return missing


def fill_missing(values: List[Any], missing: List[int], default: Any):
    """按升序下标逐个插入默认值（原地修改）"""
    for index in missing:
        values.insert(index, default)


class RangeReader:
    """区间查询器（只读）"""

    def __init__(self, store: RollupStore):
        self._store = store

    def _validate(self, config: ReadConfig) -> Tier:
        if config.period <= 0:
            raise QueryError(f"period must be positive, got {config.period}")
        if config.stop < config.start:
            raise QueryError(f"stop ({config.stop}) is before start ({config.start})")
        return select_tier(config.period)

    def read_rows(self, config: ReadConfig) -> List[Snapshot]:
        """只查询，不补齐"""
        tier = self._validate(config)
        return self._store.fetch_range(tier, config.start, config.stop)

    def read(self, config: ReadConfig) -> ReadResult:
        """
        查询并补齐缺失的时间点

        行数少于期望点数时，缺失的网格点用 0 / 0.0 填充，返回长度等于期望点数；
        否则原样返回查询到的行。

        Raises:
            QueryError: 参数不合法
            AlignmentError: 行不在网格上，无法补齐
            StorageError: 数据库错误
        """
        tier = self._validate(config)
        fields = config.selected_fields()
        # 非标准周期已退化为最细精度，网格也按该精度计算
        period = tier.period

        rows = self._store.fetch_range(tier, config.start, config.stop)
        result = ReadResult(
            timestamps=[row.timestamp for row in rows],
            columns={name: [getattr(row, name) for row in rows] for name in fields},
        )

        grid = expected_grid(config.start, config.stop, period)
        if len(rows) < len(grid):
            missing = find_missing(grid, result.timestamps)
            for index in missing:
                result.timestamps.insert(index, grid[index])
            for name, values in result.columns.items():
                fill_missing(values, missing, 0.0 if name in FLOAT_FIELDS else 0)
            result.missing = missing
            logger.debug(
                f"Filled {len(missing)} of {len(grid)} points in {tier.table} "
                f"[{config.start}, {config.stop})"
            )

        return result

    def recent_rows(self, tier: Tier, now: int) -> List[Snapshot]:
        """
        读取喂给 tier 窗口的上一级数据

        即上一级精度表中 (now - tier.period, now] 内的行，最多 capacity 行，升序。
        最细精度的输入是原始样本，不入库，返回空列表。
        """
        index = TIERS.index(tier)
        if index == 0:
            return []
        feeder = TIERS[index - 1]
        config = ReadConfig(start=now - tier.period + 1, stop=now + 1, period=feeder.period)
        rows = self.read_rows(config)
        return rows[-tier.capacity:]
