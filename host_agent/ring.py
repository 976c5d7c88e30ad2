"""
环形窗口

固定容量的滑动窗口，满了之后先淘汰最旧的元素，保持时间顺序。
"""

import math
from collections import deque
from typing import Deque, Iterable

from .models import FLOAT_FIELDS, INT_FIELDS, Snapshot


class EmptyRingError(ValueError):
    """对空窗口求平均"""


class ResolutionRing:
    """一个精度的滑动窗口"""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"ring capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._samples: Deque[Snapshot] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def insert(self, sample: Snapshot):
        """追加样本，满了则淘汰最旧的一个"""
        self._samples.append(sample)

    def extend(self, samples: Iterable[Snapshot]):
        for sample in samples:
            self.insert(sample)

    def average(self, timestamp: int) -> Snapshot:
        """
        计算窗口均值

        浮点指标取算术平均，计数器取截断整数平均；返回快照的时间戳为传入值。

        Raises:
            EmptyRingError: 窗口为空
        """
        count = len(self._samples)
        if count == 0:
            raise EmptyRingError(f"cannot average an empty ring (capacity={self._capacity})")

        values = {"timestamp": timestamp}
        for name in FLOAT_FIELDS:
            values[name] = math.fsum(getattr(s, name) for s in self._samples) / count
        for name in INT_FIELDS:
            values[name] = sum(getattr(s, name) for s in self._samples) // count
        return Snapshot(**values)
