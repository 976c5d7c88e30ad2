"""
多级汇聚任务

每秒采样一次写入 10s 窗口；按墙钟整除判断 10s / 1min / 5min / 1h 边界，
到期的精度求均值入库，并把均值级联到下一级窗口。

已知限制：边界由墙钟时间戳决定而不是节拍计数，时钟跳变或丢节拍会改变哪些边界触发。
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from .database import DuplicateRowError, RollupStore, StorageError
from .models import Snapshot
from .reader import RangeReader
from .ring import EmptyRingError, ResolutionRing
from .tiers import TIERS, Tier, next_tier

logger = logging.getLogger(__name__)


class CascadingAggregator:
    """
    汇聚流水线

    持有四个精度的窗口和数据库写入端，只由一个任务驱动。
    """

    def __init__(
        self,
        source: Callable[[], Snapshot],
        store: RollupStore,
        clock: Callable[[], float] = time.time,
        tick_interval: float = 1.0,
    ):
        self._source = source
        self._store = store
        self._clock = clock
        self._tick_interval = tick_interval
        self._rings: Dict[Tier, ResolutionRing] = {
            tier: ResolutionRing(tier.capacity) for tier in TIERS
        }
        # 上一个处理过边界的墙钟秒
        self._last_now: Optional[int] = None

    def ring(self, tier: Tier) -> ResolutionRing:
        return self._rings[tier]

    def seed(self, reader: RangeReader, now: Optional[int] = None) -> Dict[str, int]:
        """
        从数据库回填 1min / 5min / 1h 窗口

        重启后上层窗口不至于从空开始。读取失败只记录警告。

        Returns:
            {精度名: 回填行数}
        """
        if now is None:
            now = int(self._clock())

        seeded = {}
        for tier in TIERS[1:]:
            try:
                rows = reader.recent_rows(tier, now)
            except StorageError as e:
                logger.warning(f"Cannot seed {tier.name} window from history: {e}")
                continue
            self._rings[tier].extend(rows)
            seeded[tier.name] = len(rows)

        logger.info("Seeded windows from history: " + ", ".join(
            f"{name}={count}" for name, count in seeded.items()
        ))
        return seeded

    def process(self, snapshot: Snapshot, now: int) -> List[Tuple[Tier, Snapshot]]:
        """
        处理一个节拍

        先对本节拍所有到期精度求均值（窗口状态不含本节拍的级联值），
        再依次入库并级联到下一级窗口。

        Args:
            snapshot: 本节拍的原始样本
            now: 本节拍的墙钟时间（Unix 秒）

        Returns:
            本节拍计算出的 [(精度, 均值)]，按从细到粗排列
        """
        self._rings[TIERS[0]].insert(snapshot)

        # 同一秒（或时钟回拨）不再判断边界，避免同一均值重复级联
        if self._last_now is not None and now <= self._last_now:
            logger.debug(f"Tick at {now} not after previous tick {self._last_now}, skipping boundaries")
            return []
        self._last_now = now

        averages: List[Tuple[Tier, Snapshot]] = []
        for tier in TIERS:
            if now % tier.period != 0:
                continue
            try:
                averages.append((tier, self._rings[tier].average(now)))
            except EmptyRingError:
                logger.debug(f"{tier.name} window empty at {now}, skipping")

        for tier, average in averages:
            self._persist(tier, average)
            upper = next_tier(tier)
            if upper is not None:
                self._rings[upper].insert(average)

        return averages

    def _persist(self, tier: Tier, row: Snapshot) -> bool:
        """入库一行，失败只记录日志"""
        try:
            self._store.insert_row(tier, row)
        except DuplicateRowError as e:
            logger.warning(f"Skipped duplicate {tier.name} row: {e}")
            return False
        except StorageError as e:
            logger.warning(f"Failed to persist {tier.name} row at {row.timestamp}: {e}")
            return False
        logger.debug(f"Saved {tier.name} row at {row.timestamp}")
        return True

    def tick(self) -> List[Tuple[Tier, Snapshot]]:
        """采样一次并处理（阻塞调用，运行在工作线程中）"""
        snapshot = self._source()
        now = int(self._clock())
        return self.process(snapshot, now)

    async def run(self, stop_event: Optional[asyncio.Event] = None):
        """
        运行汇聚循环

        按固定节拍对齐调度（不随处理耗时漂移），stop_event 置位后退出。
        """
        if stop_event is None:
            stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        logger.info(f"Starting rollup loop (tick={self._tick_interval}s)")

        deadline = loop.time()
        while not stop_event.is_set():
            deadline += self._tick_interval
            delay = deadline - loop.time()

            if delay < -self._tick_interval:
                logger.warning(f"Rollup loop fell behind by {-delay:.1f}s, resyncing")
                deadline = loop.time()
                delay = 0

            if delay > 0:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

            try:
                await asyncio.to_thread(self.tick)
            except Exception as e:
                logger.error(f"Rollup tick error: {e}", exc_info=True)

        logger.info("Rollup loop stopped")
