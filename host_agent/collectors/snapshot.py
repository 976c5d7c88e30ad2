"""
快照源

把各采集器的结果组装成一个 Snapshot。汇聚任务和上报任务共用同一个实例，
内部用锁串行化采样。
"""

import threading
import time
from typing import Callable, List, Optional

from host_agent.models import Snapshot
from .cpu import get_cpu_percent, get_load_avg
from .disk import get_disk_io, get_disk_used
from .memory import get_memory_usage
from .network import get_network_io


class SnapshotSource:
    """可调用的快照源：source() -> Snapshot"""

    def __init__(
        self,
        disks: Optional[List[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._disks = list(disks) if disks else ["/"]
        self._clock = clock
        self._lock = threading.Lock()

    def __call__(self) -> Snapshot:
        with self._lock:
            load_1, load_5, load_15 = get_load_avg()
            disk_read, disk_write = get_disk_io()
            network_rx, network_tx = get_network_io()
            return Snapshot(
                timestamp=int(self._clock()),
                load_1=load_1,
                load_5=load_5,
                load_15=load_15,
                cpu_usage=get_cpu_percent(),
                disk_used=get_disk_used(self._disks),
                disk_read=disk_read,
                disk_write=disk_write,
                network_rx=network_rx,
                network_tx=network_tx,
                **get_memory_usage(),
            )
