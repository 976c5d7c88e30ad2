"""
数据采集器模块

包含 load/CPU、内存、磁盘、网络采集器，以及组装快照的 SnapshotSource
"""

from typing import Optional

from .cpu import get_cpu_percent, get_load_avg
from .disk import get_disk_io, get_disk_used
from .memory import get_memory_usage
from .network import get_network_io
from .snapshot import SnapshotSource

__all__ = [
    "get_cpu_percent",
    "get_load_avg",
    "get_disk_io",
    "get_disk_used",
    "get_memory_usage",
    "get_network_io",
    "SnapshotSource",
    "get_snapshot_source",
]


_source: Optional[SnapshotSource] = None


def get_snapshot_source() -> SnapshotSource:
    """获取全局快照源（按配置中的挂载点创建）"""
    global _source
    if _source is None:
        from host_agent.config import get_config

        _source = SnapshotSource(disks=get_config().collector.disks)
    return _source
