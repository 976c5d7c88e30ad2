"""
磁盘采集器

采集指定挂载点的已用空间与全局磁盘 IO 计数
"""

import logging
from typing import List, Tuple

import psutil

logger = logging.getLogger(__name__)


def get_disk_used(mount_points: List[str]) -> int:
    """
    采集磁盘已用空间

    Args:
        mount_points: 挂载点列表（如 ["/", "/data"]）

    Returns:
        所有挂载点已用字节数之和
    """
    total_used = 0
    for mount in mount_points:
        try:
            total_used += int(psutil.disk_usage(mount).used)
        except OSError as e:
            # 单个挂载点失败，跳过
            logger.debug(f"disk usage for {mount} unavailable: {e}")
    return total_used


def get_disk_io() -> Tuple[int, int]:
    """
    采集磁盘累计读写字节

    Returns:
        (read_bytes, write_bytes)，无磁盘计数时返回 (0, 0)
    """
    counters = psutil.disk_io_counters()
    if counters is None:
        return 0, 0
    return int(counters.read_bytes), int(counters.write_bytes)
