"""
网络采集器
"""

from typing import Tuple

import psutil


def get_network_io() -> Tuple[int, int]:
    """
    采集所有网卡累计收发字节

    Returns:
        (bytes_recv, bytes_sent)
    """
    counters = psutil.net_io_counters()
    if counters is None:
        return 0, 0
    return int(counters.bytes_recv), int(counters.bytes_sent)
