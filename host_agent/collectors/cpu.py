"""
CPU 采集器

load average 与 CPU 使用率
"""

import logging
from typing import Tuple

import psutil

logger = logging.getLogger(__name__)


def get_load_avg() -> Tuple[float, float, float]:
    """
    采集 1/5/15 分钟平均负载

    Returns:
        (load_1, load_5, load_15)，平台不支持时返回全 0
    """
    try:
        load_1, load_5, load_15 = psutil.getloadavg()
        return float(load_1), float(load_5), float(load_15)
    except (AttributeError, OSError) as e:
        logger.debug(f"load average unavailable: {e}")
        return 0.0, 0.0, 0.0


def get_cpu_percent() -> float:
    """
    采集 CPU 使用率

    psutil 以上一次调用为基准计算 delta，首次调用返回 0.0。

    Returns:
        0~100 的浮点数
    """
    return round(float(psutil.cpu_percent(interval=None)), 2)
