"""
内存采集器
"""

from typing import Dict

import psutil


def get_memory_usage() -> Dict[str, int]:
    """
    采集物理内存与 swap 使用情况

    Returns:
        {"memory_used": ..., "memory_free": ..., "swap_used": ..., "swap_free": ...}（字节）
    """
    vm = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return {
        "memory_used": int(vm.used),
        "memory_free": int(vm.free),
        "swap_used": int(swap.used),
        "swap_free": int(swap.free),
    }
