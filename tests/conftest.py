"""
测试公共 fixture
"""

import pytest

from host_agent.config import reset_config
from host_agent.database import RollupStore, reset_store
from host_agent.models import Snapshot
from host_agent.reader import RangeReader


def make_snapshot(timestamp: int, value: float = 0.0) -> Snapshot:
    """构造所有指标都取同一个值的快照（计数器取整）"""
    counter = int(value)
    return Snapshot(
        timestamp=timestamp,
        load_1=value,
        load_5=value,
        load_15=value,
        cpu_usage=value,
        memory_used=counter,
        memory_free=counter,
        swap_used=counter,
        swap_free=counter,
        disk_used=counter,
        disk_read=counter,
        disk_write=counter,
        network_rx=counter,
        network_tx=counter,
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """每个测试使用不存在的配置文件（即默认配置），并清空全局实例"""
    monkeypatch.setenv("HOST_AGENT_CONFIG", str(tmp_path / "missing-config.yaml"))
    reset_config()
    reset_store()
    yield
    reset_config()
    reset_store()


@pytest.fixture
def store(tmp_path) -> RollupStore:
    """创建临时测试数据库（已建好四张表）"""
    store = RollupStore(str(tmp_path / "test_rollup.db"))
    store.initialize()
    return store


@pytest.fixture
def reader(store) -> RangeReader:
    return RangeReader(store)
