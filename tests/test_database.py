"""
测试汇聚数据库

覆盖：
- 建表幂等、表名与列顺序
- 主键冲突抛 DuplicateRowError
- 区间查询半开区间、升序
- 表缺失时写入自动建表
"""

import sqlite3

import pytest

from host_agent.database import DuplicateRowError, RollupStore, StorageError
from host_agent.tiers import TIER_1HOUR, TIER_1MIN, TIER_10S, TIERS

from .conftest import make_snapshot


EXPECTED_COLUMNS = [
    ("timestamp", "INTEGER"),
    ("load_1", "REAL"),
    ("load_5", "REAL"),
    ("load_15", "REAL"),
    ("cpu_usage", "REAL"),
    ("memory_used", "INTEGER"),
    ("memory_free", "INTEGER"),
    ("swap_used", "INTEGER"),
    ("swap_free", "INTEGER"),
    ("disk_used", "INTEGER"),
    ("disk_read", "INTEGER"),
    ("disk_write", "INTEGER"),
    ("network_rx", "INTEGER"),
    ("network_tx", "INTEGER"),
]


class TestSchema:
    def test_tables_created(self, store):
        with store.get_conn() as conn:
            names = {
                row["name"]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        assert names >= {"DataPer10Second", "DataPer1Minute", "DataPer5Minute", "DataPer1Hour"}

    @pytest.mark.parametrize("tier", TIERS, ids=lambda t: t.name)
    def test_column_order_and_types(self, store, tier):
        with store.get_conn() as conn:
            info = conn.execute(f"PRAGMA table_info({tier.table})").fetchall()
        assert [(row["name"], row["type"]) for row in info] == EXPECTED_COLUMNS
        assert [row["name"] for row in info if row["pk"]] == ["timestamp"]

    def test_ensure_table_is_idempotent(self, store):
        store.insert_row(TIER_10S, make_snapshot(10, 1.0))
        store.ensure_table(TIER_10S)
        store.initialize()
        assert len(store.fetch_range(TIER_10S, 0, 100)) == 1

    def test_wal_mode(self, store):
        with store.get_conn() as conn:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"


class TestInsert:
    def test_round_trip(self, store):
        row = make_snapshot(60, 12.5).model_copy(update={"memory_free": 123456789, "network_tx": 2 ** 40})
        store.insert_row(TIER_1MIN, row)

        rows = store.fetch_range(TIER_1MIN, 60, 61)
        assert rows == [row]

    def test_duplicate_timestamp(self, store):
        store.insert_row(TIER_10S, make_snapshot(10, 1.0))
        with pytest.raises(DuplicateRowError):
            store.insert_row(TIER_10S, make_snapshot(10, 2.0))

        # 原值不变
        assert store.fetch_range(TIER_10S, 10, 11)[0].cpu_usage == 1.0

    def test_duplicate_is_a_storage_error(self):
        assert issubclass(DuplicateRowError, StorageError)

    def test_same_timestamp_in_different_tiers(self, store):
        store.insert_row(TIER_10S, make_snapshot(3600, 1.0))
        store.insert_row(TIER_1HOUR, make_snapshot(3600, 2.0))
        assert store.fetch_range(TIER_1HOUR, 3600, 3601)[0].cpu_usage == 2.0

    def test_missing_table_is_created_on_insert(self, tmp_path):
        store = RollupStore(str(tmp_path / "fresh.db"))
        store.insert_row(TIER_10S, make_snapshot(20, 4.0))
        assert store.fetch_range(TIER_10S, 0, 100)[0].timestamp == 20

    def test_unreadable_database(self, tmp_path):
        path = tmp_path / "not-a-db.db"
        path.write_bytes(b"this is not an sqlite file" * 100)
        store = RollupStore(str(path))
        with pytest.raises(StorageError):
            store.insert_row(TIER_10S, make_snapshot(10))


class TestFetchRange:
    def test_ascending_regardless_of_insert_order(self, store):
        for ts in (50, 10, 40, 20, 30):
            store.insert_row(TIER_10S, make_snapshot(ts, float(ts)))

        rows = store.fetch_range(TIER_10S, 0, 100)
        assert [r.timestamp for r in rows] == [10, 20, 30, 40, 50]

    def test_half_open_interval(self, store):
        for ts in (10, 20, 30):
            store.insert_row(TIER_10S, make_snapshot(ts))

        assert [r.timestamp for r in store.fetch_range(TIER_10S, 10, 30)] == [10, 20]

    def test_empty_range(self, store):
        assert store.fetch_range(TIER_10S, 0, 0) == []

    def test_missing_table_surfaces_storage_error(self, tmp_path):
        store = RollupStore(str(tmp_path / "empty.db"))
        with pytest.raises(StorageError):
            store.fetch_range(TIER_10S, 0, 10)

    def test_types_preserved(self, store):
        store.insert_row(TIER_10S, make_snapshot(10, 7.0))
        row = store.fetch_range(TIER_10S, 0, 100)[0]
        assert isinstance(row.cpu_usage, float)
        assert isinstance(row.memory_used, int)
        with sqlite3.connect(str(store.db_path)) as conn:
            kind = conn.execute("SELECT typeof(load_1), typeof(disk_used) FROM DataPer10Second").fetchone()
        assert kind == ("real", "integer")
