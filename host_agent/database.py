"""
汇聚数据库

每个精度一张表，主键为 timestamp。行写入后只读，不做更新和删除。
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

from .config import get_config
from .models import FLOAT_FIELDS, METRIC_FIELDS, Snapshot
from .tiers import TIERS, Tier

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """数据库读写失败"""


class DuplicateRowError(StorageError):
    """同一精度下 timestamp 已存在"""


def _column_type(name: str) -> str:
    return "REAL" if name in FLOAT_FIELDS else "INTEGER"


_COLUMNS_DDL = ",\n".join(
    ["    timestamp   INTEGER PRIMARY KEY"]
    + [f"    {name:<11} {_column_type(name)}" for name in METRIC_FIELDS]
)
_COLUMN_LIST = ", ".join(("timestamp",) + METRIC_FIELDS)
_PLACEHOLDERS = ", ".join("?" * (len(METRIC_FIELDS) + 1))


class RollupStore:
    """汇聚数据库操作类"""

    def __init__(self, db_path: Optional[str] = None, timeout: int = 30):
        """
        Args:
            db_path: 数据库文件路径，不指定则从配置加载
            timeout: 等待写锁的超时（秒）
        """
        if db_path is None:
            config = get_config()
            db_path = config.database.path
            timeout = config.database.timeout

        self.db_path = Path(db_path)
        self.timeout = timeout

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_conn(self):
        """
        获取数据库连接（上下文管理器）

        每次调用独立连接，读写可以并发进行（WAL 模式下）。
        """
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self):
        """切换到 WAL 模式并创建所有精度的表"""
        try:
            with self.get_conn() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise StorageError(f"cannot open database {self.db_path}: {e}") from e

        for tier in TIERS:
            self.ensure_table(tier)
            logger.info(f"Table {tier.table} ready")

    def ensure_table(self, tier: Tier):
        """创建精度表（已存在则跳过）"""
        sql = f"CREATE TABLE IF NOT EXISTS {tier.table} (\n{_COLUMNS_DDL}\n)"
        try:
            with self.get_conn() as conn:
                conn.execute(sql)
        except sqlite3.Error as e:
            raise StorageError(f"cannot create table {tier.table}: {e}") from e

    def insert_row(self, tier: Tier, row: Snapshot):
        """
        写入一行

        表不存在时自动建表后重试一次。

        Raises:
            DuplicateRowError: timestamp 已存在
            StorageError: 其他数据库错误
        """
        sql = f"INSERT INTO {tier.table} ({_COLUMN_LIST}) VALUES ({_PLACEHOLDERS})"
        try:
            self._execute_insert(sql, row)
        except sqlite3.IntegrityError as e:
            raise DuplicateRowError(
                f"{tier.table} already has a row at timestamp {row.timestamp}"
            ) from e
        except sqlite3.OperationalError as e:
            if "no such table" not in str(e):
                raise StorageError(f"insert into {tier.table} failed: {e}") from e
            logger.warning(f"Table {tier.table} missing, creating it and retrying")
            self.ensure_table(tier)
            try:
                self._execute_insert(sql, row)
            except sqlite3.IntegrityError as e2:
                raise DuplicateRowError(
                    f"{tier.table} already has a row at timestamp {row.timestamp}"
                ) from e2
            except sqlite3.Error as e2:
                raise StorageError(f"insert into {tier.table} failed: {e2}") from e2
        except (sqlite3.Error, OverflowError) as e:
            raise StorageError(f"insert into {tier.table} failed: {e}") from e

    def _execute_insert(self, sql: str, row: Snapshot):
        with self.get_conn() as conn:
            conn.execute(sql, row.as_row())

    def fetch_range(self, tier: Tier, start: int, stop: int) -> List[Snapshot]:
        """
        查询 [start, stop) 内的行

        Returns:
            按 timestamp 升序排列的快照列表
        """
        sql = f"""
            SELECT {_COLUMN_LIST}
            FROM {tier.table}
            WHERE timestamp >= ? AND timestamp < ?
            ORDER BY timestamp ASC
        """
        try:
            with self.get_conn() as conn:
                cursor = conn.execute(sql, (start, stop))
                return [Snapshot(**dict(row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"query on {tier.table} failed: {e}") from e


# 全局数据库实例（延迟加载）
_store: Optional[RollupStore] = None


def get_store() -> RollupStore:
    """获取全局数据库实例"""
    global _store
    if _store is None:
        _store = RollupStore()
    return _store


def reset_store():
    """重置数据库实例（主要用于测试）"""
    global _store
    _store = None
