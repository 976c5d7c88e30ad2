"""
Host Monitor Agent 主程序入口

启动并发任务：
1. 1s 汇聚循环
2. 实时上报连接（可选）
3. HTTP 查询服务

使用方式:
    python -m host_agent
    或
    host-agent
"""

import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn

from . import __version__
from .aggregator import CascadingAggregator
from .collectors import get_snapshot_source
from .config import AppConfig, get_config
from .database import StorageError, get_store
from .reader import RangeReader
from .reporter import LiveReporter, ReportClient

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig):
    """配置日志"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def acquire_single_instance_lock(lock_path: Path):
    """
    防止同一个数据库被多个 Agent 实例写入（重复采样 / 主键冲突）。

    通过文件锁实现：同一路径下只能有一个进程持锁。
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(lock_path, "a+b")

    try:
        if os.name == "nt":
            import msvcrt  # type: ignore

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl  # type: ignore

            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as e:
        handle.close()
        raise RuntimeError(f"Another Host Agent instance is already running (lock: {lock_path})") from e

    handle.seek(0)
    handle.truncate()
    handle.write(str(os.getpid()).encode("utf-8"))
    handle.flush()
    return handle


async def run_api_server(config: AppConfig):
    """运行 API 服务器"""
    from .api.app import create_app

    server_config = uvicorn.Config(
        app=create_app(),
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main(config: AppConfig):
    """主函数：启动所有任务，API 服务退出后依次停止后台任务"""
    store = get_store()
    try:
        store.initialize()
    except StorageError as e:
        logger.error(str(e))
        return
    logger.info(f"Database initialized: {store.db_path}")

    source = get_snapshot_source()
    stop_event = asyncio.Event()
    rollup_task = None
    report_task = None

    if config.rollup.enabled:
        aggregator = CascadingAggregator(
            source,
            store,
            tick_interval=config.rollup.tick_interval,
        )
        if config.rollup.seed_from_history:
            aggregator.seed(RangeReader(store))
        rollup_task = asyncio.create_task(aggregator.run(stop_event))

    if config.report.enabled:
        if not config.report.url:
            logger.warning("Report enabled but report.url is empty, skipping reporter")
        else:
            reporter = LiveReporter(
                source,
                interval=config.report.interval,
                realtime_interval=config.report.realtime_interval,
                send_timeout=config.report.send_timeout,
            )
            client = ReportClient(
                config.report.url,
                reporter,
                token=config.report.token,
                max_backoff=config.report.max_backoff,
            )
            report_task = asyncio.create_task(client.run())

    try:
        await run_api_server(config)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    finally:
        # 汇聚循环自行在节拍边界退出，上报连接直接取消
        stop_event.set()
        if report_task is not None:
            report_task.cancel()
        pending = [task for task in (rollup_task, report_task) if task is not None]
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Background tasks stopped")


def cli():
    """命令行入口"""
    try:
        config = get_config()
    except Exception as e:
        print(f"Error: failed to load config: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger.info("=" * 60)
    logger.info(f"Host Monitor Agent v{__version__}")
    logger.info("=" * 60)
    logger.info(f"API listening on: {config.api.listen}")
    logger.info(f"Database: {config.database.path}")

    # 单实例锁：避免重复启动
    try:
        db_path = Path(config.database.path)
        lock_handle = acquire_single_instance_lock(db_path.parent / "host-agent.lock")
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
    finally:
        lock_handle.close()


if __name__ == "__main__":
    cli()
