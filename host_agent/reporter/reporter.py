"""
实时上报

每个连接对应一个上报会话（独立的取消作用域）。会话循环按当前节奏等待，
然后采样并发送 {"event": "report", "data": {...}}。

节奏：
- interval：可配置，默认 60s
- realtime：固定 1s

切换模式会打断当前等待，按新节奏重新开始计时（本轮不发送）。
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from host_agent.models import Snapshot

logger = logging.getLogger(__name__)

Sender = Callable[[str], Awaitable[None]]


class ReportMode(str, Enum):
    REALTIME = "realtime"
    INTERVAL = "interval"


@dataclass
class ReportSession:
    """一次连接生命周期内的上报会话"""
    send: Sender
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional["asyncio.Task"] = None

    def cancel(self):
        self.cancelled.set()

    @property
    def active(self) -> bool:
        return not self.cancelled.is_set() and self.task is not None and not self.task.done()


def build_event(snapshot: Snapshot) -> str:
    """序列化上报事件"""
    return json.dumps({"event": "report", "data": snapshot.model_dump()})


class LiveReporter:
    """实时上报器"""

    def __init__(
        self,
        source: Callable[[], Snapshot],
        interval: float = 60.0,
        realtime_interval: float = 1.0,
        send_timeout: Optional[float] = 10.0,
    ):
        self._source = source
        self._interval = interval
        self._realtime_interval = realtime_interval
        self._send_timeout = send_timeout
        self._mode = ReportMode.INTERVAL
        self._mode_changed: Optional[asyncio.Event] = None
        self._session: Optional[ReportSession] = None

    @property
    def mode(self) -> ReportMode:
        return self._mode

    @property
    def session(self) -> Optional[ReportSession]:
        return self._session

    def cadence(self) -> float:
        """当前节奏（秒）"""
        if self._mode == ReportMode.REALTIME:
            return self._realtime_interval
        return self._interval

    def set_mode(self, mode: ReportMode):
        if mode == self._mode:
            return
        logger.info(f"Report mode: {self._mode.value} -> {mode.value}")
        self._mode = mode
        if self._mode_changed is not None:
            self._mode_changed.set()

    def set_interval(self, interval: float):
        self._interval = interval
        if self._mode == ReportMode.INTERVAL and self._mode_changed is not None:
            self._mode_changed.set()

    # ------------------------------------------------------------------
    # 连接事件
    # ------------------------------------------------------------------

    def on_connect(self, send: Sender) -> ReportSession:
        logger.info("Report server connected")
        return self.start(send)

    def on_text(self, text: str):
        """处理中心节点下发的控制指令"""
        logger.debug(f"Received text message: {text}")
        command = text.strip().lower()
        if command == ReportMode.REALTIME.value:
            self.set_mode(ReportMode.REALTIME)
        elif command == ReportMode.INTERVAL.value:
            self.set_mode(ReportMode.INTERVAL)
        else:
            logger.debug(f"Ignoring unknown command: {text!r}")

    def on_close(self):
        logger.info("Report server closed")
        self.cancel()

    # ------------------------------------------------------------------
    # 会话管理
    # ------------------------------------------------------------------

    def start(self, send: Sender) -> ReportSession:
        """为新连接启动上报会话（取消旧会话）"""
        self.cancel()
        if self._mode_changed is None:
            self._mode_changed = asyncio.Event()

        session = ReportSession(send=send)
        session.task = asyncio.create_task(self._report_loop(session))
        self._session = session
        return session

    def cancel(self):
        """取消当前会话，下次连接时重新创建"""
        session = self._session
        self._session = None
        if session is not None:
            session.cancel()

    async def _wait_cycle(self, session: ReportSession, cadence: float) -> bool:
        """
        等待一个周期

        Returns:
            True 表示等待到期应当发送；False 表示被取消或模式切换打断
        """
        cancel_waiter = asyncio.ensure_future(session.cancelled.wait())
        mode_waiter = asyncio.ensure_future(self._mode_changed.wait())
        try:
            done, _ = await asyncio.wait(
                {cancel_waiter, mode_waiter},
                timeout=cadence,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_waiter.cancel()
            mode_waiter.cancel()
        return not done

    async def _report_loop(self, session: ReportSession):
        while not session.cancelled.is_set():
            self._mode_changed.clear()
            cadence = self.cadence()

            if not await self._wait_cycle(session, cadence):
                if session.cancelled.is_set():
                    logger.debug(f"Report cycle ({cadence}s) cancelled")
                    break
                continue

            try:
                snapshot = await asyncio.to_thread(self._source)
            except Exception as e:
                logger.warning(f"Snapshot failed, skipping report: {e}")
                continue

            if session.cancelled.is_set():
                break

            message = build_event(snapshot)
            try:
                if self._send_timeout:
                    await asyncio.wait_for(session.send(message), timeout=self._send_timeout)
                else:
                    await session.send(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Report transmit failed, waiting for reconnect: {e}")
                session.cancel()
                if self._session is session:
                    self._session = None
                break
            logger.debug(f"Sent report at {snapshot.timestamp}")
