"""
上报连接管理

维护一条到中心节点的 WebSocket 长连接：连接成功后启动上报会话，
文本消息作为控制指令转交 LiveReporter；断线后指数退避重连。
"""

import asyncio
import logging
from typing import Dict, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from .reporter import LiveReporter

logger = logging.getLogger(__name__)


def backoff_delay(retry_count: int, max_backoff: int = 60) -> int:
    """重连等待时间：1, 2, 4, ... 最多 max_backoff 秒"""
    return min(max_backoff, max(1, 2 ** min(6, retry_count)))


class ReportClient:
    def __init__(
        self,
        url: str,
        reporter: LiveReporter,
        token: Optional[str] = None,
        max_backoff: int = 60,
        open_timeout: float = 10.0,
    ):
        self._url = url
        self._reporter = reporter
        self._token = token
        self._max_backoff = max_backoff
        self._open_timeout = open_timeout
        self.retry_count = 0

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _read_commands(self, ws):
        async for message in ws:
            if isinstance(message, str):
                self._reporter.on_text(message)
            else:
                logger.debug(f"Ignoring binary message ({len(message)} bytes)")

    async def _serve_connection(self, ws):
        session = self._reporter.on_connect(ws.send)
        reader = asyncio.create_task(self._read_commands(ws))
        try:
            await asyncio.wait({reader, session.task}, return_when=asyncio.FIRST_COMPLETED)
            if reader.done():
                # 远端关闭；取出异常避免 "never retrieved" 警告
                if not reader.cancelled() and reader.exception() is not None:
                    logger.info(f"Report connection closed: {reader.exception()}")
            else:
                # 会话因发送失败结束，主动断开以触发重连
                await ws.close()
        finally:
            reader.cancel()
            self._reporter.on_close()

    def _next_backoff(self) -> int:
        """本次重连前的等待时间，并累加重试次数"""
        backoff = backoff_delay(self.retry_count, self._max_backoff)
        self.retry_count += 1
        return backoff

    async def run(self):
        """连接循环，取消任务即退出"""
        logger.info(f"Starting report client (url={self._url})")

        while True:
            try:
                async with connect(
                    self._url,
                    additional_headers=self._headers(),
                    open_timeout=self._open_timeout,
                ) as ws:
                    self.retry_count = 0
                    await self._serve_connection(ws)
                backoff = self._next_backoff()
                logger.warning(f"Report connection lost, reconnecting in {backoff}s")
            except asyncio.CancelledError:
                logger.info("Report client cancelled")
                raise
            except InvalidURI as e:
                logger.error(f"Invalid report url, report client disabled: {e}")
                return
            except (OSError, InvalidHandshake, ConnectionClosed, asyncio.TimeoutError) as e:
                backoff = self._next_backoff()
                logger.warning(f"Report connect failed: {e}, retry in {backoff}s")

            await asyncio.sleep(backoff)
