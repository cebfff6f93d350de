"""메시지 폴링 루프.

일정 간격으로 릴레이에서 자기 큐를 가져와 메시지를 순서대로 처리합니다.
중지는 플래그로만 이루어지며, 다음 반복 시작 시점에 반영됩니다.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..shared.dto import SignalingMessage
from ..webrtc.config import client_config
from .api_client import SignalingClient, SignalingError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[SignalingMessage], Awaitable[None]]


class PollLoop:
    """취소 가능한 반복 폴링 태스크.

    Attributes:
        client (SignalingClient): 릴레이 클라이언트
        handler (MessageHandler): 메시지 처리 코루틴
        interval (float): 반복 간 대기 시간 (초)
    """

    def __init__(
        self,
        client: SignalingClient,
        handler: MessageHandler,
        interval: float = client_config.POLL_INTERVAL,
    ):
        self.client = client
        self.handler = handler
        self.interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> asyncio.Task:
        """폴링을 시작합니다. 이미 실행 중이면 기존 태스크를 반환합니다."""
        self._running = True
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    def stop(self) -> None:
        """다음 반복 경계에서 루프를 멈춥니다."""
        self._running = False

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        logger.info(f"폴링 시작: peer={self.client.peer_id}, interval={self.interval}s")
        while self._running:
            try:
                messages = await self.client.poll()
            except SignalingError as e:
                logger.error(f"폴링 오류: {e}")
                messages = []
            except Exception as e:
                logger.error(f"폴링 처리 중 예외: {e}", exc_info=True)
                messages = []

            for message in messages:
                try:
                    await self.handler(message)
                except Exception as e:
                    logger.error(f"메시지 처리 실패 ({message.type} from {message.sender}): {e}", exc_info=True)

            await asyncio.sleep(self.interval)
        logger.info(f"폴링 종료: peer={self.client.peer_id}")
