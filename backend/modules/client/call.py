"""클라이언트 통화 세션.

릴레이 클라이언트, 로컬 미디어, 피어 상태 머신, 폴링 루프를 묶어
룸 입장/퇴장과 화면 공유 흐름을 제공합니다.

WebRTC Flow:
    1. 로컬 카메라+마이크 소스 준비
    2. 릴레이 join → 기존 참가자 목록 수신
    3. 폴링 시작
    4. 기존 참가자 각각에게 offer 전송
    5. 이후 offer/answer/candidate/입퇴장 알림은 폴링 루프가 처리
"""

import logging
from typing import Any, Callable, Optional, Sequence

from aiortc import RTCPeerConnection

from ..webrtc.config import client_config, media_config
from ..webrtc.media import MediaSourceManager
from ..webrtc.peer_manager import PeerConnectionManager
from ..webrtc.views import RemoteViewRegistry
from .api_client import SignalingClient, SignalingError
from .poll_loop import PollLoop

logger = logging.getLogger(__name__)


class CallSession:
    """룸 하나에 대한 클라이언트 세션.

    Attributes:
        client (SignalingClient): 릴레이 클라이언트
        media (MediaSourceManager): 로컬 미디어 소스
        peers (PeerConnectionManager): 원격 피어별 상태 머신
        poll_loop (PollLoop): 메시지 폴링 루프
        room_id (Optional[str]): 현재 룸 (입장 전/퇴장 후 None)
    """

    def __init__(
        self,
        client: SignalingClient,
        media: Optional[MediaSourceManager] = None,
        resolution: int = media_config.DEFAULT_RESOLUTION,
        frame_rate: int = media_config.DEFAULT_FRAME_RATE,
        poll_interval: float = client_config.POLL_INTERVAL,
        ice_servers: Sequence[dict] = (),
        pc_factory: Optional[Callable[[], RTCPeerConnection]] = None,
        views: Optional[RemoteViewRegistry] = None,
    ):
        self.client = client
        self.resolution = resolution
        self.frame_rate = frame_rate
        self.media = media or MediaSourceManager()
        self.peers = PeerConnectionManager(
            self._send,
            self.media,
            pc_factory=pc_factory,
            views=views if views is not None else RemoteViewRegistry(),
            ice_servers=ice_servers,
        )
        self.media.bind_connections(self.peers.connections)
        self.poll_loop = PollLoop(client, self.peers.handle_message, interval=poll_interval)
        self.room_id: Optional[str] = None

    async def _send(self, to: str, type: str, data: Any) -> None:
        try:
            await self.client.send(to, type, data)
        except SignalingError as e:
            logger.error(f"메시지 전송 실패 ({type} -> {to}): {e}")

    async def join(self, room_id: str) -> None:
        """룸에 입장하고 기존 참가자들에게 offer를 보냅니다.

        Raises:
            ValueError: room_id가 비어있을 때
            DeviceAccessError: 로컬 카메라/마이크를 열 수 없을 때
            SignalingError: 릴레이 join 실패
        """
        room_id = (room_id or "").strip()
        if not room_id:
            raise ValueError("room_id is required")
        if self.room_id is not None:
            logger.warning(f"이미 룸 '{self.room_id}'에 입장한 상태")
            return

        await self.media.acquire_local_source(self.resolution, self.frame_rate)
        try:
            existing_peers = await self.client.join(room_id)
        except SignalingError:
            await self.media.release()
            raise

        self.room_id = room_id
        self.poll_loop.start()

        for other_peer_id in existing_peers:
            await self.peers.call(other_peer_id)
        logger.info(f"룸 '{room_id}' 입장 완료 (peer={self.client.peer_id})")

    async def leave(self) -> None:
        """룸에서 퇴장하고 모든 연결과 캡처를 정리합니다."""
        if self.room_id is None:
            return

        room_id = self.room_id
        # 진행 중인 poll이 퇴장 뒤에 큐를 다시 만들지 않도록 폴링을 먼저 멈춤
        self.poll_loop.stop()
        await self.poll_loop.wait()
        try:
            await self.client.leave(room_id)
        except SignalingError as e:
            logger.error(f"퇴장 요청 실패: {e}")

        await self.peers.close_all()
        await self.media.release()
        self.room_id = None
        logger.info(f"룸 '{room_id}' 퇴장 완료")

    async def toggle_screen_share(self) -> bool:
        if self.room_id is None:
            logger.warning("룸 입장 전에는 화면 공유를 전환할 수 없음")
            return self.media.is_screen_sharing
        return await self.media.toggle_screen_share()
