"""원격 피어 렌더링 자리 관리.

원격 피어마다 수신 트랙을 소비하는 sink(MediaBlackhole) 하나를 둡니다.
실제 화면 렌더링은 이 모듈의 범위 밖이며, sink는 프레임을 소비만 합니다.
"""

import logging
from typing import Dict

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaBlackhole

logger = logging.getLogger(__name__)


class RemoteViewRegistry:
    """원격 피어 ID → 수신 트랙 sink."""

    def __init__(self):
        self.views: Dict[str, MediaBlackhole] = {}

    async def attach(self, peer_id: str, track: MediaStreamTrack) -> None:
        """원격 트랙을 피어의 sink에 연결합니다. 첫 트랙이면 sink를 생성합니다."""
        sink = self.views.get(peer_id)
        if sink is None:
            sink = MediaBlackhole()
            self.views[peer_id] = sink
            logger.info(f"[View] 피어 {peer_id} 렌더링 자리 생성")
        sink.addTrack(track)
        await sink.start()
        logger.info(f"[View] 피어 {peer_id} {track.kind} 트랙 연결")

    async def release(self, peer_id: str) -> None:
        sink = self.views.pop(peer_id, None)
        if sink is not None:
            await sink.stop()
            logger.info(f"[View] 피어 {peer_id} 렌더링 자리 제거")

    def __contains__(self, peer_id: str) -> bool:
        return peer_id in self.views
