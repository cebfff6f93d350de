"""시그널링 릴레이 모듈.

RoomRegistry와 MessageQueueStore를 조합하여 join/send/leave/poll 프로토콜을
구현합니다. 요청 간 상태는 공유 registry/store 외에는 없습니다.
HTTP 라우팅은 routes/signaling.py가 담당합니다.
"""

import logging
from typing import Any, List, Optional

from ..shared.dto import SignalingMessage
from .errors import InvalidRequest
from .message_store import MessageQueueStore
from .room_registry import RoomRegistry

logger = logging.getLogger(__name__)


class SignalingRelay:
    """요청 처리 계층.

    Attributes:
        store (MessageQueueStore): 피어별 메시지 큐
        registry (RoomRegistry): 룸 멤버십
    """

    def __init__(self, store: Optional[MessageQueueStore] = None, registry: Optional[RoomRegistry] = None):
        self.store = store or MessageQueueStore()
        self.registry = registry or RoomRegistry(self.store)

    async def join(self, room_id: Optional[str], peer_id: Optional[str]) -> List[str]:
        """룸에 입장하고 기존 참가자 ID 목록을 반환합니다."""
        return await self.registry.join(room_id, peer_id)

    async def send(self, to: Optional[str], type: Optional[str], data: Any, sender: Optional[str]) -> None:
        """다른 피어에게 메시지를 전달합니다.

        Raises:
            InvalidRequest: to/type이 비어있거나 from이 없을 때
        """
        if not to or not type or sender is None:
            raise InvalidRequest("Missing fields")
        await self.store.send(to, type, data, sender=sender)

    async def leave(self, room_id: Optional[str], peer_id: Optional[str]) -> None:
        await self.registry.leave(room_id, peer_id)

    async def poll(self, peer_id: Optional[str]) -> List[SignalingMessage]:
        """피어 큐를 drain하여 반환합니다.

        Raises:
            InvalidRequest: peer_id가 비어있을 때
        """
        if not peer_id:
            raise InvalidRequest("Missing peerId")
        return await self.store.poll(peer_id)

    def stats(self) -> dict:
        """헬스체크용 통계."""
        return {
            "rooms": len(self.registry.rooms),
            "peers": self.registry.peer_count(),
            "queues": self.store.queue_count(),
            "pending_messages": self.store.pending_count(),
        }
