"""피어별 시그널링 메시지 큐 모듈.

각 피어 ID마다 하나의 FIFO 큐를 두고, 다른 피어가 보낸 메시지와 서버가
생성한 입/퇴장 알림을 보관합니다. 큐는 처음 참조될 때(join, send, poll)
생성되며 크기 제한이 없습니다.

Delivery semantics:
    - poll()은 큐를 읽는 동시에 비웁니다 (destructive drain).
    - ACK 프로토콜이 없으므로 drain 후 응답 전송이 실패하면 메시지는 유실됩니다.
      (best-effort 전달)
    - leave 없이 사라진 피어의 큐는 정리되지 않고 남습니다.

Thread Safety:
    - 모든 read-modify-write는 단일 asyncio.Lock으로 직렬화됩니다.
    - drain은 락 안에서 리스트를 통째로 교체하므로, 동시에 들어온 send는
      교체 전 큐(이번 poll 결과) 또는 교체 후 큐(다음 poll 결과) 중 정확히
      한 곳에만 들어갑니다.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..shared.dto import SignalingMessage

logger = logging.getLogger(__name__)


class MessageQueueStore:
    """피어 ID → 대기 중인 SignalingMessage 리스트.

    Attributes:
        queues (Dict[str, List[SignalingMessage]]): 피어별 메시지 큐
    """

    def __init__(self):
        # peer_id -> [SignalingMessage, ...]
        self.queues: Dict[str, List[SignalingMessage]] = {}
        self._lock = asyncio.Lock()

    async def ensure_queue(self, peer_id: str) -> None:
        """피어 큐가 없으면 빈 큐를 생성합니다."""
        async with self._lock:
            self.queues.setdefault(peer_id, [])

    async def send(self, to: str, type: str, payload: Any = None, sender: Optional[str] = None) -> None:
        """`to` 피어의 큐 끝에 메시지를 추가합니다.

        타입은 검증하지 않습니다. 알 수 없는 타입도 그대로 저장/전달됩니다.

        Args:
            to: 받는 피어 ID
            type: 메시지 타입
            payload: 불투명 payload (릴레이는 해석하지 않음)
            sender: 보낸 피어 ID
        """
        message = SignalingMessage(type=type, sender=sender, data=payload)
        async with self._lock:
            self.queues.setdefault(to, []).append(message)
            queued = len(self.queues[to])
        logger.debug(f"메시지 큐잉: {type} {sender} -> {to} (대기 {queued}개)")

    async def poll(self, peer_id: str) -> List[SignalingMessage]:
        """피어 큐를 원자적으로 읽고 비운 뒤 스냅샷을 반환합니다.

        큐가 없으면 빈 큐를 생성하고 빈 리스트를 반환합니다.
        """
        async with self._lock:
            messages = self.queues.get(peer_id, [])
            self.queues[peer_id] = []
        if messages:
            logger.debug(f"피어 {peer_id} 큐 drain: {len(messages)}개")
        return messages

    async def discard(self, peer_id: str) -> int:
        """피어 큐를 삭제합니다. 전달되지 않은 메시지 수를 반환합니다."""
        async with self._lock:
            dropped = self.queues.pop(peer_id, None) or []
        if dropped:
            logger.info(f"피어 {peer_id} 큐 삭제: 미전달 메시지 {len(dropped)}개 폐기")
        return len(dropped)

    def pending_count(self, peer_id: Optional[str] = None) -> int:
        """대기 중인 메시지 수 (peer_id가 없으면 전체 합계)."""
        if peer_id is not None:
            return len(self.queues.get(peer_id, []))
        return sum(len(q) for q in self.queues.values())

    def queue_count(self) -> int:
        return len(self.queues)
