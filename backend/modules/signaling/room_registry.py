"""룸 기반 피어 멤버십 관리 모듈.

이 모듈은 시그널링 릴레이의 룸(방)과 피어(참가자) 멤버십을 관리합니다.
여러 개의 독립적인 룸을 동시에 관리하며, 입장/퇴장 시 같은 룸의 다른
참가자 큐에 알림 메시지를 넣습니다.

주요 기능:
    - 룸 생성 및 삭제 (첫 입장 시 자동 생성/비어있을 때 자동 삭제)
    - 참가자 입장/퇴장 관리 및 peer-connected/peer-disconnected 알림
    - 룸별 참가자 목록 조회 (관리용 스냅샷)

Architecture:
    - rooms: Dict[str, List[str]] - 룸 ID → 입장 순서대로 정렬된 피어 ID 목록
    - MessageQueueStore: 알림 메시지 전달 대상

Examples:
    기본 사용법:
        >>> store = MessageQueueStore()
        >>> registry = RoomRegistry(store)
        >>> await registry.join("room-1", "peer-a")
        []
        >>> await registry.join("room-1", "peer-b")
        ['peer-a']

See Also:
    message_store.py: 피어별 메시지 큐
    relay.py: HTTP 요청 처리 계층
"""
import asyncio
import logging
from typing import Dict, List

from ..shared.dto import MessageType
from .errors import InvalidRequest
from .message_store import MessageQueueStore

logger = logging.getLogger(__name__)


class RoomRegistry:
    """룸과 멤버십을 관리하는 핵심 클래스.

    Attributes:
        rooms (Dict[str, List[str]]): 룸 ID를 키로 하는 참가자 ID 목록
        store (MessageQueueStore): 입/퇴장 알림을 넣을 메시지 큐 저장소

    Design Patterns:
        - 자동 생성/삭제: 첫 입장 시 룸 생성, 마지막 참가자 퇴장 시 삭제
        - 룸은 참가자가 한 명 이상일 때만 존재

    Thread Safety:
        - 룸 맵의 모든 read-modify-write는 asyncio.Lock으로 직렬화
        - 락 순서는 항상 registry → store (store는 registry 락을 잡지 않음)
    """

    def __init__(self, store: MessageQueueStore):
        self.store = store

        # room_id -> [peer_id, ...] (join order)
        self.rooms: Dict[str, List[str]] = {}

        self._lock = asyncio.Lock()

    async def join(self, room_id: str, peer_id: str) -> List[str]:
        """피어를 룸에 추가하고 기존 참가자 목록을 반환합니다.

        룸이 없으면 빈 룸을 생성합니다. 기존 참가자 각각의 큐에
        ``from=peer_id``인 peer-connected 메시지를 넣습니다.

        Args:
            room_id (str): 참가할 룸 ID
            peer_id (str): 참가하는 피어 ID

        Returns:
            List[str]: 본인을 제외한 기존 참가자 ID (입장 순서)

        Raises:
            InvalidRequest: room_id 또는 peer_id가 비어있을 때

        Note:
            - 같은 peer_id로 다시 입장하면 목록에 중복 추가하지 않음
            - 재입장 시에도 기존 참가자에게 다시 알림이 전달됨
        """
        if not room_id or not peer_id:
            raise InvalidRequest("Missing roomId or peerId")

        async with self._lock:
            if room_id not in self.rooms:
                self.rooms[room_id] = []
                logger.info(f"Room '{room_id}' created")

            members = self.rooms[room_id]
            existing_peers = [p for p in members if p != peer_id]
            if peer_id not in members:
                members.append(peer_id)

            await self.store.ensure_queue(peer_id)
            for other in existing_peers:
                await self.store.send(other, MessageType.PEER_CONNECTED.value, sender=peer_id)

            logger.info(f"Peer {peer_id} joined room '{room_id}'. "
                        f"Room has {len(members)} peers")

        return existing_peers

    async def leave(self, room_id: str, peer_id: str) -> None:
        """피어를 룸에서 제거하고 피어의 메시지 큐를 삭제합니다.

        남은 참가자 각각의 큐에 ``from=peer_id``인 peer-disconnected 메시지를
        넣습니다. 룸이 비면 룸을 삭제합니다. 룸이 없으면 이미 퇴장한 것으로
        간주합니다 (오류 아님).

        Args:
            room_id (str): 퇴장할 룸 ID
            peer_id (str): 퇴장하는 피어 ID

        Raises:
            InvalidRequest: room_id 또는 peer_id가 비어있을 때

        Note:
            - 피어 큐에 남아있던 미전달 메시지는 폐기됨
        """
        if not room_id or not peer_id:
            raise InvalidRequest("Missing roomId or peerId")

        async with self._lock:
            if room_id in self.rooms:
                remaining = [p for p in self.rooms[room_id] if p != peer_id]
                self.rooms[room_id] = remaining

                for other in remaining:
                    await self.store.send(other, MessageType.PEER_DISCONNECTED.value, sender=peer_id)

                if not remaining:
                    del self.rooms[room_id]
                    logger.info(f"Room '{room_id}' deleted (empty)")
                else:
                    logger.info(f"Peer {peer_id} left room '{room_id}'. "
                                f"Room has {len(remaining)} peers")

            await self.store.discard(peer_id)

    def get_room_peers(self, room_id: str) -> List[str]:
        """특정 룸의 참가자 목록 (복사본)."""
        return list(self.rooms.get(room_id, []))

    def get_room_list(self) -> List[dict]:
        """모든 룸의 정보를 리스트로 반환합니다.

        Returns:
            List[dict]: 룸 정보 딕셔너리의 리스트
                - room_id (str): 룸 ID
                - peer_count (int): 현재 참가자 수
                - peers (List[str]): 참가자 ID 목록
        """
        return [
            {
                "room_id": room_id,
                "peer_count": len(peers),
                "peers": list(peers),
            }
            for room_id, peers in self.rooms.items()
        ]

    def get_room_count(self, room_id: str) -> int:
        """특정 룸의 현재 참가자 수. 룸이 없으면 0."""
        return len(self.rooms.get(room_id, []))

    def peer_count(self) -> int:
        return sum(len(peers) for peers in self.rooms.values())
