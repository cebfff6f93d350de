"""Backend modules package.

이 패키지는 WebRTC 룸 시그널링 시스템의 핵심 모듈을 포함합니다.

Modules:
    shared: 릴레이/클라이언트 공용 DTO와 로깅 설정
    signaling: 룸 멤버십, 피어별 메시지 큐, 릴레이 (서버)
    webrtc: 피어 연결 상태 머신, 로컬 미디어 소스 (클라이언트)
    client: 릴레이 HTTP 클라이언트, 폴링 루프, 통화 세션 (클라이언트)
"""

from .shared import SignalingMessage, MessageType
from .signaling import SignalingRelay, RoomRegistry, MessageQueueStore, InvalidRequest

__all__ = [
    # Shared DTOs
    "SignalingMessage",
    "MessageType",
    # Signaling
    "SignalingRelay",
    "RoomRegistry",
    "MessageQueueStore",
    "InvalidRequest",
]
