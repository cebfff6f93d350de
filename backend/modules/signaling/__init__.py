"""시그널링 릴레이 모듈.

룸 멤버십과 피어별 메시지 큐를 관리하고 join/send/leave/poll 프로토콜을 제공합니다.

Classes:
    MessageQueueStore: 피어별 FIFO 메시지 큐
    RoomRegistry: 룸 및 참가자 관리
    SignalingRelay: 요청 처리 계층
    InvalidRequest: 필수 필드 누락 예외

Config:
    signaling_settings: 서버/로깅/CORS 설정
"""

from .errors import InvalidRequest
from .message_store import MessageQueueStore
from .room_registry import RoomRegistry
from .relay import SignalingRelay
from .config import SignalingSettings, get_signaling_settings, signaling_settings

__all__ = [
    # Classes
    "InvalidRequest",
    "MessageQueueStore",
    "RoomRegistry",
    "SignalingRelay",
    # Config
    "SignalingSettings",
    "get_signaling_settings",
    "signaling_settings",
]
