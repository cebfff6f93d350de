"""시그널링 클라이언트 모듈.

Classes:
    SignalingClient: 릴레이 HTTP API 클라이언트
    PollLoop: 메시지 폴링 루프
    CallSession: 룸 입장/퇴장 및 화면 공유 흐름
"""

from .api_client import SignalingClient, SignalingError, generate_peer_id
from .poll_loop import PollLoop
from .call import CallSession

__all__ = [
    "SignalingClient",
    "SignalingError",
    "generate_peer_id",
    "PollLoop",
    "CallSession",
]
