"""WebRTC 모듈.

원격 피어별 연결 상태 머신, 로컬 미디어 소스 관리, 송출 트랙 교체 기능을 제공합니다.

Classes:
    PeerConnectionManager: 원격 피어별 상태 머신 레지스트리
    PeerSession: 원격 피어 하나의 상태 머신
    PeerState: 상태 머신 상태
    MediaSourceManager: 현재 송출 소스(카메라/화면) 관리
    MediaSource: 캡처 소스
    PlayerMediaDevices: aiortc MediaPlayer 기반 장치 접근
    RemoteViewRegistry: 원격 트랙 렌더링 자리

Config:
    ice_config: ICE 서버 설정
    media_config: 캡처 장치/해상도 설정
    client_config: 시그널링 클라이언트 설정
"""

from .media import MediaSource, MediaSourceManager, PlayerMediaDevices, DeviceAccessError
from .peer_manager import PeerConnectionManager, PeerSession, PeerState
from .tracks import replace_source_across_connections, outgoing_tracks
from .views import RemoteViewRegistry
from .config import (
    ice_config,
    media_config,
    client_config,
    ICEServerConfig,
    MediaConfig,
    ClientConfig,
    RESOLUTION_TIERS,
)

__all__ = [
    # Classes
    "MediaSource",
    "MediaSourceManager",
    "PlayerMediaDevices",
    "DeviceAccessError",
    "PeerConnectionManager",
    "PeerSession",
    "PeerState",
    "RemoteViewRegistry",
    "replace_source_across_connections",
    "outgoing_tracks",
    # Config
    "ice_config",
    "media_config",
    "client_config",
    "ICEServerConfig",
    "MediaConfig",
    "ClientConfig",
    "RESOLUTION_TIERS",
]
