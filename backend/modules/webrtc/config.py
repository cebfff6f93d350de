"""WebRTC 모듈 설정.

STUN/TURN 서버, 캡처 장치, 해상도 티어, 클라이언트 폴링 설정 등
WebRTC 클라이언트 관련 상수와 환경변수 기반 설정.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# 환경변수 로드 (상위에서 이미 로드됨)
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


# ============================================================
# ICE Server 설정
# ============================================================

@dataclass(frozen=True)
class ICEServerConfig:
    """ICE 서버 설정."""

    # TURN 서버
    TURN_SERVER_URL: Optional[str] = os.getenv("TURN_SERVER_URL")
    TURN_USERNAME: Optional[str] = os.getenv("TURN_USERNAME")
    TURN_CREDENTIAL: Optional[str] = os.getenv("TURN_CREDENTIAL")

    # STUN 서버
    STUN_SERVER_URL: Optional[str] = os.getenv("STUN_SERVER_URL")

    # 기본 공개 STUN 서버 (fallback)
    DEFAULT_STUN_SERVERS: tuple = (
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    )

    @property
    def has_turn_server(self) -> bool:
        """TURN 서버 설정 완료 여부."""
        return all([self.TURN_SERVER_URL, self.TURN_USERNAME, self.TURN_CREDENTIAL])

    def ice_servers(self) -> List[dict]:
        """RTCIceServer 형식의 ICE 서버 목록 (커스텀 STUN → 기본 STUN → TURN)."""
        servers = []
        if self.STUN_SERVER_URL:
            servers.append({"urls": self.STUN_SERVER_URL})
        for stun_url in self.DEFAULT_STUN_SERVERS:
            servers.append({"urls": stun_url})
        if self.has_turn_server:
            servers.append({
                "urls": self.TURN_SERVER_URL,
                "username": self.TURN_USERNAME,
                "credential": self.TURN_CREDENTIAL,
            })
        return servers


# ============================================================
# 미디어 캡처 설정
# ============================================================

# 해상도 티어 → (width, height) ideal 값
RESOLUTION_TIERS: Dict[int, Tuple[int, int]] = {
    720: (1280, 720),
    1080: (1920, 1080),
    2160: (3840, 2160),
}


@dataclass(frozen=True)
class MediaConfig:
    """로컬 캡처 장치 및 품질 설정."""

    # 기본 품질
    DEFAULT_RESOLUTION: int = int(os.getenv("MEDIA_RESOLUTION", "720"))
    DEFAULT_FRAME_RATE: int = int(os.getenv("MEDIA_FRAME_RATE", "30"))

    # 카메라 (ffmpeg 입력 장치/포맷)
    CAMERA_DEVICE: str = os.getenv("CAMERA_DEVICE", "/dev/video0")
    CAMERA_FORMAT: str = os.getenv("CAMERA_FORMAT", "v4l2")

    # 마이크
    MICROPHONE_DEVICE: str = os.getenv("MICROPHONE_DEVICE", "default")
    MICROPHONE_FORMAT: str = os.getenv("MICROPHONE_FORMAT", "pulse")

    # 화면 캡처
    SCREEN_DEVICE: str = os.getenv("SCREEN_DEVICE", ":0.0")
    SCREEN_FORMAT: str = os.getenv("SCREEN_FORMAT", "x11grab")

    def resolve(self, resolution_tier: int) -> Tuple[int, int]:
        """해상도 티어를 (width, height)로 변환. 알 수 없는 티어는 720p."""
        return RESOLUTION_TIERS.get(int(resolution_tier), RESOLUTION_TIERS[720])


# ============================================================
# 클라이언트 설정
# ============================================================

@dataclass(frozen=True)
class ClientConfig:
    """시그널링 클라이언트 설정."""

    # 릴레이 서버 주소
    SIGNALING_URL: str = os.getenv("SIGNALING_URL", "http://localhost:8000")

    # 폴링 간격 (초)
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "0.5"))

    # HTTP 요청 타임아웃 (초)
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "10"))


# ============================================================
# 싱글톤 인스턴스
# ============================================================

ice_config = ICEServerConfig()
media_config = MediaConfig()
client_config = ClientConfig()


logger.debug(f"[WebRTC Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.debug(f"[WebRTC Config] TURN 서버 설정 완료: {ice_config.has_turn_server}")
