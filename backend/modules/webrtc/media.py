"""로컬 미디어 소스 관리 모듈.

카메라+마이크 소스와 화면 공유 소스를 열고, 현재 송출 소스를 관리합니다.
화면 공유 토글 시 모든 활성 연결의 송출 트랙을 한꺼번에 교체합니다.

주요 기능:
    - 해상도 티어/프레임레이트 기반 카메라+마이크 캡처
    - 화면 캡처 시작/종료 (OS 쪽에서 캡처가 끝나면 자동으로 카메라 복귀)
    - 장치 접근 실패 시 기존 상태 유지

Classes:
    MediaSource: 캡처 소스 하나 (트랙 목록 + MediaRelay)
    PlayerMediaDevices: aiortc MediaPlayer 기반 장치 접근
    MediaSourceManager: 현재 송출 소스 관리
    DeviceAccessError: 장치 열기 실패
"""

import logging
from typing import Callable, Iterable, List, Optional

from aiortc import MediaStreamTrack, RTCPeerConnection
from aiortc.contrib.media import MediaPlayer, MediaRelay

from .config import MediaConfig, media_config
from .tracks import attach_source, replace_source_across_connections

logger = logging.getLogger(__name__)

CAMERA = "camera"
SCREEN = "screen"


class DeviceAccessError(RuntimeError):
    """캡처 장치를 열 수 없음."""


class MediaSource:
    """하나의 캡처 소스.

    캡처 트랙(원본)을 소유하고, 연결마다 MediaRelay 구독본을 나눠줍니다.

    Attributes:
        kind (str): "camera" 또는 "screen"
        tracks (List[MediaStreamTrack]): 원본 캡처 트랙
    """

    def __init__(self, kind: str, tracks: Iterable[MediaStreamTrack], players: Iterable[MediaPlayer] = ()):
        self.kind = kind
        self.tracks: List[MediaStreamTrack] = list(tracks)
        self._players = list(players)
        self._relay = MediaRelay()

    @property
    def video_track(self) -> Optional[MediaStreamTrack]:
        return next((t for t in self.tracks if t.kind == "video"), None)

    def subscribe(self) -> List[MediaStreamTrack]:
        """모든 원본 트랙에 대한 새 구독본을 반환합니다."""
        return [self._relay.subscribe(track) for track in self.tracks]

    def stop(self) -> None:
        """원본 트랙을 모두 stop합니다 (캡처 종료)."""
        for track in self.tracks:
            track.stop()

    def __repr__(self) -> str:
        return f"MediaSource(kind={self.kind!r}, tracks={[t.kind for t in self.tracks]})"


class PlayerMediaDevices:
    """aiortc MediaPlayer로 캡처 장치를 엽니다."""

    def __init__(self, config: MediaConfig = media_config):
        self.config = config

    async def open_camera(self, width: int, height: int, frame_rate: int) -> MediaSource:
        options = {"video_size": f"{width}x{height}", "framerate": str(frame_rate)}
        logger.info(f"[Media] 카메라 열기: {self.config.CAMERA_DEVICE} {options}")
        try:
            video = MediaPlayer(self.config.CAMERA_DEVICE, format=self.config.CAMERA_FORMAT, options=options)
            audio = MediaPlayer(self.config.MICROPHONE_DEVICE, format=self.config.MICROPHONE_FORMAT)
        except Exception as e:
            raise DeviceAccessError(f"카메라/마이크 열기 실패: {e}") from e

        tracks = [t for t in (audio.audio, video.video) if t is not None]
        return MediaSource(CAMERA, tracks, players=(video, audio))

    async def open_screen(self, frame_rate: int) -> MediaSource:
        options = {"framerate": str(frame_rate)}
        logger.info(f"[Media] 화면 캡처 열기: {self.config.SCREEN_DEVICE} {options}")
        try:
            player = MediaPlayer(self.config.SCREEN_DEVICE, format=self.config.SCREEN_FORMAT, options=options)
        except Exception as e:
            raise DeviceAccessError(f"화면 캡처 열기 실패: {e}") from e

        if player.video is None:
            raise DeviceAccessError("화면 캡처 장치에 비디오 트랙이 없음")
        return MediaSource(SCREEN, [player.video], players=(player,))


class MediaSourceManager:
    """현재 송출 소스를 관리하는 클래스.

    카메라+마이크 소스와 화면 소스 중 정확히 하나가 "현재" 소스이며,
    새 연결은 현재 소스의 트랙을 받습니다. 소스 전환은 모든 활성 연결에
    한꺼번에 적용됩니다.

    Attributes:
        devices: open_camera/open_screen을 제공하는 장치 접근 객체
        local (Optional[MediaSource]): 카메라+마이크 소스
        screen (Optional[MediaSource]): 화면 공유 소스 (공유 중일 때만)
        current (Optional[MediaSource]): 현재 송출 소스
        frame_rate (int): 카메라/화면 공통 프레임레이트
    """

    def __init__(
        self,
        devices=None,
        connections: Optional[Callable[[], Iterable[RTCPeerConnection]]] = None,
        config: MediaConfig = media_config,
    ):
        self.devices = devices or PlayerMediaDevices(config)
        self.config = config
        self._connections = connections or (lambda: [])

        self.local: Optional[MediaSource] = None
        self.screen: Optional[MediaSource] = None
        self.current: Optional[MediaSource] = None
        self.frame_rate: int = config.DEFAULT_FRAME_RATE

    def bind_connections(self, connections: Callable[[], Iterable[RTCPeerConnection]]) -> None:
        """소스 전환을 전파할 연결 목록 제공자를 설정합니다."""
        self._connections = connections

    @property
    def is_screen_sharing(self) -> bool:
        return self.screen is not None

    async def acquire_local_source(self, resolution_tier: int, frame_rate: int) -> MediaSource:
        """카메라+마이크 소스를 열고 현재 소스로 설정합니다.

        Args:
            resolution_tier: 720/1080/2160
            frame_rate: 목표 프레임레이트 (화면 공유에도 재사용)

        Raises:
            DeviceAccessError: 장치를 열 수 없을 때
        """
        width, height = self.config.resolve(resolution_tier)
        source = await self.devices.open_camera(width, height, frame_rate)
        self.local = source
        # 화면 공유 중이면 공유가 끝날 때 카메라로 복귀
        if self.screen is None:
            self.current = source
        self.frame_rate = frame_rate
        logger.info(f"[Media] 로컬 소스 준비: {width}x{height}@{frame_rate}")
        return source

    def attach_current_tracks(self, pc: RTCPeerConnection) -> int:
        return attach_source(pc, self.current)

    async def toggle_screen_share(self) -> bool:
        """화면 공유를 토글합니다. 토글 후 공유 중이면 True."""
        if self.screen is None:
            return await self.start_screen_share()
        await self.stop_screen_share()
        return False

    async def start_screen_share(self) -> bool:
        """화면 캡처를 시작하고 모든 활성 연결에 전파합니다.

        장치 접근이나 연결 전파에 실패하면 로그만 남기고 기존 소스를 유지합니다.
        전파 도중 실패하면 이미 바뀐 연결도 기존 소스로 되돌리고 화면 캡처를 닫습니다.
        """
        if self.screen is not None:
            return True

        try:
            source = await self.devices.open_screen(self.frame_rate)
        except DeviceAccessError as e:
            logger.error(f"[Media] 화면 공유 시작 실패: {e}")
            return False

        video = source.video_track
        if video is not None:
            @video.on("ended")
            async def on_capture_ended():
                # 사용자가 OS 쪽에서 공유를 중지한 경우
                if self.screen is source:
                    logger.info("[Media] 화면 캡처 종료 감지 - 카메라로 복귀")
                    await self.stop_screen_share()

        try:
            await replace_source_across_connections(self._connections(), source)
        except Exception as e:
            logger.error(f"[Media] 화면 공유 전파 실패 - 기존 소스로 복구: {e}", exc_info=True)
            source.stop()
            if self.current is not None:
                await replace_source_across_connections(self._connections(), self.current)
            return False

        self.screen = source
        self.current = source
        logger.info("[Media] 화면 공유 시작")
        return True

    async def stop_screen_share(self) -> None:
        """화면 캡처를 종료하고 카메라+마이크 소스로 복귀합니다."""
        if self.screen is None:
            return

        screen = self.screen
        self.screen = None
        screen.stop()

        self.current = self.local
        if self.local is not None:
            await replace_source_across_connections(self._connections(), self.local)
        logger.info("[Media] 화면 공유 종료")

    async def release(self) -> None:
        """모든 캡처를 종료합니다."""
        await self.stop_screen_share()
        if self.local is not None:
            self.local.stop()
        self.local = None
        self.current = None
