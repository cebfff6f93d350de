"""공용 테스트 픽스처.

- 릴레이 앱은 테스트마다 새 SignalingRelay로 초기화합니다.
- 피어 연결은 RTCPeerConnection 인터페이스 중 사용하는 부분만 구현한
  in-memory fake로 대체합니다.
- 미디어 트랙은 장치 없이 동작하는 aiortc AudioStreamTrack/VideoStreamTrack을 사용합니다.
"""

import os

# 테스트 중에는 로그 파일을 만들지 않음 (app import 전에 설정해야 함)
os.environ["LOG_DIR"] = ""

import httpx
import pytest
from aiortc import RTCSessionDescription
from aiortc.exceptions import InvalidStateError
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack
from fastapi.testclient import TestClient

import app as app_module
from modules.signaling import SignalingRelay
from modules.webrtc.media import CAMERA, SCREEN, DeviceAccessError, MediaSource, MediaSourceManager
from routes import init_signaling_managers


class FakeSender:
    def __init__(self, track):
        self.kind = track.kind
        self.track = track

    def replaceTrack(self, track):
        self.track = track


class FakePeerConnection:
    """RTCPeerConnection 대역. offer/answer는 고정 SDP를 돌려줍니다."""

    def __init__(self):
        self.connectionState = "new"
        self.signalingState = "stable"
        self.localDescription = None
        self.remoteDescription = None
        self.candidates = []
        self.closed = False
        self._senders = []
        self._handlers = {}
        # 설정하면 해당 종류의 다음 addTrack 한 번이 실패
        self.fail_next_add_kind = None

    def on(self, event, handler=None):
        def decorator(fn):
            self._handlers.setdefault(event, []).append(fn)
            return fn
        return decorator if handler is None else decorator(handler)

    async def emit(self, event, *args):
        for handler in list(self._handlers.get(event, [])):
            await handler(*args)

    async def set_connection_state(self, state: str):
        self.connectionState = state
        await self.emit("connectionstatechange")

    async def createOffer(self):
        return RTCSessionDescription(sdp="v=0 fake-offer", type="offer")

    async def createAnswer(self):
        return RTCSessionDescription(sdp="v=0 fake-answer", type="answer")

    async def setLocalDescription(self, description):
        self.localDescription = description
        self.signalingState = "have-local-offer" if description.type == "offer" else "stable"

    async def setRemoteDescription(self, description):
        # aiortc와 같이 rollback 없이 offer 충돌을 거부
        if description.type == "offer" and self.signalingState == "have-local-offer":
            raise InvalidStateError(f'Cannot handle offer in signaling state "{self.signalingState}"')
        if description.type == "answer" and self.signalingState != "have-local-offer":
            raise InvalidStateError(f'Cannot handle answer in signaling state "{self.signalingState}"')
        self.remoteDescription = description
        self.signalingState = "have-remote-offer" if description.type == "offer" else "stable"

    async def addIceCandidate(self, candidate):
        self.candidates.append(candidate)

    def addTrack(self, track):
        if self.fail_next_add_kind == track.kind:
            self.fail_next_add_kind = None
            raise RuntimeError(f"cannot add {track.kind} track")
        # aiortc처럼 비어있는 같은 종류의 sender를 재사용
        for sender in self._senders:
            if sender.kind == track.kind and sender.track is None:
                sender.replaceTrack(track)
                return sender
        sender = FakeSender(track)
        self._senders.append(sender)
        return sender

    def getSenders(self):
        return list(self._senders)

    async def close(self):
        if self.closed:
            return
        self.closed = True
        await self.set_connection_state("closed")


class FakeMediaDevices:
    """장치 없이 합성 트랙으로 소스를 만드는 MediaDevices 대역."""

    def __init__(self, fail_camera: bool = False, fail_screen: bool = False):
        self.fail_camera = fail_camera
        self.fail_screen = fail_screen
        self.camera_requests = []
        self.screen_requests = []

    async def open_camera(self, width, height, frame_rate):
        self.camera_requests.append((width, height, frame_rate))
        if self.fail_camera:
            raise DeviceAccessError("camera permission denied")
        return MediaSource(CAMERA, [AudioStreamTrack(), VideoStreamTrack()])

    async def open_screen(self, frame_rate):
        self.screen_requests.append(frame_rate)
        if self.fail_screen:
            raise DeviceAccessError("screen capture cancelled")
        return MediaSource(SCREEN, [VideoStreamTrack()])


@pytest.fixture
def relay():
    """앱 라우터에 연결된 새 릴레이."""
    fresh = SignalingRelay()
    init_signaling_managers(fresh)
    yield fresh
    init_signaling_managers(app_module.relay)


@pytest.fixture
def api(relay):
    with TestClient(app_module.app) as client:
        yield client


@pytest.fixture
def asgi_transport(relay):
    return httpx.ASGITransport(app=app_module.app)


@pytest.fixture
def devices():
    return FakeMediaDevices()


@pytest.fixture
async def media(devices):
    manager = MediaSourceManager(devices=devices)
    await manager.acquire_local_source(720, 30)
    yield manager
    await manager.release()
