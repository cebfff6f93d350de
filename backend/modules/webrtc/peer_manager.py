"""WebRTC 피어 연결 상태 머신 모듈.

이 모듈은 원격 피어마다 하나의 상태 머신을 두고, 릴레이에서 폴링한
시그널링 메시지에 따라 RTCPeerConnection의 offer/answer/candidate 교환을
진행합니다. 미디어는 피어 간 직접 연결로 흐르며 릴레이를 거치지 않습니다.

주요 기능:
    - 새 원격 피어 발견 시 offer 생성 및 전송
    - offer 수신 시 answer 생성 및 전송
    - answer/ICE candidate 적용
    - 연결 종료(명시적 퇴장 또는 전송 계층 실패) 시 정리

State Machine:
    Idle → OfferSent → Connected           (내가 먼저 offer)
    Idle → Answering → Connected           (상대 offer 수신)
    any  → Closed                          (peer-disconnected 또는 전송 실패)

    - 원격 피어 ID당 상태 머신은 최대 하나
    - Closed가 되면 레지스트리에서 제거됨 (같은 ID의 다음 메시지는 Idle부터)
    - 입장 알림(peer-connected)으로 시작한 세션은 offer 충돌 시 양보함:
      브라우저의 implicit rollback처럼 자기 연결을 버리고 상대 offer에 answer.
      aiortc에는 rollback이 없으므로 연결을 새로 만듦

Examples:
    기본 사용법:
        >>> manager = PeerConnectionManager(send=client.send, media=media_manager)
        >>> await manager.call("peer-456")          # Idle → OfferSent
        >>> await manager.handle_message(message)   # 폴링으로 받은 메시지 처리
        >>> await manager.close_all()

See Also:
    media.py: 로컬 미디어 소스 관리
    aiortc Documentation: https://aiortc.readthedocs.io/
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from aiortc import (
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
    MediaStreamTrack,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp
from pydantic import ValidationError

from ..shared.dto import IceCandidatePayload, MessageType, SignalingMessage
from .media import MediaSourceManager
from .views import RemoteViewRegistry

logger = logging.getLogger(__name__)

SendFn = Callable[[str, str, Any], Awaitable[None]]

# 전송 계층이 이 상태가 되면 상태 머신을 닫음
TERMINAL_CONNECTION_STATES = ("disconnected", "failed", "closed")


class PeerState(str, Enum):
    IDLE = "idle"
    OFFER_SENT = "offer-sent"
    ANSWERING = "answering"
    CONNECTED = "connected"
    CLOSED = "closed"


class PeerSession:
    """원격 피어 하나에 대한 상태 머신 인스턴스.

    Attributes:
        remote_id (str): 원격 피어 ID
        pc (RTCPeerConnection): 피어 연결 객체
        state (PeerState): 현재 상태
        polite (bool): offer 충돌 시 상대 offer를 받아들일지 여부
    """

    def __init__(self, remote_id: str, pc: RTCPeerConnection, polite: bool = False):
        self.remote_id = remote_id
        self.pc = pc
        self.state = PeerState.IDLE
        self.polite = polite

    def __repr__(self) -> str:
        return f"PeerSession({self.remote_id!r}, state={self.state.value})"


def description_to_payload(description: RTCSessionDescription) -> dict:
    return {"sdp": description.sdp, "type": description.type}


def candidate_to_payload(candidate: RTCIceCandidate) -> dict:
    """aiortc candidate → 브라우저 RTCIceCandidateInit 형식."""
    return {
        "candidate": f"candidate:{candidate_to_sdp(candidate)}",
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidate_from_payload(payload: IceCandidatePayload) -> RTCIceCandidate:
    """브라우저 형식 candidate → aiortc RTCIceCandidate.

    Raises:
        ValueError: candidate 문자열의 필드가 부족할 때
    """
    candidate_str = payload.candidate
    if candidate_str.startswith("candidate:"):
        candidate_str = candidate_str[10:]
    if len(candidate_str.split()) < 8:
        raise ValueError(f"malformed candidate: {payload.candidate!r}")

    ice_candidate = candidate_from_sdp(candidate_str)
    ice_candidate.sdpMid = payload.sdpMid
    ice_candidate.sdpMLineIndex = payload.sdpMLineIndex
    return ice_candidate


class PeerConnectionManager:
    """원격 피어별 상태 머신 레지스트리.

    폴링 루프가 전달한 메시지를 처리하며, 상태 머신은 처음 참조될 때 생성되고
    Closed가 되면 제거됩니다. 단일 이벤트 루프에서만 사용됩니다.

    Attributes:
        sessions (Dict[str, PeerSession]): 원격 피어 ID → 상태 머신
        media (MediaSourceManager): 새 연결에 붙일 현재 미디어 소스
        views (Optional[RemoteViewRegistry]): 원격 트랙 렌더링 자리

    Examples:
        >>> manager = PeerConnectionManager(send, media)
        >>> await manager.call("peer-456")
        >>> manager.state("peer-456")
        <PeerState.OFFER_SENT: 'offer-sent'>
    """

    def __init__(
        self,
        send: SendFn,
        media: MediaSourceManager,
        pc_factory: Optional[Callable[[], RTCPeerConnection]] = None,
        views: Optional[RemoteViewRegistry] = None,
        ice_servers: Sequence[dict] = (),
    ):
        self._send = send
        self.media = media
        self.views = views
        self.ice_servers = list(ice_servers)
        self._pc_factory = pc_factory or self._create_rtc_peer_connection

        # remote_id -> PeerSession
        self.sessions: Dict[str, PeerSession] = {}

    def _create_rtc_peer_connection(self) -> RTCPeerConnection:
        servers = [
            RTCIceServer(
                urls=server["urls"],
                username=server.get("username"),
                credential=server.get("credential"),
            )
            for server in self.ice_servers
        ]
        return RTCPeerConnection(configuration=RTCConfiguration(iceServers=servers))

    def _create_session(self, remote_id: str) -> PeerSession:
        """피어 연결을 만들고 이벤트 핸들러와 현재 송출 트랙을 붙입니다.

        Event Handlers:
            - icecandidate: 로컬 candidate를 ice-candidate 메시지로 전송
            - track: 원격 트랙을 렌더링 자리에 연결
            - connectionstatechange: connected면 Answering → Connected,
              disconnected/failed/closed면 상태 머신 정리
        """
        pc = self._pc_factory()
        session = PeerSession(remote_id, pc)
        self.sessions[remote_id] = session

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate and self.sessions.get(remote_id) is session:
                await self._send(remote_id, MessageType.ICE_CANDIDATE.value, candidate_to_payload(candidate))

        @pc.on("track")
        async def on_track(track: MediaStreamTrack):
            logger.info(f"[WebRTC] 피어 {remote_id} {track.kind} 트랙 수신")
            if self.views is not None:
                await self.views.attach(remote_id, track)

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            connection_state = pc.connectionState
            logger.info(f"[WebRTC] 피어 {remote_id} 연결 상태: {connection_state}")
            if self.sessions.get(remote_id) is not session:
                return
            if connection_state == "connected" and session.state == PeerState.ANSWERING:
                session.state = PeerState.CONNECTED
            elif connection_state in TERMINAL_CONNECTION_STATES:
                await self.close(remote_id)

        attached = self.media.attach_current_tracks(pc)
        logger.info(f"[WebRTC] 피어 연결 생성: remote={remote_id}, 송출 트랙={attached}")
        return session

    async def call(self, remote_id: str, polite: bool = False) -> None:
        """새 원격 피어에게 offer를 보냅니다 (Idle → OfferSent).

        이미 상태 머신이 있는 피어면 아무것도 하지 않습니다.

        Args:
            remote_id: 원격 피어 ID
            polite: peer-connected 알림으로 시작한 세션이면 True.
                상대도 같은 순간에 offer를 보내므로 충돌 시 상대 offer를 받아들임
        """
        if remote_id in self.sessions:
            logger.debug(f"[WebRTC] 피어 {remote_id} 이미 연결 중 - offer 생략")
            return

        session = self._create_session(remote_id)
        session.polite = polite
        pc = session.pc
        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        if self.sessions.get(remote_id) is not session:
            return

        session.state = PeerState.OFFER_SENT
        await self._send(remote_id, MessageType.OFFER.value, description_to_payload(pc.localDescription))
        logger.info(f"[WebRTC] 피어 {remote_id}에게 offer 전송")

    async def handle_offer(self, remote_id: str, offer) -> None:
        """offer를 적용하고 answer를 보냅니다 (Idle → Answering).

        상태 머신이 없으면 새로 만들고 현재 송출 트랙을 붙입니다.
        전송 계층이 connected가 되면 Connected로 전이합니다.

        Note:
            - 내 offer가 나가 있는 상태(have-local-offer)에서 offer를 받으면,
              polite 세션은 기존 연결을 닫고 새 연결로 answer함 (rollback 대체)
            - polite가 아닌 세션은 상대 offer를 무시하고 자기 answer를 기다림
        """
        session = self.sessions.get(remote_id)
        if session is not None and session.pc.signalingState == "have-local-offer":
            if not session.polite:
                logger.info(f"[WebRTC] 피어 {remote_id} offer 충돌 - 내 offer 유지, 상대 offer 무시")
                return
            logger.info(f"[WebRTC] 피어 {remote_id} offer 충돌 - 내 offer 철회 후 answer")
            await self.close(remote_id)
            session = None
        if session is None:
            session = self._create_session(remote_id)
        pc = session.pc

        await pc.setRemoteDescription(RTCSessionDescription(sdp=offer.sdp, type=offer.type))
        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)
        if self.sessions.get(remote_id) is not session:
            return

        session.state = PeerState.ANSWERING
        await self._send(remote_id, MessageType.ANSWER.value, description_to_payload(pc.localDescription))
        logger.info(f"[WebRTC] 피어 {remote_id}에게 answer 전송")

        if pc.connectionState == "connected":
            session.state = PeerState.CONNECTED

    async def handle_answer(self, remote_id: str, answer) -> None:
        """answer를 remote description으로 적용합니다 (OfferSent → Connected).

        내 offer가 나가 있지 않은 연결에 온 answer(철회된 offer에 대한 응답)는 무시합니다.
        """
        session = self.sessions.get(remote_id)
        if session is None:
            logger.debug(f"[WebRTC] 알 수 없는 피어 {remote_id}의 answer 무시")
            return
        if session.pc.signalingState != "have-local-offer":
            logger.debug(f"[WebRTC] 피어 {remote_id} 대기 중인 offer 없음 - answer 무시")
            return

        await session.pc.setRemoteDescription(RTCSessionDescription(sdp=answer.sdp, type=answer.type))
        session.state = PeerState.CONNECTED
        logger.info(f"[WebRTC] 피어 {remote_id} answer 적용")

    async def handle_ice_candidate(self, remote_id: str, data: Any) -> None:
        """원격 candidate를 연결에 추가합니다.

        연결 객체가 아직 없으면 candidate를 버립니다 (버퍼링하지 않음).
        """
        session = self.sessions.get(remote_id)
        if session is None:
            logger.debug(f"[WebRTC] 피어 {remote_id} 연결 없음 - ICE candidate 폐기")
            return

        try:
            candidate = candidate_from_payload(IceCandidatePayload.model_validate(data))
        except (ValidationError, ValueError) as e:
            logger.warning(f"[WebRTC] 피어 {remote_id} ICE candidate 파싱 실패: {e}")
            return

        try:
            await session.pc.addIceCandidate(candidate)
        except Exception as e:
            logger.error(f"[WebRTC] 피어 {remote_id} ICE candidate 추가 실패: {e}")

    async def handle_message(self, message: SignalingMessage) -> None:
        """폴링으로 받은 메시지를 타입별로 처리합니다.

        알 수 없는 타입은 경고 로그만 남기고 무시합니다.
        """
        message_type = message.type
        remote_id = message.sender

        if message_type == MessageType.PEER_CONNECTED.value:
            await self.call(remote_id, polite=True)
        elif message_type == MessageType.PEER_DISCONNECTED.value:
            await self.close(remote_id)
        elif message_type == MessageType.OFFER.value:
            await self.handle_offer(remote_id, message.payload())
        elif message_type == MessageType.ANSWER.value:
            await self.handle_answer(remote_id, message.payload())
        elif message_type == MessageType.ICE_CANDIDATE.value:
            await self.handle_ice_candidate(remote_id, message.data)
        else:
            logger.warning(f"알 수 없는 메시지 타입: {message_type}")

    async def close(self, remote_id: str) -> None:
        """상태 머신을 Closed로 만들고 연결과 렌더링 자리를 정리합니다.

        Cleanup Steps:
            1. sessions에서 제거 (이후 메시지는 Idle부터 다시 시작)
            2. 송출 트랙(MediaRelay 구독본) stop
            3. RTCPeerConnection 종료
            4. 렌더링 자리 제거

        Note:
            - 존재하지 않는 피어 ID로 호출해도 안전함
        """
        session = self.sessions.pop(remote_id, None)
        if session is None:
            return

        session.state = PeerState.CLOSED
        for sender in session.pc.getSenders():
            if sender.track is not None:
                sender.track.stop()
        await session.pc.close()

        if self.views is not None:
            await self.views.release(remote_id)
        logger.info(f"[WebRTC] 피어 {remote_id} 연결 종료")

    async def close_all(self) -> None:
        for remote_id in list(self.sessions.keys()):
            await self.close(remote_id)

    def state(self, remote_id: str) -> PeerState:
        """원격 피어의 현재 상태. 상태 머신이 없으면 Idle."""
        session = self.sessions.get(remote_id)
        return session.state if session is not None else PeerState.IDLE

    def peers(self) -> List[str]:
        return list(self.sessions.keys())

    def connections(self) -> List[RTCPeerConnection]:
        """현재 살아있는 피어 연결 목록 (미디어 소스 전환 대상)."""
        return [session.pc for session in self.sessions.values()]
