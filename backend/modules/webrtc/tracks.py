"""송출 트랙 부착/교체 모듈.

현재 로컬 미디어 소스의 트랙을 피어 연결에 붙이거나, 모든 활성 연결의
송출 트랙을 다른 소스로 한꺼번에 교체하는 기능을 제공합니다.

Note:
    - 각 연결은 소스 트랙의 MediaRelay 구독본을 받습니다. 연결 쪽 트랙을
      stop해도 캡처 장치 자체는 멈추지 않습니다.
    - aiortc에는 removeTrack이 없으므로 sender.replaceTrack(None)으로 분리하고,
      addTrack이 비어있는 같은 종류의 transceiver를 재사용합니다.
    - 교체 후 재협상(offer/answer)은 수행하지 않습니다.
"""

import inspect
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

from aiortc import MediaStreamTrack, RTCPeerConnection

if TYPE_CHECKING:
    from .media import MediaSource

logger = logging.getLogger(__name__)


def live_connections(connections: Iterable[RTCPeerConnection]) -> List[RTCPeerConnection]:
    """닫히지 않은 연결만 반환합니다."""
    return [pc for pc in connections if pc.connectionState != "closed"]


def outgoing_tracks(pc: RTCPeerConnection) -> List[MediaStreamTrack]:
    """연결에 현재 붙어 송출 중인 트랙 목록."""
    return [sender.track for sender in pc.getSenders() if sender.track is not None]


def attach_source(pc: RTCPeerConnection, source: Optional["MediaSource"]) -> int:
    """소스의 모든 트랙 구독본을 연결에 추가합니다. 추가한 트랙 수를 반환합니다."""
    if source is None:
        logger.warning("[WebRTC] 로컬 미디어 소스 없음 - 트랙 없이 연결 생성")
        return 0
    tracks = source.subscribe()
    for track in tracks:
        pc.addTrack(track)
    return len(tracks)


async def _replace_sender_track(sender, track: Optional[MediaStreamTrack]) -> None:
    # replaceTrack은 aiortc 버전에 따라 coroutine을 반환할 수 있음
    result = sender.replaceTrack(track)
    if inspect.isawaitable(result):
        await result


async def detach_outgoing_tracks(pc: RTCPeerConnection) -> int:
    """연결의 송출 트랙을 모두 stop하고 sender에서 분리합니다."""
    detached = 0
    for sender in pc.getSenders():
        if sender.track is not None:
            sender.track.stop()
            await _replace_sender_track(sender, None)
            detached += 1
    return detached


async def replace_source_across_connections(
    connections: Iterable[RTCPeerConnection],
    source: "MediaSource",
) -> int:
    """모든 활성 연결의 송출 트랙을 `source`의 트랙으로 교체합니다.

    연결마다 기존 송출 트랙을 stop/분리한 뒤 새 소스의 모든 트랙을 붙입니다.
    새 구독본은 연결을 건드리기 전에 모두 만들어 두므로, 교체는 연결 집합
    전체에 대해 한 번에 적용됩니다.

    Args:
        connections: 피어 연결 목록
        source: 새로 송출할 미디어 소스

    Returns:
        int: 교체가 적용된 연결 수
    """
    targets = live_connections(connections)
    plan = [(pc, source.subscribe()) for pc in targets]

    for pc, new_tracks in plan:
        detached = await detach_outgoing_tracks(pc)
        for track in new_tracks:
            pc.addTrack(track)
        logger.debug(f"[WebRTC] 트랙 교체: 분리 {detached}개 → 추가 {len(new_tracks)}개 ({source.kind})")

    logger.info(f"[WebRTC] {len(plan)}개 연결의 송출 소스를 '{source.kind}'로 교체")
    return len(plan)
