"""시그널링 HTTP 라우터.

룸 입장/퇴장, 피어 간 메시지 전달, 메시지 폴링 엔드포인트를 제공합니다.
필수 필드 검증은 SignalingRelay가 수행하며, InvalidRequest는 app.py의
예외 핸들러가 400 ``{"error": ...}`` 응답으로 변환합니다.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from modules.shared import JoinRequest, LeaveRequest, SendRequest
from modules.signaling import SignalingRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["signaling"])

# 글로벌 릴레이 참조 (app.py에서 설정됨)
_relay: Optional[SignalingRelay] = None


def init_managers(relay: SignalingRelay):
    """릴레이 인스턴스를 초기화합니다.

    app.py에서 호출하여 글로벌 릴레이 참조를 설정합니다.

    Args:
        relay: SignalingRelay 인스턴스
    """
    global _relay
    _relay = relay
    logger.info("시그널링 라우터 릴레이 초기화 완료")


def get_relay() -> SignalingRelay:
    if _relay is None:
        logger.error("릴레이가 초기화되지 않음")
        raise HTTPException(status_code=503, detail="Server not ready")
    return _relay


@router.post("/join")
async def join(body: JoinRequest, relay: SignalingRelay = Depends(get_relay)):
    """룸에 입장합니다. 기존 참가자에게 peer-connected 알림이 전달됩니다."""
    existing_peers = await relay.join(body.roomId, body.peerId)
    return {"existingPeers": existing_peers}


@router.post("/send")
async def send(body: SendRequest, relay: SignalingRelay = Depends(get_relay)):
    """다른 피어의 큐에 메시지를 넣습니다. payload는 해석하지 않습니다."""
    await relay.send(body.to, body.type, body.data, body.sender)
    return {"status": "ok"}


@router.post("/leave")
async def leave(body: LeaveRequest, relay: SignalingRelay = Depends(get_relay)):
    """룸에서 퇴장합니다. 남은 참가자에게 peer-disconnected 알림이 전달됩니다."""
    await relay.leave(body.roomId, body.peerId)
    return {"status": "left"}


@router.get("/poll")
async def poll(peerId: Optional[str] = Query(None), relay: SignalingRelay = Depends(get_relay)):
    """대기 중인 메시지를 반환하고 큐를 비웁니다.

    Note:
        - ACK가 없으므로 응답 전송이 실패하면 drain된 메시지는 유실됨
    """
    messages = await relay.poll(peerId)
    return {"messages": [message.to_wire() for message in messages]}
