"""Health Check API 라우터.

릴레이 상태(룸/피어/큐/대기 메시지 수) 확인 엔드포인트를 제공합니다.
"""

from fastapi import APIRouter, Depends

from .signaling import get_relay

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check(relay=Depends(get_relay)):
    """릴레이 상태를 확인합니다.

    Returns:
        dict: 상태와 in-memory 통계
    """
    return {"status": "ok", **relay.stats()}
