"""FastAPI WebRTC Signaling Relay with Room Support.

이 모듈은 WebRTC 기반 멀티룸 영상 통화를 위한 HTTP 폴링 시그널링 릴레이를
제공합니다. 미디어는 중계하지 않으며, 피어 간 offer/answer/ICE candidate와
입퇴장 알림을 피어별 메시지 큐에 보관했다가 폴링 시 전달합니다.

주요 기능:
    - 룸 기반 피어 멤버십 관리 (첫 입장 시 생성, 마지막 퇴장 시 삭제)
    - 피어 간 불투명 메시지 전달 (payload는 해석하지 않음)
    - 폴링 기반 메시지 drain (best-effort, exactly-once)
    - CORS 설정을 통한 크로스 오리진 요청 지원

Architecture:
    - Mesh 패턴: 미디어는 피어 간 직접 연결, 서버는 시그널링만 담당
    - RoomRegistry: 룸 및 참가자 상태 관리
    - MessageQueueStore: 피어별 FIFO 메시지 큐
    - SignalingRelay: join/send/leave/poll 요청 처리
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load 환경변수 로드 variables from config/.env
load_dotenv(Path(__file__).parent / "config" / ".env")

from modules.shared import setup_logging, cleanup_old_logs
from modules.signaling import SignalingRelay, InvalidRequest
from modules.signaling.config import signaling_settings
from modules.webrtc.config import ice_config
from routes import health_router, signaling_router, init_signaling_managers, get_relay

SERVICE_NAME = "WebRTC Signaling Relay with Rooms"

# 로그 설정 (LOG_DIR이 비어있으면 콘솔만 사용)
setup_logging(signaling_settings.LOG_LEVEL, signaling_settings.LOG_DIR or None, "server")
logger = logging.getLogger(__name__)


# 글로벌 릴레이 인스턴스 (in-memory, 프로세스 재시작 시 초기화)
relay = SignalingRelay()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI 앱의 생명주기를 관리하는 컨텍스트 매니저.

    Args:
        app (FastAPI): FastAPI 애플리케이션 인스턴스

    Yields:
        None: 앱이 실행되는 동안 제어를 반환

    Note:
        - 시작: 오래된 로그 파일 정리
        - 종료: 남아있는 룸/메시지는 영속화하지 않고 폐기
    """
    logger.info("WebRTC 시그널링 릴레이 시작 중...")

    if signaling_settings.LOG_DIR:
        deleted_logs = cleanup_old_logs(signaling_settings.LOG_DIR, signaling_settings.LOG_RETENTION_DAYS)
        if deleted_logs > 0:
            logger.info(f"오래된 로그 파일 {deleted_logs}개 정리 완료 "
                        f"({signaling_settings.LOG_RETENTION_DAYS}일 이상)")

    yield

    logger.info("서버 종료 중...")
    stats = relay.stats()
    if stats["rooms"] or stats["pending_messages"]:
        logger.info(f"룸 {stats['rooms']}개, 미전달 메시지 {stats['pending_messages']}개 폐기")


app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=signaling_settings.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest):
    logger.warning(f"잘못된 요청 {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """JSON이 아니거나 필드 타입이 맞지 않는 바디는 400으로 응답합니다."""
    logger.warning(f"요청 바디 검증 실패 {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


# 라우터 등록
app.include_router(health_router)
app.include_router(signaling_router)

# 시그널링 라우터에 릴레이 인스턴스 전달
init_signaling_managers(relay)


@app.get("/")
async def root():
    """서버 상태 확인 엔드포인트 (Health check).

    Returns:
        dict: 서버 상태 정보를 포함하는 딕셔너리
            - status (str): 서버 상태 ("ok")
            - service (str): 서비스 이름

    Examples:
        >>> response = await root()
        >>> print(response)
        {"status": "ok", "service": "WebRTC Signaling Relay with Rooms"}
    """
    return {"status": "ok", "service": SERVICE_NAME}


@app.get("/api/rooms")
async def get_rooms_api():
    """활성화된 모든 룸의 목록을 조회합니다.

    Returns:
        dict: 룸 목록을 포함하는 딕셔너리
            - rooms (List[dict]): room_id, peer_count, peers
    """
    return {"rooms": get_relay().registry.get_room_list()}


@app.get("/api/ice-servers")
async def get_ice_servers():
    """클라이언트가 RTCPeerConnection 생성에 사용할 ICE 서버 목록을 제공합니다.

    Returns:
        list: RTCIceServer 형식 딕셔너리 리스트 (STUN, 설정된 경우 TURN)

    Environment Variables:
        TURN_SERVER_URL: TURN 서버 URL
        TURN_USERNAME: TURN 사용자명
        TURN_CREDENTIAL: TURN 비밀번호
        STUN_SERVER_URL: 커스텀 STUN 서버 URL (선택)

    Examples:
        성공 응답:
            [
                {"urls": "stun:stun.l.google.com:19302"},
                {"urls": "turn:turn.example.com:3478", "username": "u", "credential": "p"}
            ]
    """
    servers = ice_config.ice_servers()
    if ice_config.has_turn_server:
        logger.info("ICE 서버 제공: STUN + TURN")
    else:
        logger.info("ICE 서버 제공: STUN만 (TURN 미설정)")
    return servers


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=signaling_settings.API_HOST,
        port=signaling_settings.API_PORT,
        log_level=signaling_settings.LOG_LEVEL.lower(),
    )
