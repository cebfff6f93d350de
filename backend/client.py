"""Headless WebRTC 룸 클라이언트.

릴레이 서버에 접속해 룸에 입장하고, 같은 룸의 다른 참가자들과 카메라+마이크를
주고받습니다. 종료(Ctrl+C, SIGTERM) 시 룸에서 퇴장하고 모든 연결을 정리합니다.

Usage:
    python client.py --server http://localhost:8000 --room room-1
    kill -USR1 <pid>   # 화면 공유 토글 (지원되는 플랫폼에서만)
"""
import argparse
import asyncio
import logging
import signal
from pathlib import Path

from dotenv import load_dotenv

# Load 환경변수 로드 variables from config/.env
load_dotenv(Path(__file__).parent / "config" / ".env")

from modules.client import CallSession, SignalingClient, SignalingError
from modules.shared import setup_logging
from modules.webrtc.config import RESOLUTION_TIERS, client_config, ice_config, media_config

logger = logging.getLogger("client")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="WebRTC room client")
    parser.add_argument("--server", default=client_config.SIGNALING_URL, help="Signaling relay URL")
    parser.add_argument("--room", required=True, help="Room ID to join")
    parser.add_argument(
        "--resolution", type=int, default=media_config.DEFAULT_RESOLUTION,
        choices=sorted(RESOLUTION_TIERS), help="Camera resolution tier",
    )
    parser.add_argument("--fps", type=int, default=media_config.DEFAULT_FRAME_RATE, help="Capture frame rate")
    parser.add_argument("--log-level", default="INFO", help="Log level")
    parser.add_argument("--log-dir", default="logs", help="Log directory (empty for console only)")
    return parser.parse_args(argv)


async def fetch_ice_servers(client: SignalingClient) -> list:
    """릴레이에서 ICE 서버 목록을 받아옵니다. 실패하면 로컬 설정을 사용합니다."""
    try:
        return await client.ice_servers()
    except SignalingError as e:
        logger.warning(f"ICE 서버 조회 실패, 로컬 설정 사용: {e}")
        return ice_config.ice_servers()


async def run(args: argparse.Namespace) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    async with SignalingClient(args.server) as client:
        session = CallSession(
            client,
            resolution=args.resolution,
            frame_rate=args.fps,
            ice_servers=await fetch_ice_servers(client),
        )

        async def toggle_screen_share():
            sharing = await session.toggle_screen_share()
            logger.info(f"화면 공유: {'ON' if sharing else 'OFF'}")

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                pass

        await session.join(args.room)
        # 로컬 소스가 준비된 뒤에만 화면 공유 토글을 받음
        if hasattr(signal, "SIGUSR1"):
            try:
                loop.add_signal_handler(signal.SIGUSR1, lambda: asyncio.ensure_future(toggle_screen_share()))
            except NotImplementedError:
                logger.info("이 플랫폼에서는 SIGUSR1 화면 공유 토글을 지원하지 않음")
        logger.info(f"peer={client.peer_id} 룸 '{args.room}' 참가 중 (종료: Ctrl+C)")
        try:
            await stop_event.wait()
        finally:
            await session.leave()


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_dir or None, "client")
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
