"""로깅 설정 모듈.

릴레이 서버와 클라이언트가 공통으로 사용하는 로깅 초기화 함수를 제공합니다.
- 콘솔 출력 + 날짜별 파일 출력
- 외부 라이브러리(aiortc, aioice, httpx) 로그 레벨 조정
- 보관 기간이 지난 로그 파일 정리

사용 예시:
    from modules.shared.logging_config import setup_logging

    setup_logging("INFO", "logs", "server")
"""

import glob
import logging
import os
from datetime import datetime, timedelta
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str] = "logs",
    name: str = "server",
) -> None:
    """루트 로거를 초기화합니다.

    Args:
        level: 로그 레벨 이름
        log_dir: 로그 파일 디렉토리 (None이면 콘솔만 사용)
        name: 로그 파일 접두사 (``<name>_YYYYMMDD.log``)

    Note:
        애플리케이션 시작 시 한 번만 호출해야 합니다.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_filename = os.path.join(log_dir, f"{name}_{datetime.now().strftime('%Y%m%d')}.log")
        handlers.append(logging.FileHandler(log_filename, encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    # 너무 상세한 로그 억제
    for noisy in ("aioice", "aiortc", "httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"로깅 초기화 완료: level={level}, dir={log_dir or 'None'}")


def cleanup_old_logs(
    log_dir: str = "logs",
    retention_days: int = 60,
    prefixes: Iterable[str] = ("server_", "client_"),
) -> int:
    """오래된 로그 파일을 삭제합니다.

    Args:
        log_dir: 로그 디렉토리 경로
        retention_days: 보관 기간 (일)
        prefixes: 정리 대상 로그 파일 접두사

    Returns:
        삭제된 파일 수
    """
    if not os.path.exists(log_dir):
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for prefix in prefixes:
        for log_file in glob.glob(os.path.join(log_dir, f"{prefix}*.log")):
            try:
                date_str = os.path.basename(log_file)[len(prefix):-len(".log")]
                file_date = datetime.strptime(date_str, "%Y%m%d")

                if file_date < cutoff_date:
                    os.remove(log_file)
                    deleted_count += 1
            except (ValueError, OSError):
                continue

    return deleted_count
