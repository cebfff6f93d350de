"""시그널링 릴레이 서버 설정.

서버 호스트/포트, 로깅, CORS 설정을 환경변수(.env)에서 로드합니다.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env 파일 로드
_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


class SignalingSettings(BaseSettings):
    """시그널링 릴레이 설정 클래스.

    환경 변수를 Python 객체로 매핑하고 유효성을 검증합니다.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 서버 설정
    API_HOST: str = Field(
        default="0.0.0.0",
        description="API 서버 호스트"
    )

    API_PORT: int = Field(
        default=8000,
        description="API 서버 포트"
    )

    # 로깅 설정
    LOG_LEVEL: str = Field(
        default="INFO",
        description="로그 레벨"
    )

    LOG_DIR: str = Field(
        default="logs",
        description="로그 파일 디렉토리"
    )

    LOG_RETENTION_DAYS: int = Field(
        default=60,
        description="로그 보관 기간 (일)"
    )

    # CORS 설정
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default=["*"],
        description="허용할 Origin 목록"
    )

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 유효성 검증"""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL은 {allowed} 중 하나여야 합니다.")
        return v.upper()


@lru_cache()
def get_signaling_settings() -> SignalingSettings:
    """설정 싱글톤 인스턴스 반환.

    설정 재로딩이 필요하면 get_signaling_settings.cache_clear()를 호출하세요.

    Returns:
        SignalingSettings: 설정 객체
    """
    return SignalingSettings()


# 전역 settings 객체
signaling_settings = get_signaling_settings()
