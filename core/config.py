"""
core/config.py - 중앙 설정 모듈

애플리케이션 전역에서 사용하는 설정값과 환경변수 헬퍼를 정의합니다.
설정값은 불변(frozen) 데이터클래스로 관리하며, 모듈 레벨 `settings`
인스턴스를 import해서 사용합니다.

Usage:
    from core.config import settings, get_default_region

    ttl = settings.TXT_RECORD_TTL
    region = get_default_region()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """애플리케이션 설정 (불변)

    Attributes:
        DEFAULT_REGION: 리전 환경변수가 없을 때 사용할 기본 리전
        API_TIMEOUT: boto3 읽기 타임아웃 (초)
        API_RETRY_COUNT: 전송 오류 재시도 횟수
        LB_DNS_SUFFIXES: 로드밸런서 DNS 이름으로 인정할 도메인 접미사
        DUALSTACK_PREFIX: Alias 대상에서 제거할 듀얼스택 접두사
        RECORD_TYPES: 토폴로지 조회 대상 레코드 타입
        MAX_RECORDS_PER_ZONE: Zone당 최대 조회 레코드 수 (None이면 끝까지)
        TXT_RECORD_TTL: TXT 레코드 TTL (초)
        CHANGE_POLL_INTERVAL: 변경 상태 폴링 간격 (초)
        CHANGE_POLL_TIMEOUT: 변경 상태 폴링 최대 대기 시간 (초, None이면 무제한)
        NOT_AVAILABLE: 값이 없을 때 표시할 문자열
        INSTANCE_NOT_FOUND: 인스턴스 조회 실패 시 표시할 문자열
    """

    DEFAULT_REGION: str = "ap-northeast-2"
    API_TIMEOUT: int = 30
    API_RETRY_COUNT: int = 3

    # 토폴로지 조회
    LB_DNS_SUFFIXES: tuple[str, ...] = ("elb.amazonaws.com", "elb.amazonaws.com.cn")
    DUALSTACK_PREFIX: str = "dualstack."
    RECORD_TYPES: tuple[str, ...] = ("A", "CNAME")
    MAX_RECORDS_PER_ZONE: int | None = None

    # TXT 레코드 반영
    TXT_RECORD_TTL: int = 60
    CHANGE_POLL_INTERVAL: float = 10.0
    CHANGE_POLL_TIMEOUT: float | None = 600.0

    # 표시용 기본값
    NOT_AVAILABLE: str = "N/A"
    INSTANCE_NOT_FOUND: str = "Instance not found"


settings = Settings()


# =============================================================================
# 로깅 설정
# =============================================================================


@dataclass
class LogConfig:
    """로깅 설정

    Attributes:
        level: 로그 레벨 이름
        format: 로그 포맷 문자열
        date_format: 날짜 포맷 문자열
    """

    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_env(cls) -> LogConfig:
        """LOG_LEVEL / LOG_FORMAT 환경변수에서 로드"""
        defaults = cls()
        return cls(
            level=os.environ.get("LOG_LEVEL", defaults.level).upper(),
            format=os.environ.get("LOG_FORMAT", defaults.format),
            date_format=defaults.date_format,
        )

    def apply(self, handler: logging.Handler | None = None) -> None:
        """root 로거에 설정 적용

        Args:
            handler: 사용할 핸들러 (None이면 stderr StreamHandler).
                RichHandler처럼 시간/레벨을 직접 그리는 핸들러는 메시지만 포맷합니다.
        """
        level = getattr(logging, self.level, logging.INFO)
        if handler is None:
            logging.basicConfig(level=level, format=self.format, datefmt=self.date_format)
            return

        handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        logging.basicConfig(level=level, handlers=[handler])


# =============================================================================
# 환경변수 헬퍼
# =============================================================================


def get_env_bool(name: str, default: bool = False) -> bool:
    """환경변수를 bool로 변환

    Args:
        name: 환경변수 이름
        default: 값이 없거나 해석할 수 없을 때의 기본값

    Returns:
        변환된 bool 값
    """
    value = os.environ.get(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False

    logger.debug(f"환경변수 {name} 값을 bool로 해석할 수 없음: {value!r}")
    return default


def get_env_int(name: str, default: int) -> int:
    """환경변수를 int로 변환 (실패 시 기본값)"""
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.debug(f"환경변수 {name} 값을 int로 해석할 수 없음: {value!r}")
        return default


def get_env_float(name: str, default: float | None) -> float | None:
    """환경변수를 float로 변환 (실패 시 기본값)"""
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.debug(f"환경변수 {name} 값을 float로 해석할 수 없음: {value!r}")
        return default


def get_default_profile() -> str | None:
    """AWS_PROFILE, AWS_DEFAULT_PROFILE 순서로 기본 프로파일 조회"""
    return os.environ.get("AWS_PROFILE") or os.environ.get("AWS_DEFAULT_PROFILE")


def get_default_region() -> str:
    """AWS_REGION, AWS_DEFAULT_REGION 순서로 기본 리전 조회"""
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or settings.DEFAULT_REGION


# =============================================================================
# 프로젝트 경로 / 버전
# =============================================================================


def get_project_root() -> Path:
    """프로젝트 루트 경로"""
    return Path(__file__).resolve().parent.parent


@lru_cache(maxsize=1)
def get_version() -> str:
    """version.txt에서 버전 문자열을 읽음 (없으면 0.0.0)"""
    version_file = get_project_root() / "version.txt"
    try:
        version = version_file.read_text(encoding="utf-8").strip()
    except OSError:
        return "0.0.0"
    return version or "0.0.0"
