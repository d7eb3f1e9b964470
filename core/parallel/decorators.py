"""
core/parallel/decorators.py - AWS API 에러 분류 및 재시도 유틸리티

AWS API 호출의 에러 분류, 재시도 가능 여부 판단,
지수 백오프 재시도 데코레이터를 제공합니다.

botocore의 adaptive retry가 클라이언트 레벨에서 먼저 재시도하고,
with_retry는 그 위에서 스로틀링/일시 장애가 계속될 때 한 번 더
제한된 횟수만큼 재시도합니다.

주요 구성 요소:
- RetryConfig: 재시도 설정 (지수 백오프 + 지터)
- categorize_error: 예외를 ErrorCategory로 분류
- get_error_code: 예외에서 에러 코드 추출
- is_retryable: 재시도 가능 여부 판단
- with_retry: 재시도 가능 에러만 재시도하고 나머지는 그대로 raise
"""

import functools
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from core.config import settings
from core.exceptions import is_access_denied, is_not_found, is_throttling

from .errors import categorize_error_code
from .types import ErrorCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """재시도 설정

    Attributes:
        max_retries: 최대 재시도 횟수 (0이면 재시도 안함)
        base_delay: 기본 대기 시간 (초)
        max_delay: 최대 대기 시간 (초)
        exponential_base: 지수 백오프 밑수
        jitter: 지터 사용 여부 (대기 시간에 랜덤성 추가)
    """

    max_retries: int = settings.API_RETRY_COUNT
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    def get_delay(self, attempt: int) -> float:
        """재시도 대기 시간 계산

        Exponential backoff with optional jitter.

        Args:
            attempt: 현재 시도 횟수 (0부터 시작)

        Returns:
            대기 시간 (초)
        """
        delay = self.base_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Full jitter: [0, delay]
            delay = random.uniform(0, delay)

        return delay


# 기본 재시도 설정
DEFAULT_RETRY_CONFIG = RetryConfig()

# 재시도 가능한 AWS 에러 코드
RETRYABLE_ERROR_CODES: set[str] = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RateExceeded",
    "PriorRequestNotComplete",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalError",
    "InternalFailure",
    "InternalServiceError",
    "RequestTimeout",
    "RequestTimeoutException",
}


def categorize_error(error: Exception) -> ErrorCategory:
    """예외 객체를 분석하여 ErrorCategory로 분류

    ClientError의 경우 response에서 에러 코드를 추출하고,
    네트워크/타임아웃 에러는 타입으로 분류합니다.

    Args:
        error: 분류할 예외

    Returns:
        에러 카테고리
    """
    if is_throttling(error):
        return ErrorCategory.THROTTLING
    if is_access_denied(error):
        return ErrorCategory.ACCESS_DENIED
    if is_not_found(error):
        return ErrorCategory.NOT_FOUND

    response = getattr(error, "response", None)
    if isinstance(response, dict):
        error_code = response.get("Error", {}).get("Code", "")

        if error_code in ("ExpiredToken", "ExpiredTokenException"):
            return ErrorCategory.EXPIRED_TOKEN

        return categorize_error_code(error_code)

    # 네트워크 에러 (TimeoutError는 OSError의 하위 클래스이므로 먼저 확인)
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK

    return ErrorCategory.UNKNOWN


def get_error_code(error: Exception) -> str:
    """예외 객체에서 에러 코드 문자열 추출

    ClientError의 경우 response에서 Code를 추출하고,
    그 외에는 예외 클래스명을 반환합니다.
    """
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        code: str = response.get("Error", {}).get("Code", "Unknown")
        return code
    return error.__class__.__name__


def is_retryable(error: Exception) -> bool:
    """재시도 가능한 에러인지 확인

    RETRYABLE_ERROR_CODES에 포함된 에러 코드이거나
    네트워크/타임아웃 에러인 경우 True를 반환합니다.
    botocore의 EndpointConnectionError, ReadTimeoutError 등은
    ClientError가 아니므로 클래스 이름으로 판단합니다.
    """
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        error_code = response.get("Error", {}).get("Code", "")
        return error_code in RETRYABLE_ERROR_CODES

    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return True

    name = error.__class__.__name__
    return name.endswith("ConnectionError") or name.endswith("TimeoutError")


def with_retry(
    max_retries: int = DEFAULT_RETRY_CONFIG.max_retries,
    base_delay: float = DEFAULT_RETRY_CONFIG.base_delay,
    max_delay: float = DEFAULT_RETRY_CONFIG.max_delay,
    retry_config: RetryConfig | None = None,
    sleep: Callable[[float], Any] = time.sleep,
    retry_on: Callable[[Exception], bool] = is_retryable,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """재시도 가능 에러에 대해 지수 백오프로 재시도하는 데코레이터

    재시도 불가 에러는 즉시 raise하고, 최대 재시도 횟수를 넘기면
    마지막 예외를 그대로 raise합니다.

    Args:
        retry_on: 재시도 여부 판단 함수 (기본 is_retryable).
            멱등하지 않은 호출은 is_throttling처럼 요청이 처리되지 않았음이
            확실한 에러로 좁힙니다.

    Example:
        @with_retry(max_retries=3)
        def list_zones():
            return route53.list_hosted_zones_by_name(DNSName="example.com")
    """
    config = retry_config or RetryConfig(max_retries=max_retries, base_delay=base_delay, max_delay=max_delay)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            name = getattr(func, "__name__", "call")
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not retry_on(e) or attempt >= config.max_retries:
                        raise
                    delay = config.get_delay(attempt)
                    attempt += 1
                    logger.debug(
                        f"{name} 재시도 {attempt}/{config.max_retries} ({get_error_code(e)}), {delay:.2f}초 대기"
                    )
                    sleep(delay)

        return wrapper

    return decorator
