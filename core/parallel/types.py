"""
core/parallel/types.py - 병렬 실행 결과 타입

작업 단위 결과(TaskResult)와 전체 실행 결과(ParallelExecutionResult)를
정의합니다. 결과는 입력 순서를 보존합니다.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCategory(Enum):
    """에러 카테고리"""

    THROTTLING = "throttling"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    TIMEOUT = "timeout"
    EXPIRED_TOKEN = "expired_token"
    INVALID_REQUEST = "invalid_request"
    SERVICE_ERROR = "service_error"
    UNKNOWN = "unknown"


_RETRYABLE_CATEGORIES = {
    ErrorCategory.THROTTLING,
    ErrorCategory.NETWORK,
    ErrorCategory.TIMEOUT,
    ErrorCategory.SERVICE_ERROR,
}


@dataclass
class TaskError:
    """작업 실패 정보

    Attributes:
        identifier: 작업 식별자 (도메인, 레코드 이름 등)
        category: 에러 카테고리
        error_code: 에러 코드 (ClientError 코드 또는 예외 클래스명)
        message: 에러 메시지
        retries: 수행한 재시도 횟수
        original_exception: 원본 예외
        timestamp: 발생 시각
    """

    identifier: str
    category: ErrorCategory
    error_code: str
    message: str
    retries: int = 0
    original_exception: BaseException | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def is_retryable(self) -> bool:
        """재시도 가능한 에러인지"""
        return self.category in _RETRYABLE_CATEGORIES

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (로깅/직렬화용)"""
        return {
            "identifier": self.identifier,
            "category": self.category.value,
            "error_code": self.error_code,
            "message": self.message,
            "retries": self.retries,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        return f"[{self.identifier}] {self.error_code}: {self.message}"


@dataclass
class TaskResult(Generic[T]):
    """단일 작업 결과"""

    identifier: str
    success: bool
    data: T | None = None
    error: TaskError | None = None
    duration_ms: float = 0.0

    def __str__(self) -> str:
        status = "OK" if self.success else "FAIL"
        return f"[{self.identifier}] {status} ({self.duration_ms:.0f}ms)"


@dataclass(frozen=True)
class ParallelExecutionResult(Generic[T]):
    """전체 실행 결과 (입력 순서 보존)"""

    results: tuple[TaskResult[T], ...] = ()

    def __iter__(self) -> Iterator[TaskResult[T]]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def get_data(self) -> list[T]:
        """성공한 작업의 데이터 목록 (None 제외)"""
        return [r.data for r in self.results if r.success and r.data is not None]

    def get_flat_data(self) -> list[Any]:
        """리스트 데이터를 평탄화하여 반환"""
        flat: list[Any] = []
        for data in self.get_data():
            if isinstance(data, (list, tuple)):
                flat.extend(data)
            else:
                flat.append(data)
        return flat

    def get_errors(self) -> list[TaskError]:
        return [r.error for r in self.results if r.error is not None]

    def get_error_summary(self) -> str:
        """에러 카테고리별 건수 요약"""
        errors = self.get_errors()
        if not errors:
            return "에러 없음"

        by_category: dict[str, int] = {}
        for e in errors:
            by_category[e.category.value] = by_category.get(e.category.value, 0) + 1

        parts = [f"{k}: {v}건" for k, v in sorted(by_category.items())]
        return f"에러 {len(errors)}건 ({', '.join(parts)})"
