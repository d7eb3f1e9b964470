"""
core/parallel - AWS 호출 및 병렬 처리 모듈

AWS API 호출의 재시도, 부분 실패 허용 에러 수집, 독립 작업의
병렬 실행을 제공합니다.

주요 구성 요소:
- get_client: adaptive retry가 설정된 boto3 client
- with_retry: 스로틀링/일시 장애에 대한 제한된 지수 백오프 재시도
- ErrorCollector / try_or_default: 실패를 기본값으로 대체하며 에러 수집
- parallel_map: 입력 순서를 보존하는 병렬 실행

Example:
    from core.parallel import ErrorCollector, try_or_default

    collector = ErrorCollector("ec2")
    instance = try_or_default(
        lambda: client.get_instance("i-0abc"),
        default=None,
        collector=collector,
        scope="app.example.com",
        operation="describe_instances",
    )
"""

from .client import get_client
from .decorators import RetryConfig, categorize_error, is_retryable, with_retry
from .errors import (
    CollectedError,
    ErrorCollector,
    ErrorSeverity,
    try_or_default,
)
from .executor import ParallelConfig, parallel_map
from .types import ErrorCategory, ParallelExecutionResult, TaskError, TaskResult

__all__: list[str] = [
    # Executor
    "ParallelConfig",
    "parallel_map",
    # Client (retry 적용)
    "get_client",
    # Retry
    "RetryConfig",
    "categorize_error",
    "is_retryable",
    "with_retry",
    # Error handling
    "ErrorCollector",
    "ErrorSeverity",
    "CollectedError",
    "try_or_default",
    # Types
    "ErrorCategory",
    "TaskError",
    "TaskResult",
    "ParallelExecutionResult",
]
