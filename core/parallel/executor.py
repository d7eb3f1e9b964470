"""
core/parallel/executor.py - 병렬 실행기

서로 독립적인 작업(도메인별 토폴로지 조회, 레코드별 TXT 반영)을
ThreadPoolExecutor로 병렬 처리합니다. 결과는 완료 순서와 무관하게
항상 입력 순서로 반환하므로 순차 실행과 관측 결과가 같습니다.

주요 구성 요소:
- ParallelConfig: 병렬 실행 설정 (워커 수)
- parallel_map: 입력 순서를 보존하는 병렬 map

Example:
    from core.parallel import parallel_map

    result = parallel_map(domains, resolve_domain, identifier=str, config=ParallelConfig(max_workers=4))
    rows = result.get_flat_data()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TypeVar

from .decorators import categorize_error, get_error_code
from .types import ParallelExecutionResult, TaskError, TaskResult

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


def _clear_exception_chain(e: BaseException) -> None:
    """traceback + chained exception 메모리 누수 방지"""
    e.__traceback__ = None
    if e.__context__ is not None:
        e.__context__.__traceback__ = None
    if e.__cause__ is not None:
        e.__cause__.__traceback__ = None


@dataclass
class ParallelConfig:
    """병렬 실행 설정

    Attributes:
        max_workers: 최대 동시 스레드 수 (1이면 현재 스레드에서 순차 실행, 최대 50)
    """

    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.max_workers > 50:
            self.max_workers = 50


def _run_single(func: Callable[[S], T], item: S, identifier: str) -> TaskResult[T]:
    """단일 작업 실행 (예외를 TaskResult로 변환)"""
    start_time = time.monotonic()
    try:
        data = func(item)
    except Exception as e:
        logger.warning(f"작업 실패 [{identifier}]: {e}")
        _clear_exception_chain(e)
        return TaskResult(
            identifier=identifier,
            success=False,
            error=TaskError(
                identifier=identifier,
                category=categorize_error(e),
                error_code=get_error_code(e),
                message=str(e),
                original_exception=e,
            ),
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

    return TaskResult(
        identifier=identifier,
        success=True,
        data=data,
        duration_ms=(time.monotonic() - start_time) * 1000,
    )


def parallel_map(
    items: Sequence[S],
    func: Callable[[S], T],
    identifier: Callable[[S], str] = str,
    config: ParallelConfig | None = None,
    on_complete: Callable[[TaskResult[T]], None] | None = None,
) -> ParallelExecutionResult[T]:
    """items 각각에 func를 실행하고 입력 순서대로 결과를 반환

    Args:
        items: 작업 입력 목록
        func: item -> T 작업 함수 (예외는 실패 결과로 기록됨)
        identifier: item을 로그/결과용 식별자로 변환하는 함수
        config: 병렬 실행 설정 (None이면 순차 실행)
        on_complete: 각 작업 완료 시 호출되는 콜백 (진행 표시용)

    Returns:
        ParallelExecutionResult[T]: 입력 순서를 보존한 전체 결과
    """
    config = config or ParallelConfig()
    if not items:
        return ParallelExecutionResult()

    start_time = time.monotonic()
    results: list[TaskResult[T] | None] = [None] * len(items)

    if config.max_workers == 1 or len(items) == 1:
        for index, item in enumerate(items):
            result = _run_single(func, item, identifier(item))
            results[index] = result
            if on_complete:
                on_complete(result)
    else:
        workers = min(config.max_workers, len(items))
        logger.info(f"병렬 실행 시작: {len(items)}개 작업, max_workers={workers}")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(_run_single, func, item, identifier(item)): index for index, item in enumerate(items)}

            for future in as_completed(futures):
                result = future.result()
                results[futures[future]] = result
                if on_complete:
                    on_complete(result)

    exec_result = ParallelExecutionResult(results=tuple(r for r in results if r is not None))
    total_time = (time.monotonic() - start_time) * 1000
    logger.info(f"실행 완료: 성공 {exec_result.success_count}, 실패 {exec_result.error_count}, 총 {total_time:.0f}ms")

    return exec_result
