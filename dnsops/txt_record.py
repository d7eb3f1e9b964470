"""
dnsops/txt_record.py - TXT 레코드 반영 (생성/갱신 → 전파 대기 → 검증)

원하는 TXT 레코드 이름/값을 Route 53에 반영하고, 변경이 INSYNC 상태가
될 때까지 기다린 뒤 실제 값이 요청 값과 같은지 확인합니다.

상태 머신:
    DECIDING ──> SUBMITTING ──> POLLING ──> VERIFYING ──> DONE
        │             │             │             │
        └─────────────┴─────────────┴─────────────┴──> FAILED

    DECIDING: 레코드 이름의 첫 라벨을 뗀 나머지로 Hosted Zone을 찾고,
              기존 TXT 레코드가 있으면 UPSERT, 없으면 CREATE
    SUBMITTING: TTL 60, 인용된 값, 감사용 Comment로 변경 제출 (실패 시 재시도 없음)
    POLLING: get_change가 INSYNC가 될 때까지 고정 간격 폴링 (timeout / cancel 지원)
    VERIFYING: 값을 다시 읽어 인용 해제 후 요청 값과 바이트 단위 비교

모든 종료 상태는 예외 대신 ReconcileOutcome으로 반환합니다.
예외가 필요하면 outcome.raise_for_error()를 사용합니다.

Usage:
    from dnsops.txt_record import TxtRecordReconciler

    outcome = TxtRecordReconciler(client, timeout=300).reconcile("_acme-challenge.example.com", "abc123")
    if not outcome.applied:
        print(outcome.error)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from core.config import settings
from core.exceptions import (
    DnsOpsError,
    PropagationTimeoutError,
    SubmissionError,
    ValidationError,
    VerificationMismatchError,
    ZoneNotFoundError,
)
from core.parallel import ParallelConfig, parallel_map

from .models import (
    ChangeAction,
    ChangeRequest,
    ChangeStatus,
    ReconcileOutcome,
    ReconcileState,
    strip_root_dot,
    unquote_txt_value,
)
from .resource_client import ResourceClient

logger = logging.getLogger(__name__)

RECORD_TYPE = "TXT"

PollObserver = Callable[[ChangeStatus, int], None]


def parent_zone_name(record_name: str) -> str:
    """레코드 이름에서 첫 라벨을 뗀 Zone 이름 (끝 점 포함, 없으면 빈 문자열)

    Example:
        parent_zone_name("_acme-challenge.example.com")  # "example.com."
    """
    name = strip_root_dot(record_name.strip().lower())
    if "." not in name:
        return ""
    return f"{name.split('.', 1)[1]}."


def build_audit_comment(action: ChangeAction, record_name: str, when: datetime | None = None) -> str:
    """변경 요청에 남길 감사용 Comment"""
    when = when or datetime.now(timezone.utc)
    return f"{action.value} {RECORD_TYPE} {record_name} by dnsops at {when.isoformat(timespec='seconds')}"


class TxtRecordReconciler:
    """TXT 레코드 반영기

    인스턴스는 상태를 공유하지 않으므로 서로 다른 레코드에 대해
    여러 스레드에서 동시에 reconcile()을 호출해도 됩니다.
    """

    def __init__(
        self,
        client: ResourceClient,
        poll_interval: float = settings.CHANGE_POLL_INTERVAL,
        timeout: float | None = settings.CHANGE_POLL_TIMEOUT,
        ttl: int = settings.TXT_RECORD_TTL,
        on_poll: PollObserver | None = None,
        sleep: Callable[[float], Any] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """초기화

        Args:
            client: 외부 조회/변경 클라이언트
            poll_interval: 변경 상태 폴링 간격 (초)
            timeout: INSYNC 대기 최대 시간 (초, None이면 무제한)
            ttl: 레코드 TTL (초)
            on_poll: 폴링마다 (ChangeStatus, 폴링 횟수)로 호출되는 콜백
            sleep: 대기 함수 (cancel 이벤트가 없을 때 사용)
            clock: 단조 시계 함수
        """
        if poll_interval < 0:
            raise ValidationError("poll_interval", poll_interval, ">= 0")
        if timeout is not None and timeout < 0:
            raise ValidationError("timeout", timeout, ">= 0 또는 None")

        self.client = client
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.ttl = ttl
        self.on_poll = on_poll
        self._sleep = sleep
        self._clock = clock

    def reconcile(
        self,
        record_name: str,
        record_value: str,
        cancel: threading.Event | None = None,
    ) -> ReconcileOutcome:
        """TXT 레코드를 요청 값으로 반영

        Args:
            record_name: 레코드 이름 (예: "_acme-challenge.example.com")
            record_value: 인용하지 않은 원래 값
            cancel: 설정되면 폴링을 즉시 중단하는 이벤트

        Returns:
            ReconcileOutcome (applied=True이면 검증까지 성공)
        """
        name = strip_root_dot(record_name.strip().lower())
        state = ReconcileState.DECIDING
        action: ChangeAction | None = None
        change_id: str | None = None
        polls = 0

        def failed(error: Exception, final_value: str | None = None) -> ReconcileOutcome:
            logger.error(f"[{name}] {state.value} 단계 실패: {error}")
            return ReconcileOutcome(
                record_name=name,
                requested_value=record_value,
                applied=False,
                final_value=final_value,
                action=action,
                change_id=change_id,
                state=ReconcileState.FAILED,
                error=error,
                polls=polls,
            )

        # DECIDING
        zone_name = parent_zone_name(name)
        try:
            zone = self.client.find_hosted_zone(zone_name) if zone_name else None
            if zone is None:
                return failed(ZoneNotFoundError(name, zone_name or name))
            existing = self.client.get_record_value(zone.zone_id, name, RECORD_TYPE)
        except DnsOpsError as e:
            return failed(e)

        action = ChangeAction.UPSERT if existing is not None else ChangeAction.CREATE
        logger.info(f"[{name}] Zone {zone.name} ({zone.zone_id}), 동작: {action.value}")

        # SUBMITTING
        state = ReconcileState.SUBMITTING
        request = ChangeRequest(action=action, record_name=name, value=record_value, ttl=self.ttl)
        try:
            status = self.client.submit_change(zone.zone_id, request, build_audit_comment(action, name))
        except DnsOpsError as e:
            return failed(SubmissionError(name, e))

        change_id = status.change_id
        logger.info(f"[{name}] 변경 제출 완료: {change_id}")

        # POLLING
        state = ReconcileState.POLLING
        started = self._clock()
        deadline = None if self.timeout is None else started + self.timeout
        while True:
            if cancel is not None and cancel.is_set():
                return failed(PropagationTimeoutError(name, change_id, self._clock() - started))

            try:
                status = self.client.get_change_status(change_id)
            except DnsOpsError as e:
                return failed(e)
            polls += 1

            if self.on_poll:
                self.on_poll(status, polls)
            if status.is_insync:
                break

            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    return failed(PropagationTimeoutError(name, change_id, self._clock() - started))
                wait = min(wait, remaining)

            logger.debug(f"[{name}] {change_id} {status.state.value}, {wait:.1f}초 후 재확인 ({polls}회)")
            if self._wait(wait, cancel):
                return failed(PropagationTimeoutError(name, change_id, self._clock() - started))

        logger.info(f"[{name}] {change_id} INSYNC ({polls}회 폴링)")

        # VERIFYING
        state = ReconcileState.VERIFYING
        try:
            raw = self.client.get_record_value(zone.zone_id, name, RECORD_TYPE)
        except DnsOpsError as e:
            return failed(e)

        final_value = unquote_txt_value(raw) if raw is not None else None
        if final_value is None or final_value.encode("utf-8") != record_value.encode("utf-8"):
            return failed(VerificationMismatchError(name, record_value, final_value), final_value)

        logger.info(f"[{name}] 반영 및 검증 완료")
        return ReconcileOutcome(
            record_name=name,
            requested_value=record_value,
            applied=True,
            final_value=final_value,
            action=action,
            change_id=change_id,
            state=ReconcileState.DONE,
            polls=polls,
        )

    def _wait(self, seconds: float, cancel: threading.Event | None) -> bool:
        """대기, 취소되면 True"""
        if cancel is not None:
            return cancel.wait(seconds)
        self._sleep(seconds)
        return False


def reconcile_txt_record(
    client: ResourceClient,
    record_name: str,
    record_value: str,
    cancel: threading.Event | None = None,
    **options: Any,
) -> ReconcileOutcome:
    """TxtRecordReconciler(client, **options).reconcile() 단축 함수"""
    return TxtRecordReconciler(client, **options).reconcile(record_name, record_value, cancel=cancel)


def reconcile_many(
    client: ResourceClient,
    records: Sequence[tuple[str, str]],
    max_workers: int = 1,
    cancel: threading.Event | None = None,
    **options: Any,
) -> list[ReconcileOutcome]:
    """서로 다른 여러 TXT 레코드를 반영 (입력 순서대로 결과 반환)

    Args:
        client: 외부 조회/변경 클라이언트
        records: (레코드 이름, 값) 목록. 이름은 중복될 수 없음
        max_workers: 동시에 반영할 레코드 수
        cancel: 모든 폴링을 중단하는 이벤트
        **options: TxtRecordReconciler 생성 인자

    Raises:
        ValidationError: 같은 레코드 이름이 두 번 이상 포함된 경우
    """
    names = [strip_root_dot(name.strip().lower()) for name, _ in records]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValidationError("records", ", ".join(duplicates), "중복되지 않는 레코드 이름")

    reconciler = TxtRecordReconciler(client, **options)
    result = parallel_map(
        list(records),
        lambda item: reconciler.reconcile(item[0], item[1], cancel=cancel),
        identifier=lambda item: item[0],
        config=ParallelConfig(max_workers=max_workers),
    )

    outcomes: list[ReconcileOutcome] = []
    for (name, value), task in zip(records, result):
        if task.success and task.data is not None:
            outcomes.append(task.data)
        else:
            error = task.error.original_exception if task.error else None
            outcomes.append(
                ReconcileOutcome(
                    record_name=name,
                    requested_value=value,
                    applied=False,
                    state=ReconcileState.FAILED,
                    error=error if isinstance(error, Exception) else None,
                )
            )
    return outcomes
