"""
tests/dnsops/test_txt_record.py - TXT 레코드 반영 테스트
"""

import threading
from datetime import datetime, timezone

import pytest
from conftest import make_zone

from core.exceptions import (
    APICallError,
    PropagationTimeoutError,
    SubmissionError,
    ValidationError,
    VerificationMismatchError,
    ZoneNotFoundError,
)
from dnsops.models import ChangeAction, ChangeState, ReconcileState
from dnsops.txt_record import (
    TxtRecordReconciler,
    build_audit_comment,
    parent_zone_name,
    reconcile_many,
    reconcile_txt_record,
)

RECORD = "_acme-challenge.example.com"


class FakeClock:
    """sleep/clock 대체용 가상 시계"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def zone_client(fake_client):
    fake_client.add_zone(make_zone("example.com", "Z0EXAMPLE"))
    return fake_client


def make_reconciler(client, clock, **kwargs):
    return TxtRecordReconciler(client, sleep=clock.sleep, clock=clock, **kwargs)


class TestParentZoneName:
    """parent_zone_name 테스트"""

    def test_strips_first_label(self):
        assert parent_zone_name("_acme-challenge.example.com") == "example.com."

    def test_trailing_dot_and_case(self):
        assert parent_zone_name("_ACME-Challenge.Sub.Example.com.") == "sub.example.com."

    def test_single_label(self):
        """라벨이 하나뿐이면 빈 문자열"""
        assert parent_zone_name("localhost") == ""


class TestAuditComment:
    """build_audit_comment 테스트"""

    def test_format(self):
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        comment = build_audit_comment(ChangeAction.UPSERT, "a.example.com", when)

        assert comment == "UPSERT TXT a.example.com by dnsops at 2026-01-02T03:04:05+00:00"


class TestReconcileScenario:
    """_acme-challenge.example.com = abc123 시나리오"""

    def test_create_when_record_missing(self, zone_client, clock):
        """기존 레코드가 없으면 CREATE, TTL 60, 인용된 값"""
        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123")

        zone_id, request, comment = zone_client.submitted[0]
        assert zone_id == "Z0EXAMPLE"
        assert request.action == ChangeAction.CREATE
        assert request.ttl == 60
        assert request.encoded_value == '"abc123"'
        record_set = request.to_change_batch(comment)["Changes"][0]["ResourceRecordSet"]
        assert record_set["Type"] == "TXT"
        assert record_set["ResourceRecords"] == [{"Value": '"abc123"'}]
        assert comment.startswith(f"CREATE TXT {RECORD} by dnsops at ")

        assert outcome.applied is True
        assert outcome.final_value == "abc123"
        assert outcome.action == ChangeAction.CREATE
        assert outcome.state == ReconcileState.DONE
        assert outcome.change_id == "C0001"
        assert outcome.error is None

    def test_upsert_when_record_exists(self, zone_client, clock):
        """기존 레코드가 있으면 UPSERT"""
        zone_client.set_record_value("Z0EXAMPLE", RECORD, '"old-token"')

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123")

        assert zone_client.submitted[0][1].action == ChangeAction.UPSERT
        assert outcome.applied is True
        assert outcome.final_value == "abc123"

    def test_idempotent(self, zone_client, clock):
        """같은 값으로 두 번 반영해도 같은 결과"""
        reconciler = make_reconciler(zone_client, clock)

        first = reconciler.reconcile(RECORD, "abc123")
        second = reconciler.reconcile(RECORD, "abc123")

        assert (first.action, second.action) == (ChangeAction.CREATE, ChangeAction.UPSERT)
        assert first.final_value == second.final_value == "abc123"
        assert first.applied and second.applied

    def test_record_name_with_trailing_dot(self, zone_client, clock):
        """끝 점이 있는 이름도 같은 레코드"""
        outcome = make_reconciler(zone_client, clock).reconcile(RECORD + ".", "abc123")

        assert outcome.record_name == RECORD
        assert outcome.applied is True


class TestPolling:
    """INSYNC 대기 테스트"""

    def test_verifies_once_after_third_poll(self, zone_client, clock):
        """[PENDING, PENDING, INSYNC]이면 세 번째 폴링 후 한 번만 검증"""
        zone_client.change_states = [ChangeState.PENDING, ChangeState.PENDING, ChangeState.INSYNC]
        observed = []

        outcome = make_reconciler(
            zone_client, clock, poll_interval=10, on_poll=lambda s, n: observed.append((s.state, n))
        ).reconcile(RECORD, "abc123")

        assert outcome.applied is True
        assert outcome.polls == 3
        assert observed == [
            (ChangeState.PENDING, 1),
            (ChangeState.PENDING, 2),
            (ChangeState.INSYNC, 3),
        ]
        assert clock.sleeps == [10, 10]

        names = [name for name, _ in zone_client.calls]
        last_poll = len(names) - 1 - names[::-1].index("get_change_status")
        assert names[last_poll + 1 :] == ["get_record_value"]
        assert zone_client.count("get_change_status") == 3

    def test_timeout(self, zone_client, clock):
        """기한 안에 INSYNC가 되지 않으면 PropagationTimeoutError"""
        zone_client.change_states = [ChangeState.PENDING] * 100

        outcome = make_reconciler(zone_client, clock, poll_interval=10, timeout=25).reconcile(RECORD, "abc123")

        assert outcome.applied is False
        assert outcome.state == ReconcileState.FAILED
        assert isinstance(outcome.error, PropagationTimeoutError)
        assert outcome.change_id == "C0001"
        assert outcome.polls == 4
        assert clock.sleeps == [10, 10, 5]
        assert zone_client.count("get_record_value") == 1

    def test_no_timeout(self, zone_client, clock):
        """timeout=None이면 기한 없음"""
        zone_client.change_states = [ChangeState.PENDING] * 5

        outcome = make_reconciler(zone_client, clock, poll_interval=60, timeout=None).reconcile(RECORD, "abc123")

        assert outcome.applied is True
        assert outcome.polls == 6

    def test_cancel_before_polling(self, zone_client, clock):
        """이미 취소된 이벤트면 폴링하지 않음"""
        cancel = threading.Event()
        cancel.set()

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123", cancel=cancel)

        assert isinstance(outcome.error, PropagationTimeoutError)
        assert outcome.polls == 0
        assert len(zone_client.submitted) == 1

    def test_cancel_during_wait(self, zone_client, clock):
        """대기 중 취소되면 즉시 중단"""
        zone_client.change_states = [ChangeState.PENDING] * 10
        cancel = threading.Event()

        outcome = make_reconciler(
            zone_client, clock, poll_interval=3600, on_poll=lambda s, n: cancel.set()
        ).reconcile(RECORD, "abc123", cancel=cancel)

        assert isinstance(outcome.error, PropagationTimeoutError)
        assert outcome.polls == 1
        assert clock.sleeps == []

    def test_status_lookup_failure(self, zone_client, clock):
        """상태 조회 오류는 실패 결과"""
        error = APICallError("route53", "get_change", "NoSuchChange", "change not found")
        zone_client.failures["get_change_status"] = error

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123")

        assert outcome.applied is False
        assert outcome.error is error


class TestFailures:
    """치명적 실패 / 검증 실패"""

    def test_zone_not_found(self, fake_client, clock):
        """Zone이 없으면 제출하지 않음"""
        outcome = make_reconciler(fake_client, clock).reconcile(RECORD, "abc123")

        assert isinstance(outcome.error, ZoneNotFoundError)
        assert outcome.error.zone_name == "example.com."
        assert outcome.action is None
        assert fake_client.submitted == []

    def test_single_label_name(self, zone_client, clock):
        """상위 Zone을 계산할 수 없는 이름"""
        outcome = make_reconciler(zone_client, clock).reconcile("localhost", "abc123")

        assert isinstance(outcome.error, ZoneNotFoundError)
        assert zone_client.count("find_hosted_zone") == 0

    def test_submission_rejected(self, zone_client, clock):
        """제출 거부는 재시도 없이 SubmissionError"""
        cause = APICallError("route53", "change_resource_record_sets", "InvalidChangeBatch", "bad value")
        zone_client.failures["submit_change"] = cause

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123")

        assert isinstance(outcome.error, SubmissionError)
        assert outcome.error.cause is cause
        assert outcome.action == ChangeAction.CREATE
        assert outcome.change_id is None
        assert zone_client.count("submit_change") == 1
        assert zone_client.count("get_change_status") == 0

    def test_verification_mismatch(self, zone_client, clock):
        """반영 후 읽은 값이 다르면 VerificationMismatchError"""
        zone_client.applied_value = '"someone-else"'

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "abc123")

        assert outcome.applied is False
        assert isinstance(outcome.error, VerificationMismatchError)
        assert outcome.final_value == "someone-else"
        assert outcome.change_id == "C0001"
        assert outcome.state == ReconcileState.FAILED

    def test_raise_for_error(self, fake_client, clock):
        """raise_for_error는 원인 예외를 raise"""
        outcome = make_reconciler(fake_client, clock).reconcile(RECORD, "abc123")

        with pytest.raises(ZoneNotFoundError):
            outcome.raise_for_error()

    def test_invalid_arguments(self, fake_client):
        """음수 간격/기한은 거부"""
        with pytest.raises(ValidationError):
            TxtRecordReconciler(fake_client, poll_interval=-1)
        with pytest.raises(ValidationError):
            TxtRecordReconciler(fake_client, timeout=-5)


class TestValueQuoting:
    """인용이 필요한 값"""

    def test_quotes_and_backslashes(self, zone_client, clock):
        """큰따옴표/백슬래시가 포함된 값"""
        value = 'v=spf1 "quoted" \\ end'

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, value)

        assert zone_client.submitted[0][1].encoded_value == '"v=spf1 \\"quoted\\" \\\\ end"'
        assert outcome.applied is True
        assert outcome.final_value == value

    def test_long_value_is_split(self, zone_client, clock):
        """255자를 넘는 값은 여러 character-string으로 분할"""
        value = "k" * 300

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, value)

        assert zone_client.submitted[0][1].encoded_value == f'"{"k" * 255}" "{"k" * 45}"'
        assert outcome.final_value == value

    def test_non_ascii_value_verified(self, zone_client, clock):
        """Route 53이 8진수로 돌려준 UTF-8 값도 일치로 검증"""
        zone_client.applied_value = '"caf\\303\\251 \\352\\260\\200"'

        outcome = make_reconciler(zone_client, clock).reconcile(RECORD, "café 가")

        assert zone_client.submitted[0][1].encoded_value == '"caf\\303\\251 \\352\\260\\200"'
        assert outcome.applied is True
        assert outcome.final_value == "café 가"


class TestReconcileMany:
    """reconcile_many / reconcile_txt_record 테스트"""

    def test_outcomes_in_input_order(self, zone_client):
        """결과는 입력 순서"""
        records = [(f"_acme-challenge.{n}.example.com", f"token-{n}") for n in ("a", "b", "c")]
        zone_client.add_zone(make_zone("a.example.com", "Z0A"))
        zone_client.add_zone(make_zone("b.example.com", "Z0B"))
        zone_client.add_zone(make_zone("c.example.com", "Z0C"))

        outcomes = reconcile_many(zone_client, records, max_workers=3, poll_interval=0)

        assert [o.record_name for o in outcomes] == [name for name, _ in records]
        assert [o.final_value for o in outcomes] == ["token-a", "token-b", "token-c"]
        assert all(o.applied for o in outcomes)

    def test_partial_failure(self, zone_client):
        """일부 실패는 다른 레코드에 영향 없음"""
        outcomes = reconcile_many(zone_client, [(RECORD, "abc123"), ("_x.missing.test", "v")], poll_interval=0)

        assert outcomes[0].applied is True
        assert isinstance(outcomes[1].error, ZoneNotFoundError)

    def test_duplicate_names_rejected(self, zone_client):
        """같은 레코드를 두 번 반영할 수 없음"""
        with pytest.raises(ValidationError):
            reconcile_many(zone_client, [(RECORD, "a"), (RECORD.upper() + ".", "b")])

    def test_shortcut(self, zone_client, clock):
        """reconcile_txt_record 단축 함수"""
        outcome = reconcile_txt_record(zone_client, RECORD, "abc123", sleep=clock.sleep, clock=clock, ttl=30)

        assert outcome.applied is True
        assert zone_client.submitted[0][1].ttl == 30
