"""
tests/conftest.py - pytest 공통 픽스처

AWS API 모킹과 테스트 헬퍼를 제공합니다.

Usage:
    def test_something(fake_client, website_client):
        # fake_client: 비어 있는 인메모리 ResourceClient
        # website_client: app.example.com 웹사이트 하나가 등록된 ResourceClient
        pass
"""

import os
import sys
import threading
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from dnsops.models import (  # noqa: E402
    ChangeRequest,
    ChangeState,
    ChangeStatus,
    ComputeInstance,
    DnsRecord,
    DnsZone,
    LoadBalancer,
    TargetGroup,
    TargetHealthEntry,
    normalize_zone_name,
    strip_root_dot,
)

# =============================================================================
# 환경 설정
# =============================================================================


@pytest.fixture(autouse=True)
def setup_test_environment():
    """테스트 환경 설정"""
    # 테스트용 환경 변수 설정
    os.environ.setdefault("AWS_DEFAULT_REGION", "ap-northeast-2")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

    yield


# =============================================================================
# AWS 모킹 픽스처
# =============================================================================


@pytest.fixture
def mock_boto3_session():
    """boto3.Session 모킹"""
    with patch("boto3.Session") as mock_session_class:
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session

        # 기본 클라이언트 설정
        mock_session.client.return_value = MagicMock()
        mock_session.region_name = "ap-northeast-2"

        yield mock_session


def create_mock_client_error(
    error_code: str,
    error_message: str = "Test error",
    operation: str = "TestOperation",
) -> Exception:
    """ClientError 생성 헬퍼"""
    from botocore.exceptions import ClientError

    return ClientError(
        {
            "Error": {
                "Code": error_code,
                "Message": error_message,
            }
        },
        operation,
    )


# =============================================================================
# 모델 팩토리
# =============================================================================


def make_zone(name: str = "example.com", zone_id: str = "Z0EXAMPLE", is_private: bool = False) -> DnsZone:
    return DnsZone(zone_id=zone_id, name=normalize_zone_name(name), is_private=is_private)


def make_record(name: str, target: str | None, record_type: str = "CNAME") -> DnsRecord:
    """Alias/CNAME 레코드 생성 (target이 None이면 일반 A 레코드)"""
    if target is None:
        return DnsRecord(name=name, record_type=record_type, values=("192.0.2.10",), ttl=300)
    return DnsRecord(name=name, record_type=record_type, alias_target=target, values=(target,), ttl=300)


def make_load_balancer(
    name: str = "mylb",
    dns_name: str = "mylb-1234.us-east-1.elb.amazonaws.com",
    scheme: str = "internet-facing",
    kind: str = "application",
) -> LoadBalancer:
    arn = f"arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/{name}/50dc6c495c0c9188"
    return LoadBalancer(arn=arn, name=name, dns_name=dns_name, scheme=scheme, kind=kind)


def make_target_group(name: str = "web-tg") -> TargetGroup:
    arn = f"arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/{name}/73e2d6bc24d8a067"
    return TargetGroup(arn=arn, name=name)


def make_target(target_id: str = "i-0abc", port: int | None = 80, state: str = "healthy") -> TargetHealthEntry:
    return TargetHealthEntry(target_id=target_id, port=port, health_state=state)


def make_instance(
    instance_id: str = "i-0abc",
    name_tag: str | None = "web-1",
    private_address: str | None = "10.0.1.5",
) -> ComputeInstance:
    return ComputeInstance(instance_id=instance_id, name_tag=name_tag, private_address=private_address)


# =============================================================================
# 인메모리 ResourceClient
# =============================================================================


class FakeResourceClient:
    """테스트용 인메모리 ResourceClient

    failures에 메서드 이름 → 예외를 넣으면 해당 메서드 호출 시 raise합니다.
    change_states는 get_change_status가 순서대로 반환할 상태이며,
    모두 소진되면 INSYNC를 반환합니다.
    """

    def __init__(self):
        self.zones: dict[str, DnsZone] = {}
        self.records: dict[str, list[DnsRecord]] = {}
        self.addresses: dict[str, tuple[str, ...]] = {}
        self.load_balancers: dict[str, LoadBalancer] = {}
        self.target_groups: dict[str, list[TargetGroup]] = {}
        self.target_health: dict[str, list[TargetHealthEntry]] = {}
        self.instances: dict[str, ComputeInstance] = {}
        self.security_policies: dict[str, str] = {}
        self.record_values: dict[tuple[str, str, str], str] = {}
        self.change_states: list[ChangeState] = []
        self.applied_value: str | None = None
        self.submitted: list[tuple[str, ChangeRequest, str]] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # 데이터 등록 헬퍼
    # -------------------------------------------------------------------------

    def add_zone(self, zone: DnsZone, records: list[DnsRecord] | None = None) -> DnsZone:
        self.zones[normalize_zone_name(zone.name)] = zone
        self.records.setdefault(zone.zone_id, []).extend(records or [])
        return zone

    def add_load_balancer(
        self,
        lb: LoadBalancer,
        target_groups: list[TargetGroup] | None = None,
        addresses: tuple[str, ...] = (),
        security_policy: str | None = None,
    ) -> LoadBalancer:
        self.load_balancers[lb.dns_name.lower()] = lb
        self.target_groups[lb.arn] = list(target_groups or [])
        self.addresses[lb.dns_name.lower()] = addresses
        if security_policy:
            self.security_policies[lb.arn] = security_policy
        return lb

    def add_targets(self, target_group: TargetGroup, targets: list[TargetHealthEntry]) -> None:
        self.target_health[target_group.arn] = list(targets)

    def add_instance(self, instance: ComputeInstance) -> None:
        self.instances[instance.instance_id] = instance

    def set_record_value(self, zone_id: str, name: str, raw_value: str, record_type: str = "TXT") -> None:
        self.record_values[(zone_id, strip_root_dot(name.lower()), record_type)] = raw_value

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _record(self, method: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((method, args))
        if method in self.failures:
            raise self.failures[method]

    # -------------------------------------------------------------------------
    # ResourceClient
    # -------------------------------------------------------------------------

    def find_hosted_zone(self, domain: str) -> DnsZone | None:
        self._record("find_hosted_zone", domain)
        return self.zones.get(normalize_zone_name(domain))

    def list_records(self, zone_id: str, max_records: int | None = None) -> list[DnsRecord]:
        self._record("list_records", zone_id, max_records)
        records = list(self.records.get(zone_id, []))
        return records[:max_records] if max_records is not None else records

    def resolve_addresses(self, hostname: str) -> tuple[str, ...]:
        self._record("resolve_addresses", hostname)
        return self.addresses.get(hostname.lower(), ())

    def find_load_balancer(self, dns_name: str) -> LoadBalancer | None:
        self._record("find_load_balancer", dns_name)
        return self.load_balancers.get(strip_root_dot(dns_name).lower())

    def list_target_groups(self, load_balancer_arn: str) -> list[TargetGroup]:
        self._record("list_target_groups", load_balancer_arn)
        return list(self.target_groups.get(load_balancer_arn, []))

    def list_target_health(self, target_group_arn: str) -> list[TargetHealthEntry]:
        self._record("list_target_health", target_group_arn)
        return list(self.target_health.get(target_group_arn, []))

    def get_instance(self, instance_id: str) -> ComputeInstance | None:
        self._record("get_instance", instance_id)
        return self.instances.get(instance_id)

    def get_security_policy(self, load_balancer_arn: str) -> str | None:
        self._record("get_security_policy", load_balancer_arn)
        return self.security_policies.get(load_balancer_arn)

    def get_record_value(self, zone_id: str, record_name: str, record_type: str = "TXT") -> str | None:
        self._record("get_record_value", zone_id, record_name, record_type)
        return self.record_values.get((zone_id, strip_root_dot(record_name.lower()), record_type))

    def submit_change(self, zone_id: str, request: ChangeRequest, comment: str) -> ChangeStatus:
        self._record("submit_change", zone_id, request, comment)
        with self._lock:
            self.submitted.append((zone_id, request, comment))
            change_id = f"C{len(self.submitted):04d}"
        stored = self.applied_value if self.applied_value is not None else request.encoded_value
        self.set_record_value(zone_id, request.record_name, stored, request.record_type)
        return ChangeStatus(change_id=change_id, state=ChangeState.PENDING)

    def get_change_status(self, change_id: str) -> ChangeStatus:
        self._record("get_change_status", change_id)
        with self._lock:
            state = self.change_states.pop(0) if self.change_states else ChangeState.INSYNC
        return ChangeStatus(change_id=change_id, state=state)


@pytest.fixture
def fake_client():
    """비어 있는 FakeResourceClient"""
    return FakeResourceClient()


@pytest.fixture
def website_client(fake_client):
    """example.com에 app.example.com → mylb → web-tg → i-0abc (web-1, 10.0.1.5)가 등록된 클라이언트"""
    fake_client.add_zone(
        make_zone("example.com", "Z0EXAMPLE"),
        [make_record("app.example.com", "mylb-1234.us-east-1.elb.amazonaws.com.")],
    )
    tg = make_target_group("web-tg")
    fake_client.add_load_balancer(
        make_load_balancer(),
        target_groups=[tg],
        addresses=("203.0.113.10", "203.0.113.11"),
        security_policy="ELBSecurityPolicy-TLS13-1-2-2021-06",
    )
    fake_client.add_targets(tg, [make_target("i-0abc", 80)])
    fake_client.add_instance(make_instance())
    return fake_client


# =============================================================================
# moto 통합
# =============================================================================


@pytest.fixture
def aws_credentials(monkeypatch):
    """moto 사용 시 AWS 자격 증명 설정"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
