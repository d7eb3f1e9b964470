"""
dnsops/topology.py - 웹사이트 토폴로지 조회

등록된 도메인의 Route 53 레코드에서 시작해
레코드 → 로드밸런서 → 타겟 그룹 → 타겟 → EC2 인스턴스 순서로 조인하여
웹사이트 하나당 한 행(WebsiteRow)을 만듭니다.

각 API는 서로 참조 무결성을 보장하지 않으므로 모든 조회는 부분 실패를
허용합니다. 조회 실패나 빈 결과는 해당 레코드를 건너뛰거나 기본값으로
대체할 뿐 나머지 도메인/레코드 처리를 중단하지 않습니다.

처리 순서 (레코드 단위):
    1. Alias 대상이 로드밸런서 도메인(*.elb.amazonaws.com)이 아니면 건너뜀
    2. dualstack. 접두사와 끝 점을 제거해 조회 키로 사용
    3. 로드밸런서 DNS 이름을 IP로 해석 (실패 시 빈 목록)
    4. DNS 이름이 일치하는 로드밸런서가 없으면 건너뜀
    5. 연결된 타겟 그룹이 없으면 건너뜀 (여러 개면 정책에 따라 첫 번째 또는 전체)
    6. 첫 번째 타겟의 EC2 인스턴스 조회 (실패 시 "Instance not found")
    7. 리스너 보안 정책 조회 (없으면 "N/A")

Usage:
    from dnsops.topology import WebsiteTopologyResolver

    resolver = WebsiteTopologyResolver(client)
    for row in resolver.resolve(["example.com"]):
        print(row.hostname, row.instance_summary)
    print(resolver.stats.skip_count)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.config import settings
from core.parallel import ErrorCollector, ErrorSeverity, ParallelConfig, parallel_map, try_or_default
from core.parallel.types import TaskError

from .models import DnsRecord, LoadBalancer, TargetGroup, TargetHealthEntry, WebsiteRow, strip_root_dot
from .resource_client import ResourceClient

logger = logging.getLogger(__name__)

# 조회 실패와 "없음"(None/빈 목록)을 구분하기 위한 기본값
_FAILED: Any = object()


class SkipReason(Enum):
    """행을 만들지 않은 이유"""

    ZONE_NOT_FOUND = "zone_not_found"
    NOT_LOAD_BALANCER = "not_load_balancer"
    LOAD_BALANCER_NOT_FOUND = "load_balancer_not_found"
    NO_TARGET_GROUP = "no_target_group"
    LOOKUP_FAILED = "lookup_failed"


class TargetGroupPolicy(Enum):
    """로드밸런서에 타겟 그룹이 여러 개 연결된 경우의 처리 방식

    FIRST: 첫 번째 타겟 그룹만 사용 (행 1개)
    ALL: 타겟 그룹마다 행 생성
    """

    FIRST = "first"
    ALL = "all"


@dataclass
class ResolveStats:
    """조회 통계 (스레드 세이프)

    Attributes:
        domains: 처리한 도메인 수
        records: 검사한 A/CNAME 레코드 수
        rows: 생성한 행 수
        skipped: 건너뛴 이유별 건수
    """

    domains: int = 0
    records: int = 0
    rows: int = 0
    skipped: dict[SkipReason, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, domains: int = 0, records: int = 0, rows: int = 0) -> None:
        with self._lock:
            self.domains += domains
            self.records += records
            self.rows += rows

    def skip(self, reason: SkipReason) -> None:
        with self._lock:
            self.skipped[reason] = self.skipped.get(reason, 0) + 1

    @property
    def skip_count(self) -> int:
        with self._lock:
            return sum(self.skipped.values())

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "domains": self.domains,
                "records": self.records,
                "rows": self.rows,
                "skipped": {reason.value: count for reason, count in self.skipped.items()},
            }


def normalize_alias_host(hostname: str, prefix: str = settings.DUALSTACK_PREFIX) -> str:
    """Alias 대상 호스트 이름을 조회 키로 정규화

    소문자로 바꾸고 끝 점과 dualstack. 접두사를 제거합니다.

    Example:
        normalize_alias_host("dualstack.MyLB-1.us-east-1.elb.amazonaws.com.")
        # "mylb-1.us-east-1.elb.amazonaws.com"
    """
    host = strip_root_dot(hostname.strip().lower())
    if host.startswith(prefix):
        host = host[len(prefix) :]
    return host


def is_load_balancer_host(hostname: str, suffixes: Sequence[str] = settings.LB_DNS_SUFFIXES) -> bool:
    """정규화된 호스트 이름이 로드밸런서 도메인에 속하는지"""
    return any(hostname == s or hostname.endswith(f".{s}") for s in suffixes)


class WebsiteTopologyResolver:
    """도메인 → 웹사이트 인프라 매핑 조회기

    resolve()는 지연(lazy) 제너레이터로, 도메인 순서 → 레코드 이름 순서로
    행을 생성합니다. 건너뛴 건수는 stats에, 조회 실패는 collector에 남습니다.
    """

    def __init__(
        self,
        client: ResourceClient,
        max_records: int | None = settings.MAX_RECORDS_PER_ZONE,
        target_group_policy: TargetGroupPolicy = TargetGroupPolicy.FIRST,
        lb_suffixes: Sequence[str] = settings.LB_DNS_SUFFIXES,
        record_types: Sequence[str] = settings.RECORD_TYPES,
        collector: ErrorCollector | None = None,
    ):
        """초기화

        Args:
            client: 외부 조회 클라이언트
            max_records: Zone당 최대 레코드 수 (None이면 전체)
            target_group_policy: 타겟 그룹이 여러 개일 때의 처리 방식
            lb_suffixes: 로드밸런서 DNS 도메인 접미사
            record_types: 조회 대상 레코드 타입
            collector: 조회 실패 수집기 (None이면 새로 생성)
        """
        self.client = client
        self.max_records = max_records
        self.target_group_policy = target_group_policy
        self.lb_suffixes = tuple(lb_suffixes)
        self.record_types = tuple(record_types)
        self.collector = collector or ErrorCollector("topology")
        self.stats = ResolveStats()

    def resolve(self, domains: Iterable[str]) -> Iterator[WebsiteRow]:
        """도메인 목록의 웹사이트 행을 순서대로 생성"""
        for domain in domains:
            yield from self.resolve_domain(domain)

    def resolve_domain(self, domain: str) -> Iterator[WebsiteRow]:
        """도메인 하나의 웹사이트 행 생성"""
        domain = strip_root_dot(domain.strip().lower())
        self.stats.add(domains=1)

        zone = self._lookup(
            lambda: self.client.find_hosted_zone(domain),
            scope=domain,
            service="route53",
            operation="list_hosted_zones_by_name",
        )
        if zone is _FAILED:
            self.stats.skip(SkipReason.LOOKUP_FAILED)
            return
        if zone is None:
            logger.info(f"[{domain}] Hosted Zone 없음, 건너뜀")
            self.stats.skip(SkipReason.ZONE_NOT_FOUND)
            return

        records = self._lookup(
            lambda: self.client.list_records(zone.zone_id, self.max_records),
            scope=domain,
            service="route53",
            operation="list_resource_record_sets",
            resource_id=zone.zone_id,
        )
        if records is _FAILED:
            self.stats.skip(SkipReason.LOOKUP_FAILED)
            return

        candidates = sorted(
            (r for r in records if r.record_type in self.record_types),
            key=lambda r: (r.name, r.record_type),
        )
        logger.debug(f"[{domain}] 레코드 {len(candidates)}개 검사 (Zone {zone.zone_id})")

        for record in candidates:
            self.stats.add(records=1)
            rows = self._resolve_record(record)
            self.stats.add(rows=len(rows))
            yield from rows

    # -------------------------------------------------------------------------
    # 레코드 단위 조인
    # -------------------------------------------------------------------------

    def _resolve_record(self, record: DnsRecord) -> list[WebsiteRow]:
        scope = record.name

        host = normalize_alias_host(record.alias_target or "")
        if not host or not is_load_balancer_host(host, self.lb_suffixes):
            logger.debug(f"[{scope}] 로드밸런서 대상 아님 ({record.alias_target}), 건너뜀")
            self.stats.skip(SkipReason.NOT_LOAD_BALANCER)
            return []

        addresses = self._lookup(
            lambda: self.client.resolve_addresses(host),
            scope=scope,
            service="dns",
            operation="resolve",
            resource_id=host,
            severity=ErrorSeverity.DEBUG,
        )
        if addresses is _FAILED:
            addresses = ()

        lb = self._lookup(
            lambda: self.client.find_load_balancer(host),
            scope=scope,
            service="elbv2",
            operation="describe_load_balancers",
            resource_id=host,
        )
        if lb is _FAILED:
            self.stats.skip(SkipReason.LOOKUP_FAILED)
            return []
        if lb is None:
            logger.info(f"[{scope}] 로드밸런서 없음 ({host}), 건너뜀")
            self.stats.skip(SkipReason.LOAD_BALANCER_NOT_FOUND)
            return []

        target_groups = self._lookup(
            lambda: self.client.list_target_groups(lb.arn),
            scope=scope,
            service="elbv2",
            operation="describe_target_groups",
            resource_id=lb.arn,
        )
        if target_groups is _FAILED:
            self.stats.skip(SkipReason.LOOKUP_FAILED)
            return []
        if not target_groups:
            logger.info(f"[{scope}] {lb.name}에 연결된 타겟 그룹 없음, 건너뜀")
            self.stats.skip(SkipReason.NO_TARGET_GROUP)
            return []

        if self.target_group_policy == TargetGroupPolicy.FIRST:
            if len(target_groups) > 1:
                names = ", ".join(tg.name for tg in target_groups)
                logger.info(f"[{scope}] {lb.name}에 타겟 그룹 {len(target_groups)}개 ({names}), 첫 번째 사용")
            target_groups = target_groups[:1]

        policy = self._lookup(
            lambda: self.client.get_security_policy(lb.arn),
            scope=scope,
            service="elbv2",
            operation="describe_listeners",
            resource_id=lb.arn,
        )
        security_policy = policy if policy and policy is not _FAILED else settings.NOT_AVAILABLE

        return [self._build_row(record, lb, tuple(addresses), tg, security_policy) for tg in target_groups]

    def _build_row(
        self,
        record: DnsRecord,
        lb: LoadBalancer,
        addresses: tuple[str, ...],
        target_group: TargetGroup,
        security_policy: str,
    ) -> WebsiteRow:
        targets = self._lookup(
            lambda: self.client.list_target_health(target_group.arn),
            scope=record.name,
            service="elbv2",
            operation="describe_target_health",
            resource_id=target_group.arn,
        )
        if targets is _FAILED:
            targets = []

        return WebsiteRow(
            hostname=record.name,
            lb_name=lb.name,
            lb_public_addresses=addresses,
            lb_scheme=lb.scheme,
            lb_kind=lb.kind,
            target_group_name=target_group.name,
            security_policy=security_policy,
            instance_summary=self._summarize_first_target(record.name, targets),
            target_ports=tuple(dict.fromkeys(t.port for t in targets if t.port is not None)),
        )

    def _summarize_first_target(self, scope: str, targets: list[TargetHealthEntry]) -> str:
        if not targets:
            return settings.NOT_AVAILABLE

        target_id = targets[0].target_id
        instance = self._lookup(
            lambda: self.client.get_instance(target_id),
            scope=scope,
            service="ec2",
            operation="describe_instances",
            resource_id=target_id,
        )
        if instance is _FAILED or instance is None:
            logger.info(f"[{scope}] 타겟 {target_id}의 인스턴스를 찾을 수 없음")
            return settings.INSTANCE_NOT_FOUND
        return instance.summary

    def _lookup(
        self,
        func: Any,
        scope: str,
        service: str,
        operation: str,
        resource_id: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> Any:
        return try_or_default(
            func,
            default=_FAILED,
            collector=self.collector,
            scope=scope,
            operation=operation,
            severity=severity,
            resource_id=resource_id,
            service=service,
        )


@dataclass
class TopologyResult:
    """resolve_websites 결과

    Attributes:
        rows: 도메인 입력 순서 → 레코드 이름 순서로 정렬된 행
        stats: 조회 통계
        collector: 조회 실패 수집기
        failures: 예상하지 못한 예외로 중단된 도메인
    """

    rows: list[WebsiteRow]
    stats: ResolveStats
    collector: ErrorCollector
    failures: list[TaskError] = field(default_factory=list)


def resolve_websites(
    client: ResourceClient,
    domains: Sequence[str],
    max_workers: int = 1,
    **resolver_options: Any,
) -> TopologyResult:
    """도메인 목록의 웹사이트 행을 수집

    max_workers > 1이면 도메인별로 병렬 조회하지만, 결과는 순차 조회와
    동일한 순서(도메인 입력 순서 → 레코드 이름 순서)로 반환합니다.

    Args:
        client: 외부 조회 클라이언트
        domains: 도메인 목록
        max_workers: 동시에 조회할 도메인 수
        **resolver_options: WebsiteTopologyResolver 생성 인자

    Returns:
        TopologyResult
    """
    resolver = WebsiteTopologyResolver(client, **resolver_options)
    result = parallel_map(
        list(domains),
        lambda domain: list(resolver.resolve_domain(domain)),
        config=ParallelConfig(max_workers=max_workers),
    )

    rows: list[WebsiteRow] = result.get_flat_data()

    failures = result.get_errors()
    if failures:
        logger.warning(f"도메인 {len(failures)}개 조회 중단: {result.get_error_summary()}")

    return TopologyResult(rows=rows, stats=resolver.stats, collector=resolver.collector, failures=failures)
