"""
dnsops/resource_client.py - Route 53 / ELBv2 / EC2 / DNS 조회 클라이언트

토폴로지 조회와 TXT 레코드 반영이 사용하는 외부 호출을 한곳에 모은
얇은 접근 계층입니다.

규약:
    - "찾을 수 없음"은 None 또는 빈 목록으로 반환합니다 (예외 아님).
    - 스로틀링/일시 장애는 botocore adaptive retry + with_retry로 재시도합니다.
    - 그 밖의 권한 오류와 재시도 후에도 남은 전송 오류(BotoCoreError)는
      APICallError로 감싸서 raise합니다.
    - 변경 제출은 멱등하지 않으므로 스로틀링/PriorRequestNotComplete만 재시도합니다.
    - DNS 해석 실패는 빈 결과로 취급합니다.

필요한 AWS 권한:
    route53:ListHostedZonesByName, route53:ListResourceRecordSets,
    route53:ChangeResourceRecordSets, route53:GetChange,
    elasticloadbalancing:DescribeLoadBalancers, elasticloadbalancing:DescribeTargetGroups,
    elasticloadbalancing:DescribeTargetHealth, elasticloadbalancing:DescribeListeners,
    ec2:DescribeInstances
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

import dns.exception
import dns.resolver
from botocore.exceptions import BotoCoreError, ClientError

from core.exceptions import APICallError, is_not_found, is_throttling
from core.parallel import RetryConfig, get_client, is_retryable, with_retry

from .models import (
    ChangeRequest,
    ChangeStatus,
    ComputeInstance,
    DnsRecord,
    DnsZone,
    LoadBalancer,
    TargetGroup,
    TargetHealthEntry,
    normalize_zone_name,
    strip_root_dot,
    unescape_dns_name,
)

if TYPE_CHECKING:
    import boto3

logger = logging.getLogger(__name__)

DEFAULT_DNS_LIFETIME = 5.0  # 초


class ResourceClient(Protocol):
    """토폴로지 조회 / 레코드 반영이 의존하는 외부 조회 인터페이스"""

    def find_hosted_zone(self, domain: str) -> DnsZone | None:
        """도메인 이름과 정확히 일치하는 Hosted Zone"""
        ...

    def list_records(self, zone_id: str, max_records: int | None = None) -> list[DnsRecord]:
        """Zone의 레코드 목록 (max_records가 None이면 전체)"""
        ...

    def resolve_addresses(self, hostname: str) -> tuple[str, ...]:
        """호스트 이름의 IPv4 주소 (실패 시 빈 튜플)"""
        ...

    def find_load_balancer(self, dns_name: str) -> LoadBalancer | None:
        """DNS 이름이 일치하는 로드밸런서"""
        ...

    def list_target_groups(self, load_balancer_arn: str) -> list[TargetGroup]:
        """로드밸런서에 연결된 타겟 그룹"""
        ...

    def list_target_health(self, target_group_arn: str) -> list[TargetHealthEntry]:
        """타겟 그룹에 등록된 타겟과 상태"""
        ...

    def get_instance(self, instance_id: str) -> ComputeInstance | None:
        """EC2 인스턴스"""
        ...

    def get_security_policy(self, load_balancer_arn: str) -> str | None:
        """리스너의 TLS 보안 정책 이름"""
        ...

    def get_record_value(self, zone_id: str, record_name: str, record_type: str = "TXT") -> str | None:
        """레코드의 현재 값 (인코딩된 원문, 없으면 None)"""
        ...

    def submit_change(self, zone_id: str, request: ChangeRequest, comment: str) -> ChangeStatus:
        """변경 요청 제출"""
        ...

    def get_change_status(self, change_id: str) -> ChangeStatus:
        """제출된 변경의 전파 상태"""
        ...


class AwsResourceClient:
    """boto3 + dnspython 기반 ResourceClient 구현

    Route 53은 글로벌 서비스이므로 리전 없이, ELBv2/EC2는 지정한 리전으로
    클라이언트를 생성합니다. 클라이언트는 처음 사용할 때 만들어집니다.

    Example:
        session = boto3.Session(profile_name="prod", region_name="us-east-1")
        client = AwsResourceClient(session)
        zone = client.find_hosted_zone("example.com")
    """

    def __init__(
        self,
        session: boto3.Session,
        region_name: str | None = None,
        retry_config: RetryConfig | None = None,
        dns_resolver: dns.resolver.Resolver | None = None,
        client_factory: Callable[..., Any] = get_client,
    ):
        """초기화

        Args:
            session: boto3 Session
            region_name: ELBv2/EC2 리전 (None이면 세션 기본값)
            retry_config: with_retry 재시도 설정
            dns_resolver: 호스트 이름 해석용 dnspython Resolver
            client_factory: boto3 client 생성 함수 (테스트 주입용)
        """
        self.session = session
        self.region_name = region_name or getattr(session, "region_name", None)
        self._retry_config = retry_config or RetryConfig()
        self._dns_resolver = dns_resolver
        self._client_factory = client_factory
        self._clients: dict[str, Any] = {}

    # -------------------------------------------------------------------------
    # 내부 헬퍼
    # -------------------------------------------------------------------------

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            region = None if service == "route53" else self.region_name
            self._clients[service] = self._client_factory(self.session, service, region_name=region)
        return self._clients[service]

    def _call(
        self,
        service: str,
        operation: str,
        *,
        retry_on: Callable[[Exception], bool] = is_retryable,
        **kwargs: Any,
    ) -> Any:
        """재시도를 적용하여 API 호출

        ClientError와 BotoCoreError(EndpointConnectionError, ReadTimeoutError,
        NoCredentialsError 등)는 APICallError로 변환합니다.
        """
        method = getattr(self._client(service), operation)
        try:
            return with_retry(retry_config=self._retry_config, retry_on=retry_on)(method)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise APICallError.from_client_error(service, operation, e) from e

    def _paginate(self, service: str, operation: str, **kwargs: Any) -> Any:
        """페이지네이터 반복 (페이지 단위 재시도 없음, botocore retry에 위임)"""
        paginator = self._client(service).get_paginator(operation)
        try:
            yield from paginator.paginate(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise APICallError.from_client_error(service, operation, e) from e

    def _resolver(self) -> dns.resolver.Resolver:
        if self._dns_resolver is None:
            resolver = dns.resolver.Resolver()
            resolver.lifetime = DEFAULT_DNS_LIFETIME
            self._dns_resolver = resolver
        return self._dns_resolver

    # -------------------------------------------------------------------------
    # Route 53
    # -------------------------------------------------------------------------

    def find_hosted_zone(self, domain: str) -> DnsZone | None:
        """도메인 이름과 정확히 일치하는 Hosted Zone 조회

        list_hosted_zones_by_name은 DNSName 이상인 Zone부터 정렬해서 반환하므로
        첫 페이지에서 이름이 일치하는 Zone을 찾습니다.
        같은 이름의 Public/Private Zone이 모두 있으면 Public Zone을 우선합니다.
        """
        target = normalize_zone_name(domain)
        response = self._call("route53", "list_hosted_zones_by_name", DNSName=target)

        matches = [
            DnsZone.from_api(z)
            for z in response.get("HostedZones", [])
            if normalize_zone_name(unescape_dns_name(z.get("Name", ""))) == target
        ]
        if not matches:
            return None
        matches.sort(key=lambda z: z.is_private)
        return matches[0]

    def list_records(self, zone_id: str, max_records: int | None = None) -> list[DnsRecord]:
        """Zone의 레코드 목록 조회

        Args:
            zone_id: Hosted Zone ID
            max_records: 최대 레코드 수 (None이면 페이지네이션 끝까지)
        """
        kwargs: dict[str, Any] = {"HostedZoneId": zone_id}
        if max_records is not None:
            kwargs["PaginationConfig"] = {"MaxItems": max_records}

        records: list[DnsRecord] = []
        for page in self._paginate("route53", "list_resource_record_sets", **kwargs):
            for data in page.get("ResourceRecordSets", []):
                records.append(DnsRecord.from_api(data))
                if max_records is not None and len(records) >= max_records:
                    return records
        return records

    def get_record_value(self, zone_id: str, record_name: str, record_type: str = "TXT") -> str | None:
        """레코드의 현재 값 조회 (Route 53 API 기준)

        Returns:
            첫 번째 ResourceRecord 값 (TXT는 인용된 원문). 레코드가 없으면 None.
        """
        target = normalize_zone_name(record_name)
        response = self._call(
            "route53",
            "list_resource_record_sets",
            HostedZoneId=zone_id,
            StartRecordName=target,
            StartRecordType=record_type,
            MaxItems="1",
        )

        for data in response.get("ResourceRecordSets", []):
            name = normalize_zone_name(unescape_dns_name(data.get("Name", "")))
            if name != target or data.get("Type") != record_type:
                continue
            values = [r.get("Value", "") for r in data.get("ResourceRecords", [])]
            if values:
                return values[0]
        return None

    def submit_change(self, zone_id: str, request: ChangeRequest, comment: str) -> ChangeStatus:
        """change_resource_record_sets 제출

        연결/읽기 타임아웃은 요청이 이미 반영됐을 수 있으므로 재시도하지 않습니다.
        재시도하면 CREATE가 InvalidChangeBatch로 거부되어 반영된 변경을 실패로 보고합니다.
        """
        response = self._call(
            "route53",
            "change_resource_record_sets",
            retry_on=is_throttling,
            HostedZoneId=zone_id,
            ChangeBatch=request.to_change_batch(comment),
        )
        return ChangeStatus.from_api(response.get("ChangeInfo", {}))

    def get_change_status(self, change_id: str) -> ChangeStatus:
        """get_change로 전파 상태 조회"""
        response = self._call("route53", "get_change", Id=change_id)
        return ChangeStatus.from_api(response.get("ChangeInfo", {}))

    # -------------------------------------------------------------------------
    # DNS 해석
    # -------------------------------------------------------------------------

    def resolve_addresses(self, hostname: str) -> tuple[str, ...]:
        """호스트 이름을 IPv4 주소로 해석 (실패 시 빈 튜플)"""
        try:
            answers = self._resolver().resolve(hostname, "A")
        except dns.exception.DNSException as e:
            logger.debug(f"DNS 해석 실패 [{hostname}]: {e.__class__.__name__}")
            return ()

        addresses: list[str] = []
        for rdata in answers:
            address = rdata.to_text()
            if address not in addresses:
                addresses.append(address)
        return tuple(addresses)

    # -------------------------------------------------------------------------
    # ELBv2
    # -------------------------------------------------------------------------

    def find_load_balancer(self, dns_name: str) -> LoadBalancer | None:
        """DNS 이름이 일치하는 로드밸런서 조회 (대소문자 무시)"""
        target = strip_root_dot(dns_name).lower()
        for page in self._paginate("elbv2", "describe_load_balancers"):
            for data in page.get("LoadBalancers", []):
                if strip_root_dot(data.get("DNSName", "")).lower() == target:
                    return LoadBalancer.from_api(data)
        return None

    def list_target_groups(self, load_balancer_arn: str) -> list[TargetGroup]:
        """로드밸런서에 연결된 타겟 그룹 조회"""
        try:
            return [
                TargetGroup.from_api(tg)
                for page in self._paginate("elbv2", "describe_target_groups", LoadBalancerArn=load_balancer_arn)
                for tg in page.get("TargetGroups", [])
            ]
        except APICallError as e:
            if is_not_found(e):
                return []
            raise

    def list_target_health(self, target_group_arn: str) -> list[TargetHealthEntry]:
        """타겟 그룹에 등록된 타겟 조회"""
        try:
            response = self._call("elbv2", "describe_target_health", TargetGroupArn=target_group_arn)
        except APICallError as e:
            if is_not_found(e):
                return []
            raise
        return [TargetHealthEntry.from_api(d) for d in response.get("TargetHealthDescriptions", [])]

    def get_security_policy(self, load_balancer_arn: str) -> str | None:
        """리스너 중 첫 번째로 설정된 SslPolicy 조회"""
        try:
            for page in self._paginate("elbv2", "describe_listeners", LoadBalancerArn=load_balancer_arn):
                for listener in page.get("Listeners", []):
                    if listener.get("SslPolicy"):
                        return listener["SslPolicy"]
        except APICallError as e:
            if is_not_found(e):
                return None
            raise
        return None

    # -------------------------------------------------------------------------
    # EC2
    # -------------------------------------------------------------------------

    def get_instance(self, instance_id: str) -> ComputeInstance | None:
        """EC2 인스턴스 조회 (IP/Lambda 타겟 등 인스턴스가 아닌 ID는 None)"""
        if not instance_id.startswith("i-"):
            return None

        try:
            response = self._call("ec2", "describe_instances", InstanceIds=[instance_id])
        except APICallError as e:
            if is_not_found(e):
                return None
            raise

        for reservation in response.get("Reservations", []):
            for data in reservation.get("Instances", []):
                return ComputeInstance.from_api(data)
        return None
