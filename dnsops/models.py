"""
dnsops/models.py - DNS / 로드밸런서 / EC2 데이터 모델

Route 53, ELBv2, EC2 API 응답을 요청 범위(request-scoped)에서 다루기 위한
불변 데이터 구조입니다. 캐시하거나 영속화하지 않습니다.

    DnsZone ─< DnsRecord ─(alias)─> LoadBalancer ─< TargetGroup ─< TargetHealthEntry ─> ComputeInstance
                                            │
                                            └──> WebsiteRow (조인 결과, 싱크로 전달)

    ChangeRequest ──submit──> ChangeStatus (PENDING → INSYNC) ──> ReconcileOutcome
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.config import settings

# Route 53은 특수 문자를 \ddd (8진수) 형식으로 반환 (예: "*" -> "\052")
_OCTAL_ESCAPE = re.compile(r"\\(\d{3})")

# TXT 값 안의 \ddd 한 옥텟 (000-377)
_TXT_OCTET = re.compile(r"[0-3][0-7]{2}")

# Route 53 TXT character-string 최대 길이
TXT_CHUNK_SIZE = 255


def unescape_dns_name(name: str) -> str:
    """Route 53 이름의 8진수 이스케이프를 원래 문자로 복원"""
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), name)


def normalize_zone_name(name: str) -> str:
    """Zone 이름을 소문자 + 끝 점(.) 포함 형식으로 정규화"""
    name = name.strip().lower()
    return name if name.endswith(".") else f"{name}."


def strip_root_dot(name: str) -> str:
    """끝 점(.) 제거"""
    return name[:-1] if name.endswith(".") else name


# =============================================================================
# TXT 값 인코딩
# =============================================================================


def _escape_txt_octets(data: bytes) -> str:
    """character-string 하나의 옥텟을 Route 53 표기로 변환

    큰따옴표와 백슬래시는 백슬래시로, 제어 문자와 0x7F 이상(UTF-8 멀티바이트)은
    \\ddd 8진수로 이스케이프합니다.
    """
    out: list[str] = []
    for octet in data:
        if octet in (0x22, 0x5C):
            out.append("\\" + chr(octet))
        elif octet < 0x20 or octet >= 0x7F:
            out.append(f"\\{octet:03o}")
        else:
            out.append(chr(octet))
    return "".join(out)


def quote_txt_value(value: str) -> str:
    """TXT 레코드 값을 DNS character-string 형식으로 인용

    UTF-8로 인코딩한 값이 255옥텟을 넘으면 여러 개의 character-string으로
    나눕니다. 멀티바이트 문자가 경계에서 잘려도 이어 붙이면 원래 바이트가 됩니다.

    Example:
        quote_txt_value('abc123')  # '"abc123"'
        quote_txt_value('café')    # '"caf\\303\\251"'
    """
    data = value.encode("utf-8")
    chunks = [data[i : i + TXT_CHUNK_SIZE] for i in range(0, len(data), TXT_CHUNK_SIZE)] or [b""]
    return " ".join(f'"{_escape_txt_octets(chunk)}"' for chunk in chunks)


def unquote_txt_value(raw: str) -> str:
    """인용된 TXT 값을 원래 문자열로 복원

    여러 character-string의 옥텟을 이어 붙인 뒤 UTF-8로 디코딩합니다.
    백슬래시 이스케이프와 8진수(\\ddd) 이스케이프는 옥텟 단위로 해제합니다.
    인용되지 않은 값은 그대로 반환합니다.
    """
    raw = raw.strip()
    if '"' not in raw:
        return raw

    data = bytearray()
    in_quotes = False
    i = 0
    while i < len(raw):
        ch = raw[i]
        if in_quotes:
            if ch == "\\" and i + 1 < len(raw):
                octal = raw[i + 1 : i + 4]
                if _TXT_OCTET.fullmatch(octal):
                    data.append(int(octal, 8))
                    i += 4
                    continue
                data.extend(raw[i + 1].encode("utf-8"))
                i += 2
                continue
            if ch == '"':
                in_quotes = False
            else:
                data.extend(ch.encode("utf-8"))
        elif ch == '"':
            in_quotes = True
        i += 1

    return data.decode("utf-8", errors="replace")


# =============================================================================
# DNS
# =============================================================================


@dataclass(frozen=True)
class DnsZone:
    """Route 53 Hosted Zone

    Attributes:
        zone_id: Hosted Zone ID ("/hostedzone/" 접두사 제거)
        name: Zone 이름 (끝 점 포함, 예: "example.com.")
        is_private: Private Hosted Zone 여부
    """

    zone_id: str
    name: str
    is_private: bool = False

    @property
    def domain_name(self) -> str:
        return strip_root_dot(self.name)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DnsZone:
        return cls(
            zone_id=data.get("Id", "").replace("/hostedzone/", ""),
            name=unescape_dns_name(data.get("Name", "")),
            is_private=data.get("Config", {}).get("PrivateZone", False),
        )


@dataclass(frozen=True)
class DnsRecord:
    """DNS 리소스 레코드

    Attributes:
        name: 레코드 이름 (끝 점 제거)
        record_type: 레코드 타입 (A, CNAME, TXT 등)
        alias_target: 다른 리소스를 가리키는 호스트 이름
            (Alias 레코드는 AliasTarget.DNSName, CNAME은 첫 번째 값)
        values: 일반 레코드 값 목록
        ttl: TTL (Alias 레코드는 None)
    """

    name: str
    record_type: str
    alias_target: str | None = None
    values: tuple[str, ...] = ()
    ttl: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DnsRecord:
        """list_resource_record_sets 응답 항목에서 생성"""
        record_type = data.get("Type", "")
        values = tuple(r.get("Value", "") for r in data.get("ResourceRecords", []))

        alias_target = data.get("AliasTarget", {}).get("DNSName")
        if not alias_target and record_type == "CNAME" and values:
            alias_target = values[0]

        return cls(
            name=strip_root_dot(unescape_dns_name(data.get("Name", ""))),
            record_type=record_type,
            alias_target=alias_target or None,
            values=values,
            ttl=data.get("TTL"),
        )


# =============================================================================
# 로드밸런서 / EC2
# =============================================================================


@dataclass(frozen=True)
class LoadBalancer:
    """ELBv2 로드밸런서 (ALB/NLB/GWLB)

    Attributes:
        arn: LoadBalancerArn
        name: LoadBalancerName
        dns_name: DNSName
        scheme: internet-facing / internal
        kind: application / network / gateway
    """

    arn: str
    name: str
    dns_name: str
    scheme: str
    kind: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> LoadBalancer:
        return cls(
            arn=data.get("LoadBalancerArn", ""),
            name=data.get("LoadBalancerName", ""),
            dns_name=data.get("DNSName", ""),
            scheme=data.get("Scheme", ""),
            kind=data.get("Type", ""),
        )


@dataclass(frozen=True)
class TargetGroup:
    """타겟 그룹"""

    arn: str
    name: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetGroup:
        return cls(arn=data.get("TargetGroupArn", ""), name=data.get("TargetGroupName", ""))


@dataclass(frozen=True)
class TargetHealthEntry:
    """타겟 그룹에 등록된 타겟 하나"""

    target_id: str
    port: int | None
    health_state: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> TargetHealthEntry:
        target = data.get("Target", {})
        return cls(
            target_id=target.get("Id", ""),
            port=target.get("Port"),
            health_state=data.get("TargetHealth", {}).get("State", "unknown"),
        )


@dataclass(frozen=True)
class ComputeInstance:
    """타겟의 EC2 인스턴스 정보"""

    instance_id: str
    name_tag: str | None
    private_address: str | None

    @property
    def summary(self) -> str:
        """표시용 요약 (예: "web-1 (10.0.1.5)")"""
        name = self.name_tag or self.instance_id
        return f"{name} ({self.private_address or settings.NOT_AVAILABLE})"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ComputeInstance:
        tags = {t.get("Key", ""): t.get("Value", "") for t in data.get("Tags", [])}
        return cls(
            instance_id=data.get("InstanceId", ""),
            name_tag=tags.get("Name") or None,
            private_address=data.get("PrivateIpAddress"),
        )


@dataclass(frozen=True)
class WebsiteRow:
    """웹사이트 하나의 인프라 매핑 결과 (싱크로 전달되는 불변 행)

    Attributes:
        hostname: DNS 레코드 이름
        lb_name: 로드밸런서 이름
        lb_public_addresses: 로드밸런서 DNS 이름이 해석된 IP 목록
        lb_scheme: internet-facing / internal
        lb_kind: application / network / gateway
        target_group_name: 타겟 그룹 이름
        security_policy: 리스너 TLS 보안 정책 (없으면 "N/A")
        instance_summary: 첫 번째 타겟 인스턴스 요약
        target_ports: 등록된 타겟 포트 (중복 제거, 등록 순서)
    """

    hostname: str
    lb_name: str
    lb_public_addresses: tuple[str, ...]
    lb_scheme: str
    lb_kind: str
    target_group_name: str
    security_policy: str
    instance_summary: str
    target_ports: tuple[int, ...]


# =============================================================================
# 레코드 변경 / 반영 결과
# =============================================================================


class ChangeAction(Enum):
    """레코드 변경 동작"""

    CREATE = "CREATE"
    UPSERT = "UPSERT"


class ChangeState(Enum):
    """변경 전파 상태 (PENDING → INSYNC 단방향)"""

    PENDING = "PENDING"
    INSYNC = "INSYNC"


class ReconcileState(Enum):
    """TXT 레코드 반영 상태 머신의 상태"""

    DECIDING = "deciding"
    SUBMITTING = "submitting"
    POLLING = "polling"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChangeRequest:
    """원하는 레코드 변경 내용"""

    action: ChangeAction
    record_name: str
    value: str
    record_type: str = "TXT"
    ttl: int = settings.TXT_RECORD_TTL

    @property
    def encoded_value(self) -> str:
        """Route 53에 제출할 값 (TXT는 인용 처리)"""
        if self.record_type == "TXT":
            return quote_txt_value(self.value)
        return self.value

    def to_change_batch(self, comment: str) -> dict[str, Any]:
        """change_resource_record_sets의 ChangeBatch 생성"""
        return {
            "Comment": comment,
            "Changes": [
                {
                    "Action": self.action.value,
                    "ResourceRecordSet": {
                        "Name": self.record_name,
                        "Type": self.record_type,
                        "TTL": self.ttl,
                        "ResourceRecords": [{"Value": self.encoded_value}],
                    },
                }
            ],
        }


@dataclass(frozen=True)
class ChangeStatus:
    """제출된 변경의 전파 상태"""

    change_id: str
    state: ChangeState

    @property
    def is_insync(self) -> bool:
        return self.state == ChangeState.INSYNC

    @classmethod
    def from_api(cls, change_info: dict[str, Any]) -> ChangeStatus:
        return cls(
            change_id=change_info.get("Id", "").replace("/change/", ""),
            state=ChangeState(change_info.get("Status", "PENDING")),
        )


@dataclass(frozen=True)
class ReconcileOutcome:
    """TXT 레코드 반영 최종 결과

    Attributes:
        record_name: 대상 레코드 이름
        requested_value: 요청한 값 (인용 전)
        applied: 반영 및 검증 성공 여부
        final_value: 검증 단계에서 읽은 값 (인용 해제)
        action: 수행한 변경 동작 (Deciding 단계 실패 시 None)
        change_id: 제출된 변경 ID
        state: 종료 상태 (DONE 또는 FAILED)
        error: 실패 원인 예외
        polls: 변경 상태 조회 횟수
    """

    record_name: str
    requested_value: str
    applied: bool
    final_value: str | None = None
    action: ChangeAction | None = None
    change_id: str | None = None
    state: ReconcileState = ReconcileState.DONE
    error: Exception | None = field(default=None, compare=False)
    polls: int = 0

    def raise_for_error(self) -> None:
        """실패 결과이면 원인 예외를 raise"""
        if self.error is not None:
            raise self.error
