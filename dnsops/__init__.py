"""
dnsops - Route 53 웹사이트 토폴로지 조회 / TXT 레코드 반영

도구 목록:
    - topology: 도메인의 레코드를 로드밸런서 → 타겟 그룹 → EC2까지 조인
    - txt: TXT 레코드를 생성/갱신하고 INSYNC + 값 검증까지 대기

Usage:
    import boto3
    from dnsops import AwsResourceClient, resolve_websites, reconcile_txt_record

    client = AwsResourceClient(boto3.Session(region_name="us-east-1"))
    result = resolve_websites(client, ["example.com"])
    outcome = reconcile_txt_record(client, "_acme-challenge.example.com", "abc123")
"""

from .models import (
    ChangeAction,
    ChangeRequest,
    ChangeState,
    ChangeStatus,
    ComputeInstance,
    DnsRecord,
    DnsZone,
    LoadBalancer,
    ReconcileOutcome,
    ReconcileState,
    TargetGroup,
    TargetHealthEntry,
    WebsiteRow,
)
from .resource_client import AwsResourceClient, ResourceClient
from .topology import (
    ResolveStats,
    SkipReason,
    TargetGroupPolicy,
    TopologyResult,
    WebsiteTopologyResolver,
    resolve_websites,
)
from .txt_record import TxtRecordReconciler, reconcile_many, reconcile_txt_record

__all__: list[str] = [
    # Models
    "ChangeAction",
    "ChangeRequest",
    "ChangeState",
    "ChangeStatus",
    "ComputeInstance",
    "DnsRecord",
    "DnsZone",
    "LoadBalancer",
    "ReconcileOutcome",
    "ReconcileState",
    "TargetGroup",
    "TargetHealthEntry",
    "WebsiteRow",
    # Client
    "AwsResourceClient",
    "ResourceClient",
    # Topology
    "ResolveStats",
    "SkipReason",
    "TargetGroupPolicy",
    "TopologyResult",
    "WebsiteTopologyResolver",
    "resolve_websites",
    # TXT
    "TxtRecordReconciler",
    "reconcile_many",
    "reconcile_txt_record",
]
