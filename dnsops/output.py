"""
dnsops/output.py - 결과 직렬화

WebsiteRow / ReconcileOutcome를 외부 싱크(콘솔, 파일, 다른 도구)가
소비할 수 있는 dict / JSON / CSV로 변환합니다.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable
from typing import Any

from .models import ReconcileOutcome, WebsiteRow

# CSV / 테이블 컬럼 순서
ROW_COLUMNS: list[tuple[str, str]] = [
    ("hostname", "Hostname"),
    ("lb_name", "Load Balancer"),
    ("lb_public_addresses", "LB Addresses"),
    ("lb_scheme", "Scheme"),
    ("lb_kind", "Type"),
    ("target_group_name", "Target Group"),
    ("security_policy", "Security Policy"),
    ("instance_summary", "Instance"),
    ("target_ports", "Ports"),
]


def row_to_dict(row: WebsiteRow) -> dict[str, Any]:
    """WebsiteRow를 JSON 직렬화 가능한 dict로 변환"""
    return {
        "hostname": row.hostname,
        "lb_name": row.lb_name,
        "lb_public_addresses": list(row.lb_public_addresses),
        "lb_scheme": row.lb_scheme,
        "lb_kind": row.lb_kind,
        "target_group_name": row.target_group_name,
        "security_policy": row.security_policy,
        "instance_summary": row.instance_summary,
        "target_ports": list(row.target_ports),
    }


def row_to_cells(row: WebsiteRow) -> list[str]:
    """WebsiteRow를 ROW_COLUMNS 순서의 문자열 셀로 변환"""
    data = row_to_dict(row)
    cells = []
    for key, _ in ROW_COLUMNS:
        value = data[key]
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        cells.append(str(value))
    return cells


def outcome_to_dict(outcome: ReconcileOutcome) -> dict[str, Any]:
    """ReconcileOutcome를 JSON 직렬화 가능한 dict로 변환"""
    return {
        "record_name": outcome.record_name,
        "requested_value": outcome.requested_value,
        "applied": outcome.applied,
        "final_value": outcome.final_value,
        "action": outcome.action.value if outcome.action else None,
        "change_id": outcome.change_id,
        "state": outcome.state.value,
        "polls": outcome.polls,
        "error": str(outcome.error) if outcome.error else None,
        "error_type": outcome.error.__class__.__name__ if outcome.error else None,
    }


def rows_to_json(rows: Iterable[WebsiteRow], indent: int | None = 2) -> str:
    return json.dumps([row_to_dict(r) for r in rows], ensure_ascii=False, indent=indent)


def rows_to_csv(rows: Iterable[WebsiteRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([header for _, header in ROW_COLUMNS])
    for row in rows:
        writer.writerow(row_to_cells(row))
    return buffer.getvalue()
