# core/__init__.py
"""
core - dnsops 공통 인프라

도메인 로직(dnsops)이 공유하는 설정, 예외, AWS 호출 유틸리티를 포함합니다.

아키텍처:
    core/
    ├── parallel/       # boto3 클라이언트, 재시도, 에러 수집, 병렬 실행
    ├── config.py       # 중앙 설정 관리
    └── exceptions.py   # 통합 예외 계층

Usage:
    # 설정 사용
    from core.config import settings, get_default_region
    region = get_default_region()  # "ap-northeast-2"

    # 예외 처리
    from core.exceptions import APICallError, is_access_denied
    try:
        zones = route53.list_hosted_zones_by_name(DNSName="example.com")
    except Exception as e:
        if is_access_denied(e):
            print("권한이 없습니다")
"""

from core import config, exceptions, parallel

__all__: list[str] = [
    "parallel",
    "config",
    "exceptions",
]
