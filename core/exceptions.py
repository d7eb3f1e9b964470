"""
core/exceptions.py - 통합 예외 계층 구조

애플리케이션 전체에서 사용되는 예외 클래스들을 정의합니다.
일관된 예외 처리와 에러 메시지를 제공합니다.

예외 계층 구조:
    DnsOpsError (베이스)
    ├── APICallError (AWS API 호출 실패)
    ├── ReconcileError (TXT 레코드 반영)
    │   ├── ZoneNotFoundError
    │   ├── SubmissionError
    │   ├── PropagationTimeoutError
    │   └── VerificationMismatchError
    └── ValidationError (입력 검증)

"찾을 수 없음"은 예외가 아니라 None/빈 값으로 표현합니다.
예외는 전송 오류, 권한 오류, 반영 실패처럼 실제 실패에만 사용합니다.

Usage:
    from core.exceptions import APICallError

    try:
        route53.change_resource_record_sets(...)
    except ClientError as e:
        raise APICallError.from_client_error("route53", "change_resource_record_sets", e) from e
"""

from typing import Any, Dict, Optional

# =============================================================================
# 베이스 예외
# =============================================================================


class DnsOpsError(Exception):
    """dnsops 기본 예외 클래스

    모든 커스텀 예외의 베이스 클래스입니다.

    Attributes:
        message: 에러 메시지
        cause: 원인 예외 (체이닝용)
        details: 추가 상세 정보
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """예외 정보를 딕셔너리로 반환"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "cause": str(self.cause) if self.cause else None,
            "details": self.details,
        }


# =============================================================================
# AWS API 호출 관련 예외
# =============================================================================


class APICallError(DnsOpsError):
    """AWS API 호출 관련 예외

    boto3/botocore의 ClientError를 래핑하여 일관된 예외 처리를 제공합니다.
    """

    def __init__(
        self,
        service: str,
        operation: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"{service}.{operation}"
        if error_code:
            message = f"{message} 실패 ({error_code})"
        if error_message:
            message = f"{message}: {error_message}"

        super().__init__(message, cause)
        self.service = service
        self.operation = operation
        self.error_code = error_code
        self.error_message = error_message
        self.details.update(
            {
                "service": service,
                "operation": operation,
                "error_code": error_code,
            }
        )

    def __str__(self) -> str:
        # 원인 ClientError 메시지가 message와 중복되므로 생략
        return self.message

    @classmethod
    def from_client_error(
        cls,
        service: str,
        operation: str,
        client_error: Exception,
    ) -> "APICallError":
        """botocore.exceptions.ClientError로부터 생성

        Args:
            service: AWS 서비스 이름
            operation: API 작업 이름
            client_error: ClientError 예외

        Returns:
            APICallError 인스턴스
        """
        error_code = None
        error_message = None

        # ClientError 형식 파싱
        response = getattr(client_error, "response", None)
        if isinstance(response, dict):
            error_info = response.get("Error", {})
            error_code = error_info.get("Code")
            error_message = error_info.get("Message")

        return cls(
            service=service,
            operation=operation,
            error_code=error_code,
            error_message=error_message or (None if error_code else str(client_error)),
            cause=client_error,
        )


# =============================================================================
# TXT 레코드 반영 관련 예외
# =============================================================================


class ReconcileError(DnsOpsError):
    """레코드 반영 관련 예외"""

    def __init__(
        self,
        record_name: str,
        message: str,
        cause: Optional[Exception] = None,
    ):
        full_message = f"레코드 반영 오류 [{record_name}]: {message}"
        super().__init__(full_message, cause)
        self.record_name = record_name
        self.details["record_name"] = record_name


class ZoneNotFoundError(ReconcileError):
    """레코드를 소유한 Hosted Zone을 찾을 수 없음"""

    def __init__(self, record_name: str, zone_name: str):
        super().__init__(record_name, f"Hosted Zone '{zone_name}'을(를) 찾을 수 없습니다")
        self.zone_name = zone_name
        self.details["zone_name"] = zone_name


class SubmissionError(ReconcileError):
    """변경 요청 제출 실패 (권한/검증 오류 - 재시도하지 않음)"""

    def __init__(self, record_name: str, cause: Exception):
        super().__init__(record_name, "변경 요청 제출 실패", cause)


class PropagationTimeoutError(ReconcileError):
    """변경 전파 대기 시간 초과 또는 취소"""

    def __init__(self, record_name: str, change_id: str, waited: float):
        super().__init__(record_name, f"변경 {change_id}이(가) {waited:.0f}초 내에 INSYNC 상태가 되지 않았습니다")
        self.change_id = change_id
        self.waited = waited
        self.details.update({"change_id": change_id, "waited": waited})


class VerificationMismatchError(ReconcileError):
    """반영은 되었으나 조회 값이 요청 값과 다름"""

    def __init__(self, record_name: str, expected: str, actual: Optional[str]):
        super().__init__(record_name, f"검증 실패: 예상값 '{expected}', 실제값 '{actual}'")
        self.expected = expected
        self.actual = actual
        self.details.update({"expected": expected, "actual": actual})


# =============================================================================
# 입력 검증 관련 예외
# =============================================================================


class ValidationError(DnsOpsError):
    """입력 검증 오류"""

    def __init__(
        self,
        field: str,
        value: Any,
        expected: str,
        cause: Optional[Exception] = None,
    ):
        message = f"검증 오류 [{field}]: 예상값 '{expected}', 실제값 '{value}'"
        super().__init__(message, cause)
        self.field = field
        self.value = value
        self.expected = expected
        self.details.update(
            {
                "field": field,
                "value": str(value),
                "expected": expected,
            }
        )


# =============================================================================
# 예외 유틸리티 함수
# =============================================================================

ACCESS_DENIED_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedAccess",
    "UnauthorizedOperation",
}

THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RateExceeded",
    "PriorRequestNotComplete",
}

NOT_FOUND_CODES = {
    "ResourceNotFoundException",
    "NotFoundException",
    "NoSuchHostedZone",
    "NoSuchChange",
    "LoadBalancerNotFound",
    "TargetGroupNotFound",
    "ListenerNotFound",
    "InvalidInstanceID.NotFound",
    "InvalidInstanceID.Malformed",
}


def _error_code(error: Exception) -> str:
    if isinstance(error, APICallError):
        return error.error_code or ""
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        return response.get("Error", {}).get("Code", "")
    return ""


def is_access_denied(error: Exception) -> bool:
    """액세스 거부 오류인지 확인

    Args:
        error: 확인할 예외

    Returns:
        액세스 거부 오류이면 True
    """
    return _error_code(error) in ACCESS_DENIED_CODES


def is_throttling(error: Exception) -> bool:
    """스로틀링 오류인지 확인

    Route 53의 PriorRequestNotComplete도 스로틀링으로 취급합니다.
    """
    return _error_code(error) in THROTTLING_CODES


def is_not_found(error: Exception) -> bool:
    """리소스를 찾을 수 없는 오류인지 확인"""
    return _error_code(error) in NOT_FOUND_CODES


def format_error_for_user(error: Exception) -> str:
    """사용자에게 표시할 에러 메시지 포맷팅

    Args:
        error: 예외

    Returns:
        사용자 친화적인 에러 메시지
    """
    if isinstance(error, DnsOpsError):
        # 커스텀 예외는 이미 포맷팅됨
        return str(error)

    # boto3 ClientError
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        error_info = response.get("Error", {})
        code = error_info.get("Code", "UnknownError")
        message = error_info.get("Message", str(error))

        friendly_messages = {
            "AccessDenied": "권한이 없습니다. IAM 정책을 확인하세요.",
            "ExpiredToken": "인증 토큰이 만료되었습니다. 다시 로그인하세요.",
            "InvalidClientTokenId": "잘못된 자격 증명입니다.",
            "Throttling": "요청이 너무 많습니다. 잠시 후 다시 시도하세요.",
            "InvalidChangeBatch": "변경 요청이 거부되었습니다. 레코드 이름과 값을 확인하세요.",
        }

        return friendly_messages.get(code, f"{code}: {message}")

    return str(error)
