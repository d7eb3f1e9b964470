# cli/ui - Rich 콘솔 컴포넌트
"""
콘솔 출력 모듈

CLI 전용 출력 유틸리티 (결과 테이블, 상태 메시지, 로그 핸들러)
"""

from .console import (
    SYMBOL_ERROR,
    SYMBOL_INFO,
    SYMBOL_SUCCESS,
    SYMBOL_WARNING,
    console,
    err_console,
    get_console,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    setup_logging,
)

__all__ = [
    "SYMBOL_ERROR",
    "SYMBOL_INFO",
    "SYMBOL_SUCCESS",
    "SYMBOL_WARNING",
    "console",
    "err_console",
    "get_console",
    "print_error",
    "print_info",
    "print_success",
    "print_table",
    "print_warning",
    "setup_logging",
]
