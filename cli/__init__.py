"""
cli - dnsops 명령줄 인터페이스

Click 기반 명령어(cli.app)와 Rich 콘솔 유틸리티(cli.ui)를 제공합니다.
"""
