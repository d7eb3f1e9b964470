"""
cli/app.py - 메인 CLI 엔트리포인트

Click 기반의 CLI 애플리케이션 진입점입니다.

명령어 구조:
    dnsops --version                        # 버전 표시
    dnsops topology example.com             # 웹사이트 토폴로지 조회
    dnsops txt NAME VALUE                   # TXT 레코드 반영 + 검증

    예시:
    dnsops topology example.com example.org -p prod -r us-east-1 -f csv -o sites.csv
    dnsops topology example.com --target-groups all --workers 4
    dnsops txt _acme-challenge.example.com abc123 --timeout 300 --json

종료 코드 (txt):
    0: 반영 및 검증 성공
    1: 치명적 오류 (Zone 없음, 제출 실패, 인증 오류 등)
    2: 검증 불일치 (INSYNC 후 읽은 값이 요청 값과 다름)
    3: 전파 대기 시간 초과

환경변수:
    DNSOPS_POLL_INTERVAL, DNSOPS_POLL_TIMEOUT: txt 폴링 기본값
    DNSOPS_MAX_RECORDS, DNSOPS_MAX_WORKERS: topology 기본값
    LOG_LEVEL, LOG_FORMAT: 로그 설정

Usage:
    $ dnsops topology example.com
    $ python -m cli.app txt _acme-challenge.example.com abc123
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import boto3
import click
from botocore.exceptions import BotoCoreError
from click import Context

from core.config import (
    LogConfig,
    get_default_profile,
    get_default_region,
    get_env_float,
    get_env_int,
    get_version,
    settings,
)
from core.exceptions import (
    DnsOpsError,
    PropagationTimeoutError,
    VerificationMismatchError,
    format_error_for_user,
)
from dnsops.models import ChangeStatus, ReconcileOutcome
from dnsops.output import ROW_COLUMNS, outcome_to_dict, row_to_cells, rows_to_csv, rows_to_json
from dnsops.resource_client import AwsResourceClient
from dnsops.topology import TargetGroupPolicy, resolve_websites
from dnsops.txt_record import reconcile_txt_record

from .ui.console import (
    err_console,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    setup_logging,
)

logger = logging.getLogger(__name__)

VERSION = get_version()

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_MISMATCH = 2
EXIT_TIMEOUT = 3


def _build_client(profile: str | None, region: str | None) -> AwsResourceClient:
    """boto3 Session 기반 ResourceClient 생성

    자격 증명은 boto3 기본 체인(프로파일, 환경변수, 인스턴스 역할)을 그대로 사용합니다.
    """
    session = boto3.Session(
        profile_name=profile or get_default_profile(),
        region_name=region or get_default_region(),
    )
    return AwsResourceClient(session)


def _exit_code(outcome: ReconcileOutcome) -> int:
    if outcome.applied:
        return EXIT_OK
    if isinstance(outcome.error, VerificationMismatchError):
        return EXIT_MISMATCH
    if isinstance(outcome.error, PropagationTimeoutError):
        return EXIT_TIMEOUT
    return EXIT_FATAL


def _default_max_records() -> int | None:
    value = get_env_int("DNSOPS_MAX_RECORDS", 0)
    return value if value > 0 else settings.MAX_RECORDS_PER_ZONE


@click.group()
@click.version_option(VERSION, prog_name="dnsops")
@click.option("-v", "--verbose", is_flag=True, help="DEBUG 로그 출력")
@click.pass_context
def cli(ctx: Context, verbose: bool) -> None:
    """dnsops - Route 53 웹사이트 토폴로지 조회 / TXT 레코드 반영"""
    log_config = LogConfig.from_env()
    if verbose:
        log_config.level = "DEBUG"
    setup_logging(log_config)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("topology")
@click.argument("domains", nargs=-1, required=True)
@click.option("-p", "--profile", default=None, help="AWS 프로파일 이름")
@click.option("-r", "--region", default=None, help="ELB/EC2 리전 (기본: AWS_REGION 또는 ap-northeast-2)")
@click.option(
    "--max-records",
    type=click.IntRange(min=1),
    default=None,
    help="Zone당 최대 레코드 수 (기본: 전체)",
)
@click.option(
    "--target-groups",
    "target_groups",
    type=click.Choice([p.value for p in TargetGroupPolicy]),
    default=TargetGroupPolicy.FIRST.value,
    show_default=True,
    help="타겟 그룹이 여러 개일 때 첫 번째만(first) 또는 모두(all) 출력",
)
@click.option("--workers", type=click.IntRange(1, 50), default=None, help="동시에 조회할 도메인 수")
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["console", "json", "csv"]),
    default="console",
    show_default=True,
)
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="출력 파일 경로 (json/csv)")
def topology_command(
    domains: tuple[str, ...],
    profile: str | None,
    region: str | None,
    max_records: int | None,
    target_groups: str,
    workers: int | None,
    output_format: str,
    output: str | None,
) -> None:
    """도메인의 레코드를 로드밸런서, 타겟 그룹, EC2 인스턴스까지 조회

    \b
    Examples:
        dnsops topology example.com
        dnsops topology example.com example.org -f json -o sites.json
    """
    if output and output_format == "console":
        raise click.BadOptionUsage("output", "-o/--output은 json 또는 csv 형식에서만 사용할 수 있습니다.")

    try:
        client = _build_client(profile, region)
    except BotoCoreError as e:
        print_error(format_error_for_user(e))
        raise SystemExit(EXIT_FATAL) from e

    result = resolve_websites(
        client,
        list(domains),
        max_workers=workers or get_env_int("DNSOPS_MAX_WORKERS", 1),
        max_records=max_records or _default_max_records(),
        target_group_policy=TargetGroupPolicy(target_groups),
    )

    if output_format == "json":
        _emit(rows_to_json(result.rows), output)
    elif output_format == "csv":
        _emit(rows_to_csv(result.rows), output)
    else:
        print_table(
            "Websites",
            [header for _, header in ROW_COLUMNS],
            [row_to_cells(row) for row in result.rows],
        )
        stats = result.stats
        skipped = ", ".join(f"{reason.value} {count}" for reason, count in stats.skipped.items())
        print_info(
            f"도메인 {stats.domains}개, 레코드 {stats.records}개, 행 {stats.rows}개"
            + (f" / 건너뜀 {stats.skip_count}건 ({skipped})" if skipped else "")
        )

    if result.collector.has_errors:
        print_warning(result.collector.get_summary())

    if result.failures:
        for failure in result.failures:
            print_error(str(failure))
        raise SystemExit(EXIT_FATAL)


def _emit(text: str, output: str | None) -> None:
    if output is None:
        click.echo(text, nl=not text.endswith("\n"))
        return

    path = Path(output)
    path.write_text(text, encoding="utf-8")
    print_success(f"저장 완료: {path}")


@cli.command("txt")
@click.argument("name")
@click.argument("value")
@click.option("-p", "--profile", default=None, help="AWS 프로파일 이름")
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0),
    default=None,
    help=f"변경 상태 폴링 간격(초, 기본 {settings.CHANGE_POLL_INTERVAL:g})",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help=f"INSYNC 대기 최대 시간(초, 기본 {settings.CHANGE_POLL_TIMEOUT:g}, 0이면 무제한)",
)
@click.option("--json", "as_json", is_flag=True, help="결과를 JSON으로 출력")
def txt_command(
    name: str,
    value: str,
    profile: str | None,
    poll_interval: float | None,
    timeout: float | None,
    as_json: bool,
) -> None:
    """TXT 레코드를 생성/갱신하고 전파 및 값 검증까지 대기

    \b
    Examples:
        dnsops txt _acme-challenge.example.com abc123
        dnsops txt _acme-challenge.example.com abc123 --timeout 300 --json
    """
    if poll_interval is None:
        poll_interval = get_env_float("DNSOPS_POLL_INTERVAL", settings.CHANGE_POLL_INTERVAL)
    if timeout is None:
        timeout = get_env_float("DNSOPS_POLL_TIMEOUT", settings.CHANGE_POLL_TIMEOUT)
    if timeout is not None and timeout <= 0:
        timeout = None

    try:
        client = _build_client(profile, None)
        with err_console.status(f"{name} 반영 중...") as status:

            def on_poll(change: ChangeStatus, attempt: int) -> None:
                status.update(f"{name}: {change.change_id} {change.state.value} ({attempt}회 확인)")

            outcome = reconcile_txt_record(
                client,
                name,
                value,
                poll_interval=poll_interval,
                timeout=timeout,
                on_poll=on_poll,
            )
    except (BotoCoreError, DnsOpsError) as e:
        print_error(format_error_for_user(e))
        raise SystemExit(EXIT_FATAL) from e

    if as_json:
        click.echo(json.dumps(outcome_to_dict(outcome), ensure_ascii=False, indent=2))
    elif outcome.applied:
        print_success(f"{outcome.record_name} = {outcome.final_value!r} ({outcome.action.value}, {outcome.polls}회 확인)")
    else:
        print_error(format_error_for_user(outcome.error) if outcome.error else f"{outcome.record_name} 반영 실패")

    raise SystemExit(_exit_code(outcome))


if __name__ == "__main__":
    cli()
