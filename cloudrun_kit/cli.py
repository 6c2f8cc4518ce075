import json
import os
import sys
from functools import wraps
from typing import Callable, Tuple

import click

from . import __version__
from .config import RunContext, load_env_files
from .errors import CommandError, PrerequisiteError, ValidationError
from .logging_utils import setup_logging, get_logger
from .prompts import Prompter
from .subprocess_utils import CommandRunner
from . import (
    gcp_auth,
    gcp_cloud_run,
    gcp_monitoring,
    gcp_project,
    gcp_secrets,
    pricing,
    validation,
)


logger = get_logger(__name__)


def _handle_errors(func: Callable) -> Callable:
    """
    명령 경계에서 알려진 예외를 `[ERROR] ...` 로그 + exit 1 로 바꾼다.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.error("%s", e)
            if e.explanation:
                click.echo(e.explanation, err=True)
            sys.exit(1)
        except (PrerequisiteError, CommandError) as e:
            logger.error("%s", e)
            sys.exit(1)

    return wrapper


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.option("--debug", is_flag=True, help="디버그 로그를 켭니다. (DEBUG=true 와 같음)")
@click.option("--dry-run", "dry_run", is_flag=True, help="외부 명령을 실행하지 않고 출력만 합니다. (DRY_RUN=true 와 같음)")
@click.option(
    "--non-interactive",
    "non_interactive",
    is_flag=True,
    help="질문하지 않고 환경변수/기본값을 사용합니다. (NON_INTERACTIVE=true 와 같음)",
)
@click.version_option(__version__, prog_name="cloudrun-kit")
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int, debug: bool, dry_run: bool, non_interactive: bool) -> None:
    """GCP Cloud Run 배포/관리/CI-CD 설정용 CLI"""
    load_env_files(chdir)
    from_env = RunContext.from_env(base_dir=chdir)
    run_ctx = RunContext(
        dry_run=from_env.dry_run or dry_run,
        non_interactive=from_env.non_interactive or non_interactive,
        debug=from_env.debug or debug,
        base_dir=chdir,
    )
    setup_logging(max(verbose, 1 if run_ctx.debug else 0))
    logger.debug("Run context: %s", run_ctx)

    ctx.ensure_object(dict)
    ctx.obj["run_ctx"] = run_ctx
    ctx.obj["runner"] = CommandRunner(dry_run=run_ctx.dry_run, cwd=chdir)
    ctx.obj["prompter"] = Prompter(non_interactive=run_ctx.non_interactive)


def _components(ctx: click.Context) -> Tuple[RunContext, CommandRunner, Prompter]:
    return ctx.obj["run_ctx"], ctx.obj["runner"], ctx.obj["prompter"]


@main.command()
@click.pass_context
@_handle_errors
def deploy(ctx: click.Context) -> None:
    """대화형 배포 마법사 (빌드 -> 푸시 -> 배포)"""
    from .deploy_wizard import DeployWizard

    DeployWizard(*_components(ctx)).run()


@main.command()
@click.pass_context
@_handle_errors
def plan(ctx: click.Context) -> None:
    """
    환경변수/기본값으로 배포 설정을 만들고 실행될 단계와 gcloud 명령만 출력한다.
    (GCP 리소스나 로컬 파일을 만들거나 바꾸지 않는다)
    """
    from .deploy_wizard import DeployWizard
    from .orchestrator import plan_deploy

    run_ctx = ctx.obj["run_ctx"]
    runner = CommandRunner(dry_run=True, cwd=run_ctx.base_dir, trace=False)
    cfg = DeployWizard(run_ctx, runner, Prompter(non_interactive=True)).collect()
    click.echo(plan_deploy(cfg))


@main.command()
@click.pass_context
@_handle_errors
def manage(ctx: click.Context) -> None:
    """Cloud Run 서비스 관리 콘솔"""
    from .manage import ManageConsole

    ManageConsole(*_components(ctx)).run()


@main.command()
@click.pass_context
@_handle_errors
def cicd(ctx: click.Context) -> None:
    """Cloud Build / GitHub Actions CI/CD 설정"""
    from .ci_cd import CiCdConsole

    CiCdConsole(*_components(ctx)).run()


@main.command()
@click.pass_context
@_handle_errors
def setup(ctx: click.Context) -> None:
    """도구 확인, gcloud 인증/프로젝트/리전 설정, 필수 API 활성화"""
    from .setup_env import EnvironmentSetup

    result = EnvironmentSetup(*_components(ctx)).run()
    # 필수 도구 누락 시 exit 1
    if result is False:
        sys.exit(1)


@main.command()
@click.pass_context
@_handle_errors
def quickstart(ctx: click.Context) -> None:
    """환경 점검 후 설정/배포까지 안내하는 빠른 시작"""
    from .quickstart import run_quickstart

    run_quickstart(*_components(ctx))


# -----------------------------
# helpers
# -----------------------------
@main.group()
def helpers() -> None:
    """스크립트/CI 에서 쓰기 좋은 단발성 명령 모음"""


def scope_options(func: Callable) -> Callable:
    func = click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")(func)
    func = click.option("--region", default="", help="리전 (기본: gcloud 설정값)")(func)
    return func


def _resolve_project(runner: CommandRunner, project: str) -> str:
    project = project or gcp_project.current_project(runner)
    if not project and not runner.dry_run:
        raise PrerequisiteError("GCP 프로젝트가 설정되어 있지 않습니다. --project 를 지정하세요.")
    return project


def _resolve_scope(runner: CommandRunner, region: str, project: str) -> Tuple[str, str]:
    project = _resolve_project(runner, project)
    region = region or gcp_project.current_region(runner) or gcp_project.DEFAULT_REGION
    return region, project


@helpers.command()
@click.argument("service")
@scope_options
@click.pass_context
@_handle_errors
def url(ctx: click.Context, service: str, region: str, project: str) -> None:
    """서비스 URL 출력"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    click.echo(gcp_cloud_run.get_service_url(runner, service, region, project))


@helpers.command()
@click.argument("service")
@scope_options
@click.pass_context
@_handle_errors
def exists(ctx: click.Context, service: str, region: str, project: str) -> None:
    """서비스가 있으면 exit 0, 없으면 exit 1"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    if not gcp_cloud_run.service_exists(runner, service, region, project):
        sys.exit(1)


@helpers.command()
@click.argument("service")
@scope_options
@click.pass_context
@_handle_errors
def status(ctx: click.Context, service: str, region: str, project: str) -> None:
    """Ready 조건 상태 출력 (True/False/Unknown)"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    click.echo(gcp_cloud_run.get_service_status(runner, service, region, project))


@helpers.command()
@click.argument("service")
@scope_options
@click.option("--timeout", type=int, default=300, show_default=True, help="최대 대기 시간(초)")
@click.pass_context
@_handle_errors
def wait(ctx: click.Context, service: str, region: str, project: str, timeout: int) -> None:
    """서비스가 준비될 때까지 대기. 시간 초과면 exit 1"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    if not gcp_cloud_run.wait_for_service(runner, service, region, project, timeout=timeout):
        sys.exit(1)


@helpers.command(name="test-endpoint")
@click.argument("endpoint")
@click.option("--expected-status", type=int, default=200, show_default=True)
@click.pass_context
@_handle_errors
def test_endpoint_cmd(ctx: click.Context, endpoint: str, expected_status: int) -> None:
    """HTTP 상태 코드 확인. 기대값과 다르면 exit 1"""
    if not gcp_cloud_run.test_endpoint(ctx.obj["runner"], endpoint, expected_status):
        sys.exit(1)


@helpers.command(name="load-test")
@click.argument("endpoint")
@click.option("--requests", "requests_", type=int, default=100, show_default=True, help="총 요청 수")
@click.option("--concurrency", type=int, default=10, show_default=True, help="동시 요청 수")
@click.pass_context
@_handle_errors
def load_test_cmd(ctx: click.Context, endpoint: str, requests_: int, concurrency: int) -> None:
    """ab 또는 hey 로 부하 테스트. 도구가 없으면 exit 1"""
    if not gcp_cloud_run.load_test(ctx.obj["runner"], endpoint, requests_, concurrency):
        sys.exit(1)


@helpers.command()
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def quotas(ctx: click.Context, project: str) -> None:
    """프로젝트의 서비스 목록과 트래픽 현황"""
    runner = ctx.obj["runner"]
    gcp_cloud_run.show_quotas(runner, _resolve_project(runner, project))


@helpers.command(name="latest-revision")
@click.argument("service")
@scope_options
@click.pass_context
@_handle_errors
def latest_revision(ctx: click.Context, service: str, region: str, project: str) -> None:
    """가장 최근 리비전 이름 출력"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    click.echo(gcp_cloud_run.get_latest_revision(runner, service, region, project))


@helpers.command()
@click.argument("service")
@scope_options
@click.pass_context
@_handle_errors
def image(ctx: click.Context, service: str, region: str, project: str) -> None:
    """현재 서비스 이미지 출력"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    click.echo(gcp_cloud_run.get_service_image(runner, service, region, project))


@helpers.command()
@click.argument("service")
@scope_options
@click.option("--tail", is_flag=True, help="실시간 스트리밍")
@click.option("--limit", type=int, default=50, show_default=True)
@click.pass_context
@_handle_errors
def logs(ctx: click.Context, service: str, region: str, project: str, tail: bool, limit: int) -> None:
    """서비스 로그 보기"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    if tail:
        gcp_monitoring.tail_logs(runner, service, region, project)
    else:
        gcp_monitoring.read_logs(runner, service, region, project, limit=limit)


@helpers.command()
@click.argument("service")
@click.argument("metric", type=click.Choice(sorted(gcp_monitoring.METRIC_TYPES)))
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def metrics(ctx: click.Context, service: str, metric: str, project: str) -> None:
    """요청 수 / 지연 시간 / 인스턴스 수 지표 조회"""
    runner = ctx.obj["runner"]
    gcp_monitoring.query_metric(runner, service, metric, _resolve_project(runner, project))


@helpers.command(name="secret-create")
@click.argument("name")
@click.option("--value", prompt=True, hide_input=True, help="시크릿 값")
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def secret_create(ctx: click.Context, name: str, value: str, project: str) -> None:
    """Secret Manager 시크릿 생성"""
    runner = ctx.obj["runner"]
    gcp_secrets.create_secret(runner, name, value, _resolve_project(runner, project))


@helpers.command(name="secret-update")
@click.argument("name")
@click.option("--value", prompt=True, hide_input=True, help="새 시크릿 값")
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def secret_update(ctx: click.Context, name: str, value: str, project: str) -> None:
    """시크릿에 새 버전 추가"""
    runner = ctx.obj["runner"]
    gcp_secrets.update_secret(runner, name, value, _resolve_project(runner, project))


@helpers.command(name="secret-grant")
@click.argument("name")
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def secret_grant(ctx: click.Context, name: str, project: str) -> None:
    """Compute 기본 서비스 계정에 시크릿 접근 권한 부여"""
    runner = ctx.obj["runner"]
    project = _resolve_project(runner, project)
    number = gcp_project.get_project_number(runner, project)
    click.echo(gcp_secrets.grant_secret_access(runner, name, number, project))


@helpers.command(name="secret-check")
@click.argument("names", nargs=-1, required=True)
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def secret_check(ctx: click.Context, names: Tuple[str, ...], project: str) -> None:
    """시크릿 존재 여부 확인 (Secret Manager API)"""
    runner = ctx.obj["runner"]
    for line in gcp_secrets.check_secrets(runner, names, _resolve_project(runner, project)):
        click.echo(f"- {line}")


@helpers.command(name="sa-create")
@click.argument("name")
@click.option("--display-name", default="", help="표시 이름 (기본: NAME)")
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def sa_create(ctx: click.Context, name: str, display_name: str, project: str) -> None:
    """서비스 계정 생성 후 이메일 출력"""
    runner = ctx.obj["runner"]
    click.echo(gcp_auth.create_service_account(runner, name, _resolve_project(runner, project), display_name))


@helpers.command(name="sa-grant")
@click.argument("email")
@click.argument("role")
@click.option("--project", default="", help="GCP 프로젝트 (기본: gcloud 설정값)")
@click.pass_context
@_handle_errors
def sa_grant(ctx: click.Context, email: str, role: str, project: str) -> None:
    """서비스 계정에 프로젝트 역할 부여"""
    runner = ctx.obj["runner"]
    gcp_auth.grant_project_role(runner, _resolve_project(runner, project), f"serviceAccount:{email}", role)


@helpers.command(name="cloudsql-connection")
@click.argument("instance")
@scope_options
@click.pass_context
@_handle_errors
def cloudsql_connection(ctx: click.Context, instance: str, region: str, project: str) -> None:
    """Cloud SQL 연결 이름(PROJECT:REGION:INSTANCE) 출력"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    click.echo(validation.validate_cloudsql_connection(f"{project}:{region}:{instance}"))


@helpers.command(name="estimate-cost")
@click.argument("requests_per_month", type=int)
@click.argument("avg_duration_ms", type=float)
@click.argument("memory_mb", type=float)
@click.argument("cpu", type=float)
def estimate_cost(requests_per_month: int, avg_duration_ms: float, memory_mb: float, cpu: float) -> None:
    """월 예상 비용 계산 (요청/CPU/메모리)"""
    estimate = pricing.estimate_cost(requests_per_month, avg_duration_ms, memory_mb, cpu)
    click.echo("\n".join(estimate.lines()))


@helpers.command(name="validate-name")
@click.argument("name")
@_handle_errors
def validate_name(name: str) -> None:
    """서비스 이름 규칙 검사. 유효하지 않으면 exit 1"""
    validation.validate_service_name(name)
    click.echo(f"유효한 서비스 이름입니다: {name}")


@helpers.command(name="generate-name")
@click.option("--prefix", default="service", show_default=True)
def generate_name(prefix: str) -> None:
    """무작위 접미사가 붙은 서비스 이름 생성"""
    click.echo(gcp_cloud_run.generate_service_name(prefix))


@helpers.command()
@click.argument("service")
@scope_options
@click.option("--backup-dir", default="./.cloudrun_backups", show_default=True)
@click.pass_context
@_handle_errors
def backup(ctx: click.Context, service: str, region: str, project: str, backup_dir: str) -> None:
    """서비스 설정을 시각이 붙은 YAML 파일로 백업"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    path = os.path.join(ctx.obj["run_ctx"].base_dir, backup_dir)
    click.echo(gcp_cloud_run.backup_service_config(runner, service, region, project, backup_dir=path))


@helpers.command()
@click.argument("backup_file")
@scope_options
@click.pass_context
@_handle_errors
def restore(ctx: click.Context, backup_file: str, region: str, project: str) -> None:
    """백업 YAML 로 서비스 설정 복원"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    path = os.path.join(ctx.obj["run_ctx"].base_dir, backup_file)
    gcp_cloud_run.restore_service_config(runner, path, region, project)


@helpers.command()
@click.argument("first")
@click.argument("second")
@scope_options
@click.pass_context
@_handle_errors
def compare(ctx: click.Context, first: str, second: str, region: str, project: str) -> None:
    """두 리비전의 컨테이너 설정 비교"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    left, right = gcp_cloud_run.compare_revisions(runner, first, second, region, project)
    for name, spec in ((first, left), (second, right)):
        click.echo(f"## {name}")
        click.echo(json.dumps(spec, indent=2, ensure_ascii=False, sort_keys=True))


@helpers.command()
@click.argument("service")
@scope_options
@click.option("--keep", type=int, default=5, show_default=True, help="남겨 둘 최신 리비전 수")
@click.pass_context
@_handle_errors
def cleanup(ctx: click.Context, service: str, region: str, project: str, keep: int) -> None:
    """최신 N개를 제외한 오래된 리비전 삭제"""
    runner = ctx.obj["runner"]
    region, project = _resolve_scope(runner, region, project)
    for revision in gcp_cloud_run.cleanup_old_revisions(runner, service, region, project, keep=keep):
        click.echo(revision)
