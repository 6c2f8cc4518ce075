"""
gcp_auth
--------

gcloud/docker 설치 및 인증 상태를 확인하고,
서비스 계정과 프로젝트 역할을 준비하는 유틸을 정의한다.
"""

from __future__ import annotations

from .errors import PrerequisiteError
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


def active_account(runner: CommandRunner) -> str:
    result = runner.query(
        "gcloud",
        ["auth", "list", "--filter=status:ACTIVE", "--format=value(account)"],
    )
    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    return lines[0] if lines else ""


def check_prerequisites(runner: CommandRunner, *, require_docker: bool = True) -> None:
    """
    gcloud 설치/인증, (필요 시) docker 설치를 확인한다.
    dry-run 에서는 외부 상태에 의존하지 않도록 건너뛴다.
    """
    if runner.dry_run:
        logger.info("[DRY-RUN] 사전 요구사항 확인을 건너뜁니다.")
        return

    logger.step("사전 요구사항 확인 중...")
    if not runner.which("gcloud"):
        raise PrerequisiteError(
            "gcloud CLI가 설치되어 있지 않습니다. "
            "설치: https://cloud.google.com/sdk/docs/install"
        )
    if require_docker and not runner.which("docker"):
        raise PrerequisiteError(
            "Docker가 설치되어 있지 않습니다. "
            "설치: https://docs.docker.com/get-docker/"
        )

    account = active_account(runner)
    if not account:
        raise PrerequisiteError("gcloud 인증이 필요합니다. `gcloud auth login` 을 실행하세요.")

    logger.success("사전 요구사항 확인 완료 (계정: %s)", account)


def login(runner: CommandRunner) -> None:
    runner.run("gcloud", ["auth", "login"])


def application_default_login(runner: CommandRunner) -> None:
    runner.run("gcloud", ["auth", "application-default", "login"])


def service_account_email(name: str, project: str) -> str:
    return f"{name}@{project}.iam.gserviceaccount.com"


def create_service_account(runner: CommandRunner, name: str, project: str, display_name: str = "") -> str:
    email = service_account_email(name, project)
    logger.info("서비스 계정 생성: %s", email)
    runner.run(
        "gcloud",
        [
            "iam",
            "service-accounts",
            "create",
            name,
            f"--display-name={display_name or name}",
            f"--project={project}",
        ],
    )
    logger.success("서비스 계정 생성 완료: %s", email)
    return email


def grant_project_role(runner: CommandRunner, project: str, member: str, role: str) -> None:
    logger.info("역할 부여: %s -> %s", role, member)
    runner.run(
        "gcloud",
        [
            "projects",
            "add-iam-policy-binding",
            project,
            f"--member={member}",
            f"--role={role}",
            "--condition=None",
        ],
    )
