"""
gcp_build
---------

Cloud Build 권한, 트리거, 빌드 제출을 담당하는 모듈.
"""

from __future__ import annotations

from typing import List, Mapping, Optional

from .gcp_auth import grant_project_role
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)

CLOUDBUILD_ROLES = ("roles/run.admin", "roles/iam.serviceAccountUser")

DEFAULT_BRANCH_PATTERN = "^main$"


def cloudbuild_service_account(project_number: str) -> str:
    return f"{project_number}@cloudbuild.gserviceaccount.com"


def grant_cloudbuild_permissions(runner: CommandRunner, project: str, project_number: str) -> List[str]:
    """Cloud Build 서비스 계정이 Cloud Run 에 배포할 수 있도록 역할을 부여한다."""
    logger.step("Cloud Build 권한 부여 중...")
    member = f"serviceAccount:{cloudbuild_service_account(project_number)}"
    for role in CLOUDBUILD_ROLES:
        grant_project_role(runner, project, member, role)
    logger.success("Cloud Build 서비스 계정에 권한을 부여했습니다.")
    return list(CLOUDBUILD_ROLES)


def create_github_trigger(
    runner: CommandRunner,
    service: str,
    owner: str,
    repo: str,
    project: str,
    branch_pattern: str = DEFAULT_BRANCH_PATTERN,
) -> str:
    name = f"{service}-github-trigger"
    runner.run(
        "gcloud",
        [
            "builds", "triggers", "create", "github",
            f"--name={name}",
            f"--repo-name={repo}",
            f"--repo-owner={owner}",
            f"--branch-pattern={branch_pattern}",
            "--build-config=cloudbuild.yaml",
            f"--project={project}",
        ],
    )
    logger.success("GitHub 트리거 생성 완료: %s", name)
    return name


def create_csr_trigger(
    runner: CommandRunner,
    service: str,
    repo: str,
    project: str,
    branch_pattern: str = DEFAULT_BRANCH_PATTERN,
) -> str:
    name = f"{service}-csr-trigger"
    runner.run(
        "gcloud",
        [
            "builds", "triggers", "create", "cloud-source-repositories",
            f"--name={name}",
            f"--repo={repo}",
            f"--branch-pattern={branch_pattern}",
            "--build-config=cloudbuild.yaml",
            f"--project={project}",
        ],
    )
    logger.success("Cloud Source Repository 트리거 생성 완료: %s", name)
    return name


def connect_repository_url(project: str) -> str:
    return f"https://console.cloud.google.com/cloud-build/triggers/connect?project={project}"


def submit_build(
    runner: CommandRunner,
    project: str,
    config_file: str = "cloudbuild.yaml",
    substitutions: Optional[Mapping[str, str]] = None,
    source: str = ".",
) -> None:
    args = ["builds", "submit", f"--config={config_file}", f"--project={project}"]
    if substitutions:
        args.append("--substitutions=" + ",".join(f"{k}={v}" for k, v in substitutions.items()))
    args.append(source)
    runner.run("gcloud", args)


def test_locally(runner: CommandRunner, config_file: str = "cloudbuild.yaml", *, install: bool = False) -> bool:
    """
    cloud-build-local 로 빌드 설정을 로컬에서 실행한다.
    도구가 없고 install=False 이면 안내만 남기고 False 를 돌려준다.
    """
    if not runner.dry_run and not runner.which("cloud-build-local"):
        logger.warning("cloud-build-local 이 설치되어 있지 않습니다.")
        logger.info("설치: gcloud components install cloud-build-local")
        if not install:
            return False
        runner.run("gcloud", ["components", "install", "cloud-build-local"])

    logger.step("로컬 빌드 실행 중...")
    runner.run("cloud-build-local", [f"--config={config_file}", "--dryrun=false", "."])
    logger.success("로컬 빌드 테스트 완료")
    return True
