"""
gcp_artifact_registry
---------------------

Artifact Registry 리포지토리 존재 여부 확인 및
이미지 빌드/푸시를 담당하는 모듈.
"""

from __future__ import annotations

from typing import Mapping, Optional

from .logging_utils import get_logger
from .prompts import Prompter
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


def registry_host(region: str) -> str:
    return f"{region}-docker.pkg.dev"


def artifact_image_url(region: str, project: str, repo: str, service: str, tag: str = "latest") -> str:
    return f"{registry_host(region)}/{project}/{repo}/{service}:{tag}"


def gcr_image_url(project: str, service: str, tag: str = "latest") -> str:
    return f"gcr.io/{project}/{service}:{tag}"


def repository_exists(runner: CommandRunner, repo: str, region: str, project: str) -> bool:
    return runner.succeeds(
        "gcloud",
        [
            "artifacts",
            "repositories",
            "describe",
            repo,
            f"--location={region}",
            f"--project={project}",
        ],
    )


def ensure_repository(
    runner: CommandRunner,
    prompter: Prompter,
    repo: str,
    region: str,
    project: str,
) -> bool:
    """
    Artifact Registry 리포가 있는지 확인하고,
    없으면 확인을 받은 뒤 생성한다. 리포가 준비되었는지 여부를 돌려준다.
    """
    logger.info("Artifact Registry 리포 확인: %s", repo)
    if repository_exists(runner, repo, region, project):
        logger.info("기존 Artifact Registry 리포를 사용합니다: %s", repo)
        return True

    logger.warning("리포지토리가 존재하지 않습니다: %s", repo)
    if not prompter.confirm("리포지토리를 생성하시겠습니까?", default=True):
        return False

    runner.run(
        "gcloud",
        [
            "artifacts",
            "repositories",
            "create",
            repo,
            "--repository-format=docker",
            f"--location={region}",
            f"--project={project}",
            "--description=Cloud Run applications",
        ],
    )
    logger.success("Artifact Registry 리포를 생성했습니다: %s", repo)
    return True


def configure_docker_auth(runner: CommandRunner, region: Optional[str] = None) -> None:
    """docker 가 레지스트리에 push 할 수 있도록 gcloud credential helper 를 등록한다."""
    host = registry_host(region) if region else "gcr.io"
    logger.info("Docker 인증 설정: %s", host)
    runner.run("gcloud", ["auth", "configure-docker", host, "--quiet"])


def build_image(
    runner: CommandRunner,
    image_url: str,
    dockerfile_path: str = "./Dockerfile",
    context_dir: str = ".",
    build_args: Optional[Mapping[str, str]] = None,
) -> None:
    args = ["build", "-t", image_url, "-f", dockerfile_path]
    for key, value in (build_args or {}).items():
        args += ["--build-arg", f"{key}={value}"]
    args.append(context_dir)

    logger.step("Docker 이미지 빌드: %s", image_url)
    runner.run("docker", args)
    logger.success("이미지 빌드 완료")


def push_image(runner: CommandRunner, image_url: str) -> None:
    logger.step("이미지 푸시: %s", image_url)
    runner.run("docker", ["push", image_url])
    logger.success("이미지 푸시 완료")
